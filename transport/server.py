"""
Transport - HTTP/WebSocket Server.

============================================================
PURPOSE
============================================================
Owns the HTTP endpoint the dashboard is served from and hands
the runtime its two shared handles:

- HelperRouter      helpers add HTTP endpoints to it
- RealtimeChannel   helpers exchange notifications over it

Only the orchestrator opens and closes the server.

============================================================
ROUTES
============================================================
<base_path>ws/{namespace}   WebSocket, one namespace per helper
<base_path>{tail}           forwarded to the HelperRouter

============================================================
"""

import ipaddress
import logging
from typing import Any, Iterable, Mapping, Optional, Tuple

from aiohttp import web

from .realtime import RealtimeChannel
from .router import HelperRouter


logger = logging.getLogger(__name__)


# ============================================================
# IP WHITELIST
# ============================================================

def ip_allowed(remote: Optional[str], whitelist: Iterable[str]) -> bool:
    """
    Check a client address against the whitelist.

    An empty whitelist allows everyone. Entries may be single
    addresses or CIDR ranges, IPv4 or IPv4-mapped IPv6.
    """
    entries = list(whitelist)
    if not entries:
        return True
    if not remote:
        return False

    try:
        address = ipaddress.ip_address(remote)
    except ValueError:
        return False

    candidates = [address]
    if address.version == 6 and address.ipv4_mapped:
        candidates.append(address.ipv4_mapped)
    elif address.version == 4:
        candidates.append(ipaddress.ip_address(f"::ffff:{address}"))

    for entry in entries:
        try:
            network = ipaddress.ip_network(entry, strict=False)
        except ValueError:
            logger.warning(f"Ignoring invalid ip_whitelist entry: {entry!r}")
            continue
        if any(c.version == network.version and c in network for c in candidates):
            return True
    return False


def whitelist_middleware(whitelist: Iterable[str]):
    """Build a middleware rejecting clients outside the whitelist."""
    entries = list(whitelist)

    @web.middleware
    async def middleware(request: web.Request, handler):
        if not ip_allowed(request.remote, entries):
            logger.warning(f"Access denied to IP address: {request.remote}")
            raise web.HTTPForbidden(text="This device is not allowed to access your dashboard.")
        return await handler(request)

    return middleware


# ============================================================
# SERVER
# ============================================================

def _normalize_base_path(base_path: str) -> str:
    base = "/" + base_path.strip("/")
    return base if base.endswith("/") else base + "/"


class TransportServer:
    """aiohttp server exposing the router and realtime channel."""

    def __init__(self, config: Mapping[str, Any]) -> None:
        self._address = config.get("address") or "localhost"
        self._port = int(config.get("port", 8080))
        self._base_path = _normalize_base_path(config.get("base_path") or "/")
        self._whitelist = list(config.get("ip_whitelist") or [])

        self.router = HelperRouter()
        self.channel = RealtimeChannel()
        self._runner: Optional[web.AppRunner] = None

    @property
    def is_open(self) -> bool:
        return self._runner is not None

    @property
    def base_path(self) -> str:
        return self._base_path

    def build_app(self) -> web.Application:
        """Build the aiohttp application."""
        app = web.Application(middlewares=[whitelist_middleware(self._whitelist)])
        app.router.add_get(f"{self._base_path}ws/{{namespace}}", self.channel.handle_websocket)
        app.router.add_route("*", f"{self._base_path}{{tail:.*}}", self._forward)
        return app

    async def _forward(self, request: web.Request) -> web.StreamResponse:
        return await self.router.dispatch(request, request.match_info["tail"])

    async def open(self) -> Tuple[HelperRouter, RealtimeChannel]:
        """
        Start listening.

        Returns:
            (router, channel) handles for the helpers
        """
        if self._runner is not None:
            return self.router, self.channel

        runner = web.AppRunner(self.build_app())
        await runner.setup()
        site = web.TCPSite(runner, self._address, self._port)
        await site.start()
        self._runner = runner

        logger.info(f"Server started on http://{self._address}:{self._port}{self._base_path}")
        if not self._whitelist:
            logger.warning("ip_whitelist is empty, every device may connect")
        return self.router, self.channel

    async def close(self) -> None:
        """Disconnect clients and stop listening."""
        if self._runner is None:
            return
        await self.channel.close()
        await self._runner.cleanup()
        self._runner = None
        logger.info("Server closed")


__all__ = [
    "ip_allowed",
    "whitelist_middleware",
    "TransportServer",
]
