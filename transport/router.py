"""
Transport - Helper Router.

============================================================
PURPOSE
============================================================
Route table that helpers extend while the server is running.

aiohttp freezes its router once the application starts, but
helpers register their endpoints from start(). The server
mounts one catch-all route and forwards to this table.

Path segments in braces are captured:
    router.add_get("/calendar/{name}", handler)
    request["match_params"] -> {"name": "..."}

============================================================
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from aiohttp import web


logger = logging.getLogger(__name__)


Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


@dataclass
class _Route:
    method: str
    segments: Tuple[str, ...]
    handler: Handler

    def match(self, segments: Tuple[str, ...]) -> Optional[Dict[str, str]]:
        if len(segments) != len(self.segments):
            return None
        params = {}
        for pattern, value in zip(self.segments, segments):
            if pattern.startswith("{") and pattern.endswith("}"):
                params[pattern[1:-1]] = value
            elif pattern != value:
                return None
        return params


def _split(path: str) -> Tuple[str, ...]:
    return tuple(part for part in path.strip("/").split("/") if part)


class HelperRouter:
    """Dynamic route table shared by all helpers."""

    def __init__(self) -> None:
        self._routes: List[_Route] = []

    def add_route(self, method: str, path: str, handler: Handler) -> None:
        """Register a handler. Later registrations do not replace earlier ones."""
        route = _Route(method=method.upper(), segments=_split(path), handler=handler)
        for existing in self._routes:
            if existing.method == route.method and existing.segments == route.segments:
                logger.warning(f"Route already registered: {route.method} {path}")
                return
        self._routes.append(route)
        logger.debug(f"Route added: {route.method} {path}")

    def add_get(self, path: str, handler: Handler) -> None:
        self.add_route("GET", path, handler)

    def add_post(self, path: str, handler: Handler) -> None:
        self.add_route("POST", path, handler)

    def routes(self) -> List[str]:
        """Get registered routes as "METHOD /path" strings."""
        return [f"{r.method} /{'/'.join(r.segments)}" for r in self._routes]

    async def dispatch(self, request: web.Request, path: str) -> web.StreamResponse:
        """
        Forward a request to the matching handler.

        Raises:
            HTTPNotFound: No route matches the path
            HTTPMethodNotAllowed: Path matches but not for this method
        """
        segments = _split(path)
        allowed = []
        for route in self._routes:
            params = route.match(segments)
            if params is None:
                continue
            if route.method != request.method:
                allowed.append(route.method)
                continue
            request["match_params"] = params
            return await route.handler(request)

        if allowed:
            raise web.HTTPMethodNotAllowed(request.method, allowed)
        raise web.HTTPNotFound()


__all__ = [
    "Handler",
    "HelperRouter",
]
