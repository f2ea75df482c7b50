"""
Transport - Realtime Channel.

============================================================
PURPOSE
============================================================
WebSocket fan-out between helpers and browser clients.

Each helper owns the namespace named after it. Clients
connect to <base_path>ws/<namespace> and exchange JSON
messages:

    {"notification": "NAME", "payload": ...}

FEATURES:
- Per-namespace client sets
- Per-notification and catch-all listeners
- Listener errors are logged, never raised to the socket loop

============================================================
"""

import asyncio
import inspect
import json
import logging
from typing import Any, Callable, Dict, List, Set

from aiohttp import WSMsgType, web


logger = logging.getLogger(__name__)


Listener = Callable[[str, Any], Any]


# ============================================================
# NAMESPACE
# ============================================================

class Namespace:
    """Clients and listeners of one helper."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._clients: Set[web.WebSocketResponse] = set()
        self._listeners: Dict[str, List[Listener]] = {}
        self._any_listeners: List[Listener] = []

    @property
    def client_count(self) -> int:
        return len(self._clients)

    def on(self, notification: str, listener: Listener) -> None:
        """Listen for one notification name. Listener gets the payload."""
        self._listeners.setdefault(notification, []).append(
            lambda _notification, payload: listener(payload)
        )

    def on_any(self, listener: Listener) -> None:
        """Listen for every notification. Listener gets (notification, payload)."""
        self._any_listeners.append(listener)

    def add_client(self, ws: web.WebSocketResponse) -> None:
        self._clients.add(ws)

    def remove_client(self, ws: web.WebSocketResponse) -> None:
        self._clients.discard(ws)

    async def emit(self, notification: str, payload: Any = None) -> int:
        """
        Send a notification to every connected client.

        Returns:
            Number of clients reached
        """
        message = json.dumps({"notification": notification, "payload": payload}, default=str)
        delivered = 0
        for ws in list(self._clients):
            if ws.closed:
                self._clients.discard(ws)
                continue
            try:
                await ws.send_str(message)
                delivered += 1
            except (ConnectionError, RuntimeError) as e:
                logger.warning(f"[{self.name}] dropping client: {e}")
                self._clients.discard(ws)
        return delivered

    async def dispatch(self, notification: str, payload: Any) -> None:
        """Deliver an inbound notification to listeners."""
        listeners = self._listeners.get(notification, []) + self._any_listeners
        for listener in listeners:
            try:
                result = listener(notification, payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(
                    f"[{self.name}] listener error for {notification}: {e}",
                    exc_info=True,
                )

    async def close(self) -> None:
        for ws in list(self._clients):
            await ws.close()
        self._clients.clear()


# ============================================================
# CHANNEL
# ============================================================

class RealtimeChannel:
    """Registry of namespaces plus the WebSocket request handler."""

    def __init__(self, heartbeat_seconds: float = 30.0) -> None:
        self._namespaces: Dict[str, Namespace] = {}
        self._heartbeat = heartbeat_seconds

    def of(self, name: str) -> Namespace:
        """Get (or create) a namespace."""
        if name not in self._namespaces:
            self._namespaces[name] = Namespace(name)
        return self._namespaces[name]

    def namespaces(self) -> List[str]:
        return sorted(self._namespaces)

    async def handle_websocket(self, request: web.Request) -> web.WebSocketResponse:
        """
        GET <base_path>ws/{namespace}
        """
        namespace = self.of(request.match_info["namespace"])
        ws = web.WebSocketResponse(heartbeat=self._heartbeat)
        await ws.prepare(request)

        namespace.add_client(ws)
        logger.debug(f"[{namespace.name}] client connected ({namespace.client_count})")
        try:
            async for msg in ws:
                if msg.type == WSMsgType.TEXT:
                    await self._handle_text(namespace, msg.data)
                elif msg.type == WSMsgType.ERROR:
                    logger.warning(f"[{namespace.name}] socket error: {ws.exception()}")
        finally:
            namespace.remove_client(ws)
            logger.debug(f"[{namespace.name}] client disconnected")

        return ws

    async def _handle_text(self, namespace: Namespace, data: str) -> None:
        try:
            message = json.loads(data)
            notification = message["notification"]
        except (ValueError, KeyError, TypeError):
            logger.warning(f"[{namespace.name}] ignoring malformed message")
            return
        await namespace.dispatch(str(notification), message.get("payload"))

    async def close(self) -> None:
        """Disconnect every client."""
        await asyncio.gather(
            *(namespace.close() for namespace in self._namespaces.values()),
            return_exceptions=True,
        )


__all__ = [
    "Listener",
    "Namespace",
    "RealtimeChannel",
]
