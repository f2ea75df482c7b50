"""
Helpers - Base Helper Unit.

============================================================
RESPONSIBILITY
============================================================
Defines the contract every server-side helper implements.

- Identity and base path assigned by the registry
- Optional minimum host version
- loaded() notification before start
- Router and realtime channel attachment
- async start(), optional async stop()

============================================================
USAGE
============================================================
```python
class NewsHelper(HelperUnit):
    requires_version = "1.0.0"

    async def start(self) -> None:
        await super().start()
        self.router.add_get("/news", self.handle_news)

    async def socket_notification_received(self, notification, payload):
        if notification == "FETCH":
            await self.send_socket_notification("ITEMS", [])
```

A helper that needs cleanup defines `async def stop(self)`.
The base class has no stop hook; helpers without one are
treated as trivially stopped.

============================================================
"""

import logging
from pathlib import Path
from typing import Any, Optional, Protocol, Union


# ============================================================
# HELPER PROTOCOL
# ============================================================

class HelperProtocol(Protocol):
    """Protocol that all helpers should implement."""

    requires_version: Optional[str]

    def set_name(self, name: str) -> None:
        ...

    def set_path(self, path: Path) -> None:
        ...

    def loaded(self) -> None:
        ...

    def set_router(self, router: Any) -> None:
        ...

    def set_realtime_channel(self, channel: Any) -> None:
        ...

    async def start(self) -> None:
        ...


# ============================================================
# HELPER BASE CLASS
# ============================================================

class HelperUnit:
    """Base class for server-side helpers."""

    requires_version: Optional[str] = None

    def __init__(self) -> None:
        self.name: Optional[str] = None
        self.path: Optional[Path] = None
        self.router: Any = None
        self.channel: Any = None
        self._namespace: Any = None
        self._logger = logging.getLogger(f"helpers.{type(self).__name__}")

    def set_name(self, name: str) -> None:
        self.name = name

    def set_path(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def loaded(self) -> None:
        """Called once after construction, before start."""
        self._logger.info(f"Module helper loaded: {self.name}")

    # --------------------------------------------------------
    # Transport
    # --------------------------------------------------------

    def set_router(self, router: Any) -> None:
        self.router = router

    def set_realtime_channel(self, channel: Any) -> None:
        """Join the namespace named after this helper."""
        self.channel = channel
        self._namespace = channel.of(self.name)
        self._namespace.on_any(self.socket_notification_received)

    async def send_socket_notification(self, notification: str, payload: Any = None) -> int:
        """
        Send a notification to every client in this helper's namespace.

        Returns:
            Number of clients the message was delivered to
        """
        if self._namespace is None:
            self._logger.warning(
                f"{self.name}: no realtime channel, dropping {notification}"
            )
            return 0
        return await self._namespace.emit(notification, payload)

    async def socket_notification_received(self, notification: str, payload: Any) -> None:
        """Handle a notification sent by a client. Override in subclasses."""
        self._logger.debug(f"{self.name} received {notification}")

    # --------------------------------------------------------
    # Lifecycle
    # --------------------------------------------------------

    async def start(self) -> None:
        self._logger.info(f"Starting module helper: {self.name}")


__all__ = [
    "HelperProtocol",
    "HelperUnit",
]
