"""
Helpers - Update Notification.

============================================================
PURPOSE
============================================================
Built-in helper that tells clients which host version is
running and whether it satisfies a version they ask about.

ENDPOINTS:
- GET <base>/updatenotification/version

NOTIFICATIONS:
- client -> CHECK_VERSION {"minimum": "1.2"}
- helper -> VERSION_STATUS {"current": ..., "minimum": ..., "satisfied": bool}

============================================================
"""

from typing import Any, Dict

from aiohttp import web

from core.exceptions import InvalidVersionFormat
from core.versioning import is_version_satisfied

from .base import HelperUnit


class UpdateNotificationHelper(HelperUnit):
    """Reports the host version over HTTP and the realtime channel."""

    def __init__(self, host_version: str) -> None:
        super().__init__()
        self.host_version = host_version

    async def start(self) -> None:
        await super().start()
        self.router.add_get(f"/{self.name}/version", self.handle_version)

    async def handle_version(self, request: web.Request) -> web.Response:
        """
        GET /updatenotification/version
        """
        return web.json_response({"status": "ok", "version": self.host_version})

    async def socket_notification_received(self, notification: str, payload: Any) -> None:
        if notification != "CHECK_VERSION":
            return
        minimum = (payload or {}).get("minimum") if isinstance(payload, dict) else None
        await self.send_socket_notification("VERSION_STATUS", self.check(minimum))

    def check(self, minimum: Any) -> Dict[str, Any]:
        """Compare the host version against a requested minimum."""
        status: Dict[str, Any] = {"current": self.host_version, "minimum": minimum}
        try:
            status["satisfied"] = is_version_satisfied(self.host_version, minimum)
        except InvalidVersionFormat as e:
            status["satisfied"] = False
            status["error"] = e.message
        return status
