"""
Transport Package - Shared HTTP and Realtime Handles.

Components:
- server: aiohttp server owned by the orchestrator
- router: route table helpers extend at runtime
- realtime: WebSocket namespaces for helper notifications
"""

from .realtime import Namespace, RealtimeChannel
from .router import HelperRouter
from .server import TransportServer, ip_allowed

__all__ = [
    "HelperRouter",
    "Namespace",
    "RealtimeChannel",
    "TransportServer",
    "ip_allowed",
]
