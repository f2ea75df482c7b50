"""
Helpers Package - Server-Side Helper Units.

Components:
- base: HelperProtocol and the HelperUnit base class
- updatenotification: built-in host version helper

BUILTIN_HELPERS maps each built-in module name to the
constructor of its helper. Built-in modules not listed here
are presentation-only and have no server-side component.
"""

from typing import Callable, Dict

from .base import HelperProtocol, HelperUnit
from .updatenotification import UpdateNotificationHelper


BUILTIN_HELPERS: Dict[str, Callable[..., HelperUnit]] = {
    "updatenotification": UpdateNotificationHelper,
}

__all__ = [
    "BUILTIN_HELPERS",
    "HelperProtocol",
    "HelperUnit",
    "UpdateNotificationHelper",
]
