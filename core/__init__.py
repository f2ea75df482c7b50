"""
Core Module Package.

This package contains the core infrastructure components
that the orchestrator and helpers depend on.

Components:
- constants: Host version, namespaces, exit codes
- exceptions: Custom exception hierarchy
- versioning: Dotted version comparison
- state_manager: Runtime state machine
- config_loader: Configuration file loading
"""

from .constants import HOST_VERSION
from .exceptions import InvalidVersionFormat, MirrorException
from .state_manager import RuntimeState, StateManager
from .versioning import compare_versions, is_version_satisfied

__all__ = [
    "HOST_VERSION",
    "InvalidVersionFormat",
    "MirrorException",
    "RuntimeState",
    "StateManager",
    "compare_versions",
    "is_version_satisfied",
]
