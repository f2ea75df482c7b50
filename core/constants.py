"""
Core Module - Constants.

============================================================
RESPONSIBILITY
============================================================
Defines all system-wide constants.

- Host identification and version
- Names of the built-in modules
- Exit codes and shutdown bounds
- Deprecated configuration options

============================================================
"""

# ============================================================
# SYSTEM IDENTIFICATION
# ============================================================

SYSTEM_NAME = "mirror-runtime"

HOST_VERSION = "1.0.0"
"""Version compared against each helper's requires_version."""

# ============================================================
# MODULE NAMESPACES
# ============================================================

DEFAULT_NAMESPACE = "default"
THIRD_PARTY_NAMESPACE = "third_party"

DEFAULT_MODULES = (
    "alert",
    "calendar",
    "clock",
    "compliments",
    "helloworld",
    "newsfeed",
    "updatenotification",
    "weather",
)
"""Modules shipped with the host. Resolved under <modules_root>/default."""

HELPER_ENTRY_POINT_GROUP = "mirror_runtime.helpers"

# ============================================================
# SHUTDOWN
# ============================================================

DEFAULT_SHUTDOWN_DEADLINE_SECONDS = 3.0

CLEAN_EXIT_CODE = 0
FORCED_EXIT_CODE = 124
"""Exit code when the hard shutdown deadline fires."""

# ============================================================
# CONFIGURATION
# ============================================================

DEFAULT_CONFIG_PATH = "config/config.yaml"

DEPRECATED_OPTIONS = (
    "kioskmode",
    "serverOnly",
    "zoom",
)
"""Top-level options that are still accepted but ignored."""
