"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines all custom exceptions for the helper runtime.

- Provides clear exception hierarchy
- Separates per-unit failures from runtime failures
- Includes context for debugging

============================================================
EXCEPTION HIERARCHY
============================================================
MirrorException (base)
├── ConfigurationError
├── InvalidVersionFormat (also ValueError)
├── StateTransitionError
├── HelperError
│   ├── DiscoveryWarning
│   ├── StartFailure
│   └── StopFailure
└── ShutdownTimeout

============================================================
PROPAGATION
============================================================
HelperError subclasses never cross a unit boundary. They are
built by the runtime to describe a caught failure, logged with
the unit identity, and recorded in a BatchResult.

ShutdownTimeout is the only error that ends the process.

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels for logging."""

    LOW = "low"
    """Minor issue, informational."""

    MEDIUM = "medium"
    """Moderate issue, requires attention."""

    HIGH = "high"
    """Serious issue, a unit is not operating."""

    CRITICAL = "critical"
    """The process is about to be terminated."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class MirrorException(Exception):
    """
    Base exception for all runtime errors.

    All exceptions carry:
    - severity: for log level selection
    - context: for debugging
    - cause: the original exception, when wrapping
    - timestamp: when the error occurred
    """

    default_severity: Severity = Severity.MEDIUM

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause is not None:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging/storage."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }

    def to_log_format(self) -> str:
        """Format exception for structured logging."""
        ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
        line = f"[{self.severity.value.upper()}] {type(self).__name__}: {self.message}"
        if ctx_str:
            line += f" | {ctx_str}"
        return line


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(MirrorException):
    """Error in configuration."""

    default_severity = Severity.HIGH


# ============================================================
# VERSION ERRORS
# ============================================================

class InvalidVersionFormat(MirrorException, ValueError):
    """A version string contains an empty or non-numeric segment."""

    default_severity = Severity.LOW

    def __init__(self, version: Any, segment: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        context["version"] = version
        if segment is not None:
            context["segment"] = segment

        super().__init__(
            f"Invalid version format: {version!r}",
            context=context,
            **kwargs,
        )
        self.version = version


# ============================================================
# STATE ERRORS
# ============================================================

class StateTransitionError(MirrorException):
    """Invalid runtime state transition."""

    default_severity = Severity.HIGH

    def __init__(
        self,
        message: str,
        from_state: Optional[str] = None,
        to_state: Optional[str] = None,
        reason: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if from_state:
            context["from_state"] = from_state
        if to_state:
            context["to_state"] = to_state
        if reason:
            context["reason"] = reason

        super().__init__(message, context=context, **kwargs)


# ============================================================
# HELPER ERRORS
# ============================================================

class HelperError(MirrorException):
    """Base for failures scoped to a single helper unit."""

    def __init__(self, message: str, identity: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if identity:
            context["identity"] = identity

        super().__init__(message, context=context, **kwargs)
        self.identity = identity


class DiscoveryWarning(HelperError):
    """Helper missing or incompatible. The unit is skipped."""

    default_severity = Severity.LOW


class StartFailure(HelperError):
    """A helper's start hook raised or timed out."""

    default_severity = Severity.HIGH


class StopFailure(HelperError):
    """A helper's stop hook raised."""

    default_severity = Severity.MEDIUM


# ============================================================
# SHUTDOWN ERRORS
# ============================================================

class ShutdownTimeout(MirrorException):
    """Graceful shutdown did not finish before the hard deadline."""

    default_severity = Severity.CRITICAL

    def __init__(
        self,
        message: str,
        deadline_seconds: Optional[float] = None,
        pending: Optional[list] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if deadline_seconds is not None:
            context["deadline_seconds"] = deadline_seconds
        if pending:
            context["pending"] = ", ".join(pending)

        super().__init__(message, context=context, **kwargs)


# ============================================================
# UTILITY FUNCTIONS
# ============================================================

def wrap_exception(
    exc: BaseException,
    wrapper_class: type = MirrorException,
    message: Optional[str] = None,
    **kwargs,
) -> MirrorException:
    """Wrap a standard exception in a MirrorException."""
    msg = message or f"{type(exc).__name__}: {exc}"
    return wrapper_class(msg, cause=exc, **kwargs)


__all__ = [
    "Severity",
    "MirrorException",
    "ConfigurationError",
    "InvalidVersionFormat",
    "StateTransitionError",
    "HelperError",
    "DiscoveryWarning",
    "StartFailure",
    "StopFailure",
    "ShutdownTimeout",
    "wrap_exception",
]
