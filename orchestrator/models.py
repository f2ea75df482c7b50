"""
Orchestrator - Models.

============================================================
RESPONSIBILITY
============================================================
Defines data models for the helper orchestrator.

- Module descriptors parsed from the configuration
- Helper lifecycle status
- Per-unit outcomes and batch results
- Runtime configuration

============================================================
"""

from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional
import logging
import os

from core.constants import (
    CLEAN_EXIT_CODE,
    DEFAULT_SHUTDOWN_DEADLINE_SECONDS,
    FORCED_EXIT_CODE,
    HOST_VERSION,
)


logger = logging.getLogger(__name__)


# ============================================================
# MODULE DESCRIPTOR
# ============================================================

_PRESENTATION_KEYS = ("position", "header", "classes")


@dataclass
class ModuleDescriptor:
    """One entry of the configuration's module list."""

    identity: str
    """Module name, optionally with a subpath ("folder/name")."""

    disabled: bool = False
    """Disabled entries are never discovered."""

    settings: Dict[str, Any] = field(default_factory=dict)
    """Opaque per-module settings."""

    extra: Dict[str, Any] = field(default_factory=dict)
    """Presentation keys, kept for the widget layer."""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ModuleDescriptor":
        """Build a descriptor from a configuration entry."""
        return cls(
            identity=str(data["module"]),
            disabled=bool(data.get("disabled", False)),
            settings=dict(data.get("config") or {}),
            extra={k: data[k] for k in _PRESENTATION_KEYS if k in data},
        )


def parse_descriptors(config: Mapping[str, Any]) -> List[ModuleDescriptor]:
    """
    Convert the configuration's module list into descriptors.

    Entries without a "module" key are skipped with a warning.
    """
    descriptors = []
    for index, entry in enumerate(config.get("modules") or []):
        if not isinstance(entry, Mapping) or "module" not in entry:
            logger.warning(f"Skipping module entry #{index}: no 'module' key")
            continue
        descriptors.append(ModuleDescriptor.from_dict(entry))
    return descriptors


# ============================================================
# HELPER STATUS
# ============================================================

class HelperStatus(Enum):
    """Helper lifecycle status."""

    NOT_STARTED = "not_started"
    """Loaded, start hook not yet called."""

    STARTING = "starting"
    """Start hook in flight."""

    RUNNING = "running"
    """Start hook returned."""

    FAILED = "failed"
    """A start or stop hook raised, or start timed out."""

    STOPPING = "stopping"
    """Stop hook in flight."""

    STOPPED = "stopped"
    """Stop hook returned (or no stop hook)."""


@dataclass
class HelperInstance:
    """Runtime record of a loaded helper."""

    identity: str
    helper: Any
    path: Path
    namespace: str
    status: HelperStatus = HelperStatus.NOT_STARTED
    started_at: Optional[datetime] = None
    stopped_at: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def name(self) -> str:
        """Helper name without subpath."""
        return self.identity.split("/")[-1]

    @property
    def has_stop_hook(self) -> bool:
        return callable(getattr(self.helper, "stop", None))

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "identity": self.identity,
            "path": str(self.path),
            "namespace": self.namespace,
            "status": self.status.value,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "stopped_at": self.stopped_at.isoformat() if self.stopped_at else None,
            "error": self.error,
        }


# ============================================================
# OUTCOMES
# ============================================================

@dataclass
class UnitOutcome:
    """Outcome of one helper's start or stop hook."""

    identity: str
    succeeded: bool
    duration_seconds: float = 0.0
    error: Optional[str] = None
    error_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identity": self.identity,
            "succeeded": self.succeeded,
            "duration_seconds": self.duration_seconds,
            "error": self.error,
            "error_type": self.error_type,
        }


@dataclass
class BatchResult:
    """Full set of per-unit outcomes of a start or stop batch."""

    operation: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    outcomes: List[UnitOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> List[UnitOutcome]:
        return [o for o in self.outcomes if o.succeeded]

    @property
    def failed(self) -> List[UnitOutcome]:
        return [o for o in self.outcomes if not o.succeeded]

    @property
    def all_succeeded(self) -> bool:
        return not self.failed

    def outcome_for(self, identity: str) -> Optional[UnitOutcome]:
        """Get the outcome for a helper identity."""
        return next((o for o in self.outcomes if o.identity == identity), None)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "operation": self.operation,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "succeeded": len(self.succeeded),
            "failed": len(self.failed),
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


# ============================================================
# ORCHESTRATOR CONFIGURATION
# ============================================================

def _optional_float(value: Optional[str]) -> Optional[float]:
    return float(value) if value else None


@dataclass
class OrchestratorConfig:
    """Configuration for the orchestrator."""

    host_version: str = HOST_VERSION
    """Version compared against each helper's minimum."""

    modules_root: str = "modules"
    """Directory that helper base paths are resolved under."""

    # Shutdown settings
    shutdown_deadline_seconds: float = DEFAULT_SHUTDOWN_DEADLINE_SECONDS
    """Hard deadline armed on the first termination signal."""

    forced_exit_code: int = FORCED_EXIT_CODE
    """Exit code when the deadline fires."""

    clean_exit_code: int = CLEAN_EXIT_CODE
    """Exit code after a graceful shutdown."""

    # Startup settings
    start_timeout_seconds: Optional[float] = None
    """Per-helper start timeout. None waits indefinitely."""

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"

    session_id_prefix: str = "session"
    """Prefix for the session id attached to log lines."""

    @classmethod
    def from_env(cls) -> "OrchestratorConfig":
        """Load configuration from environment variables."""
        return cls(
            modules_root=os.getenv("MIRROR_MODULES_ROOT", "modules"),
            shutdown_deadline_seconds=float(
                os.getenv("MIRROR_SHUTDOWN_DEADLINE_SECONDS", str(DEFAULT_SHUTDOWN_DEADLINE_SECONDS))
            ),
            start_timeout_seconds=_optional_float(os.getenv("MIRROR_START_TIMEOUT_SECONDS")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
        )

    def validate(self) -> List[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if self.shutdown_deadline_seconds <= 0:
            errors.append("shutdown_deadline_seconds must be positive")

        if self.start_timeout_seconds is not None and self.start_timeout_seconds <= 0:
            errors.append("start_timeout_seconds must be positive when set")

        if self.log_format not in ("json", "text"):
            errors.append("log_format must be 'json' or 'text'")

        return errors


ExitCallback = Callable[[int], Any]


__all__ = [
    "ModuleDescriptor",
    "parse_descriptors",
    "HelperStatus",
    "HelperInstance",
    "UnitOutcome",
    "BatchResult",
    "OrchestratorConfig",
    "ExitCallback",
]
