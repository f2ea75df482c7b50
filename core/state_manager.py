"""
Core Module - State Manager.

============================================================
RESPONSIBILITY
============================================================
Tracks the lifecycle state of the helper runtime.

- Enforces the forward-only state machine
- Records a bounded transition history
- Notifies listeners on state change

============================================================
STATE MACHINE
============================================================
IDLE -> LOADING -> STARTING -> RUNNING -> STOPPING -> STOPPED

- STOPPING is reachable from LOADING, STARTING and RUNNING
- IDLE may go straight to STOPPED (nothing was loaded)
- STOPPED is terminal
- No backward transitions

============================================================
"""

from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Set
import asyncio
import logging

from .exceptions import StateTransitionError


# ============================================================
# RUNTIME STATE
# ============================================================

class RuntimeState(Enum):
    """Runtime state enumeration."""

    IDLE = "idle"
    """Constructed, nothing loaded."""

    LOADING = "loading"
    """Resolving and instantiating helpers."""

    STARTING = "starting"
    """Start hooks are in flight."""

    RUNNING = "running"
    """Start batch settled; steady state."""

    STOPPING = "stopping"
    """Shutdown requested; stop hooks in flight."""

    STOPPED = "stopped"
    """All helpers stopped and transport closed."""


# ============================================================
# STATE TRANSITIONS
# ============================================================

VALID_TRANSITIONS: Dict[RuntimeState, Set[RuntimeState]] = {
    RuntimeState.IDLE: {
        RuntimeState.LOADING,
        RuntimeState.STOPPED,
    },
    RuntimeState.LOADING: {
        RuntimeState.STARTING,
        RuntimeState.STOPPING,
    },
    RuntimeState.STARTING: {
        RuntimeState.RUNNING,
        RuntimeState.STOPPING,
    },
    RuntimeState.RUNNING: {
        RuntimeState.STOPPING,
    },
    RuntimeState.STOPPING: {
        RuntimeState.STOPPED,
    },
    RuntimeState.STOPPED: set(),
}


@dataclass
class StateTransition:
    """Record of a state transition."""

    transition_id: str
    from_state: RuntimeState
    to_state: RuntimeState
    reason: str
    triggered_by: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "transition_id": self.transition_id,
            "from_state": self.from_state.value,
            "to_state": self.to_state.value,
            "reason": self.reason,
            "triggered_by": self.triggered_by,
            "timestamp": self.timestamp.isoformat(),
        }


StateListener = Callable[[StateTransition], Awaitable[None]]


# ============================================================
# STATE MANAGER
# ============================================================

class StateManager:
    """
    Manages runtime state with transition validation.

    Listener errors are logged and never interrupt a transition.
    """

    def __init__(self, initial_state: RuntimeState = RuntimeState.IDLE):
        self._state = initial_state
        self._reason = "Runtime created"
        self._transition_count = 0
        self._history: List[StateTransition] = []
        self._max_history = 50
        self._listeners: List[StateListener] = []

        self._lock = asyncio.Lock()
        self._logger = logging.getLogger(__name__)

    @property
    def state(self) -> RuntimeState:
        """Get current runtime state."""
        return self._state

    @property
    def reason(self) -> str:
        """Get reason for current state."""
        return self._reason

    def get_history(self, limit: int = 10) -> List[StateTransition]:
        """Get transition history."""
        return self._history[-limit:]

    def can_transition_to(self, target_state: RuntimeState) -> bool:
        """Check if transition to target state is valid."""
        return target_state in VALID_TRANSITIONS.get(self._state, set())

    async def transition_to(
        self,
        target_state: RuntimeState,
        reason: str,
        triggered_by: str = "runtime",
    ) -> StateTransition:
        """
        Transition to a new state.

        Raises:
            StateTransitionError: If transition is invalid
        """
        async with self._lock:
            if not self.can_transition_to(target_state):
                raise StateTransitionError(
                    message=f"Invalid state transition: {self._state.value} -> {target_state.value}",
                    from_state=self._state.value,
                    to_state=target_state.value,
                    reason=reason,
                )

            self._transition_count += 1
            transition = StateTransition(
                transition_id=f"transition_{self._transition_count}",
                from_state=self._state,
                to_state=target_state,
                reason=reason,
                triggered_by=triggered_by,
            )

            self._state = target_state
            self._reason = reason
            self._history.append(transition)
            if len(self._history) > self._max_history:
                self._history = self._history[-self._max_history:]

            self._logger.info(
                f"State transition: {transition.from_state.value} -> {target_state.value} "
                f"| reason={reason} | triggered_by={triggered_by}"
            )

            await self._notify_listeners(transition)

            return transition

    def register_listener(self, listener: StateListener) -> None:
        """Register a state change listener."""
        self._listeners.append(listener)

    def unregister_listener(self, listener: StateListener) -> None:
        """Unregister a state change listener."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def _notify_listeners(self, transition: StateTransition) -> None:
        for listener in self._listeners:
            try:
                await listener(transition)
            except Exception as e:
                self._logger.error(f"State listener error: {e}", exc_info=True)


__all__ = [
    "RuntimeState",
    "StateTransition",
    "StateListener",
    "StateManager",
    "VALID_TRANSITIONS",
]
