"""
Tests for the Runtime State Machine.

============================================================
TEST COVERAGE
============================================================
1. Valid forward transitions
2. Rejected transitions
3. History and listeners
============================================================
"""

import pytest
from unittest.mock import AsyncMock

from core.exceptions import StateTransitionError
from core.state_manager import RuntimeState, StateManager, VALID_TRANSITIONS


# ============================================================
# TRANSITION TESTS
# ============================================================

class TestTransitions:
    """Test StateManager transitions."""

    @pytest.mark.asyncio
    async def test_full_lifecycle(self):
        """IDLE -> LOADING -> STARTING -> RUNNING -> STOPPING -> STOPPED."""
        manager = StateManager()
        for state in [
            RuntimeState.LOADING,
            RuntimeState.STARTING,
            RuntimeState.RUNNING,
            RuntimeState.STOPPING,
            RuntimeState.STOPPED,
        ]:
            await manager.transition_to(state, reason=f"to {state.value}")
        assert manager.state == RuntimeState.STOPPED
        assert manager.reason == "to stopped"

    @pytest.mark.asyncio
    async def test_stop_from_loading(self):
        """Shutdown may interrupt loading."""
        manager = StateManager()
        await manager.transition_to(RuntimeState.LOADING, "load")
        await manager.transition_to(RuntimeState.STOPPING, "signal")
        assert manager.state == RuntimeState.STOPPING

    @pytest.mark.asyncio
    async def test_idle_straight_to_stopped(self):
        """Nothing loaded means nothing to stop."""
        manager = StateManager()
        await manager.transition_to(RuntimeState.STOPPED, "shutdown before load")
        assert manager.state == RuntimeState.STOPPED

    @pytest.mark.asyncio
    async def test_backwards_transition_rejected(self):
        """RUNNING never returns to STARTING."""
        manager = StateManager(initial_state=RuntimeState.RUNNING)
        with pytest.raises(StateTransitionError) as exc_info:
            await manager.transition_to(RuntimeState.STARTING, "restart")
        assert exc_info.value.context["from_state"] == "running"
        assert manager.state == RuntimeState.RUNNING

    @pytest.mark.asyncio
    async def test_stopped_is_terminal(self):
        manager = StateManager(initial_state=RuntimeState.STOPPED)
        for state in RuntimeState:
            assert not manager.can_transition_to(state)

    def test_transition_table_is_forward_only(self):
        """No state can reach IDLE."""
        for targets in VALID_TRANSITIONS.values():
            assert RuntimeState.IDLE not in targets


# ============================================================
# HISTORY AND LISTENER TESTS
# ============================================================

class TestHistoryAndListeners:
    """Test transition history and listeners."""

    @pytest.mark.asyncio
    async def test_history_records_transitions(self):
        manager = StateManager()
        await manager.transition_to(RuntimeState.LOADING, "load", triggered_by="test")
        history = manager.get_history()
        assert len(history) == 1
        assert history[0].from_state == RuntimeState.IDLE
        assert history[0].to_dict()["triggered_by"] == "test"

    @pytest.mark.asyncio
    async def test_listener_called(self):
        manager = StateManager()
        listener = AsyncMock()
        manager.register_listener(listener)
        transition = await manager.transition_to(RuntimeState.LOADING, "load")
        listener.assert_awaited_once_with(transition)

    @pytest.mark.asyncio
    async def test_listener_error_does_not_block_transition(self):
        manager = StateManager()
        manager.register_listener(AsyncMock(side_effect=RuntimeError("listener broke")))
        await manager.transition_to(RuntimeState.LOADING, "load")
        assert manager.state == RuntimeState.LOADING

    @pytest.mark.asyncio
    async def test_unregistered_listener_not_called(self):
        manager = StateManager()
        listener = AsyncMock()
        manager.register_listener(listener)
        manager.unregister_listener(listener)
        await manager.transition_to(RuntimeState.LOADING, "load")
        listener.assert_not_awaited()
