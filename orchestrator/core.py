"""
Orchestrator - Core.

============================================================
RESPONSIBILITY
============================================================
Main orchestrator class - owns the helper lifecycle.

- Loads the helpers a configuration requires, in order
- Wires every helper to the shared transport handles
- Starts and stops helpers concurrently
- Handles signals (SIGINT, SIGTERM) with a hard deadline
- Keeps the process alive on unrelated unhandled errors

============================================================
FAILURE POLICY
============================================================
No helper's failure reaches another helper or the runtime's
control flow. Start and stop failures are caught at the
helper boundary, logged with the helper identity, and kept
in a BatchResult. The only condition that ends the process
outside a graceful shutdown is the hard deadline.

============================================================
SHUTDOWN SEQUENCE
============================================================
1. First SIGINT/SIGTERM arms the hard deadline
2. In-flight start attempts are allowed to settle
3. stop() is issued to every loaded helper, concurrently
4. The transport is closed after every stop outcome settled
5. If the deadline fires first, the process exits at once

Further signals while stopping are logged and ignored.

The deadline runs on a watchdog thread, so a hook that blocks
the event loop cannot hold it back.

============================================================
"""

import asyncio
import inspect
import json
import logging
import os
import signal
import sys
import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from .models import (
    BatchResult,
    ExitCallback,
    HelperInstance,
    HelperStatus,
    ModuleDescriptor,
    OrchestratorConfig,
    UnitOutcome,
)
from .registry import HelperRegistry
from core.state_manager import RuntimeState, StateManager
from core.exceptions import (
    ConfigurationError,
    ShutdownTimeout,
    StartFailure,
    StopFailure,
    wrap_exception,
)


# ============================================================
# LOGGING SETUP
# ============================================================

def setup_logging(
    level: str = "INFO",
    log_format: str = "text",
    session_id: Optional[str] = None,
) -> logging.Logger:
    """
    Set up structured logging.

    Args:
        level: Log level
        log_format: Output format (json or text)
        session_id: Session ID attached to every line

    Returns:
        Configured logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
                "session_id": session_id or "",
            })
        )
    else:
        formatter = logging.Formatter(
            f"%(asctime)s | %(levelname)-8s | %(name)s | {session_id or ''} | %(message)s"
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    return logging.getLogger("orchestrator")


def new_session_id(prefix: str = "session") -> str:
    return f"{prefix}_{datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')}"


# ============================================================
# ORCHESTRATOR
# ============================================================

class Orchestrator:
    """
    Helper orchestration runtime.

    The transport is any object with `async open() -> (router, channel)`,
    `async close()` and an `is_open` property.
    """

    def __init__(
        self,
        config: OrchestratorConfig,
        registry: Optional[HelperRegistry] = None,
        transport: Any = None,
        exit_callback: Optional[ExitCallback] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            config: Orchestrator configuration
            registry: Helper registry (default: empty registry from config)
            transport: Transport server owning the shared handles
            exit_callback: Called with the exit code when the deadline fires
        """
        errors = config.validate()
        if errors:
            raise ConfigurationError(
                message=f"Invalid configuration: {', '.join(errors)}",
            )

        self._config = config
        self._registry = registry or HelperRegistry(
            modules_root=config.modules_root,
            host_version=config.host_version,
        )
        self._transport = transport
        self._exit = exit_callback or os._exit

        self._state_manager = StateManager()
        self._helpers: List[HelperInstance] = []

        # Shutdown bookkeeping
        self._shutdown_requested = False
        self._shutdown_started = False
        self._shutdown_task: Optional[asyncio.Task] = None
        self._deadline_timer: Optional[threading.Timer] = None
        self._pending_startup: Optional[asyncio.Future] = None
        self._stopped = asyncio.Event()
        self._forced = False

        self.last_start_result: Optional[BatchResult] = None
        self.last_stop_result: Optional[BatchResult] = None

        self._signals_installed = False
        self._logger = logging.getLogger("orchestrator")

    # --------------------------------------------------------
    # Properties
    # --------------------------------------------------------

    @property
    def config(self) -> OrchestratorConfig:
        return self._config

    @property
    def state(self) -> RuntimeState:
        """Get current runtime state."""
        return self._state_manager.state

    @property
    def state_manager(self) -> StateManager:
        return self._state_manager

    @property
    def registry(self) -> HelperRegistry:
        return self._registry

    @property
    def helpers(self) -> List[HelperInstance]:
        """Loaded helpers, in load order."""
        return list(self._helpers)

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown_requested

    @property
    def forced(self) -> bool:
        """Whether the hard deadline fired."""
        return self._forced

    # --------------------------------------------------------
    # Loading
    # --------------------------------------------------------

    async def load_all(self, identities: Sequence[str]) -> List[HelperInstance]:
        """
        Load helpers sequentially, preserving order.

        Loading stops early when shutdown has been requested.

        Returns:
            Helpers that were loaded
        """
        if self._shutdown_requested:
            self._logger.info("Shutdown requested, not loading module helpers")
            return self.helpers

        await self._state_manager.transition_to(
            RuntimeState.LOADING,
            reason=f"Loading {len(identities)} module helpers",
        )
        self._logger.info("Loading module helpers ...")

        for identity in identities:
            if self._shutdown_requested:
                self._logger.info(f"Shutdown requested, not loading {identity} and later helpers")
                break
            instance = self._registry.load(identity)
            if instance is not None:
                self._helpers.append(instance)
            await asyncio.sleep(0)

        self._logger.info(f"All module helpers loaded ({len(self._helpers)} of {len(identities)})")
        return self.helpers

    # --------------------------------------------------------
    # Startup
    # --------------------------------------------------------

    async def start_all(
        self,
        units: Sequence[HelperInstance],
        router: Any,
        channel: Any,
    ) -> BatchResult:
        """
        Wire every helper, then start all of them concurrently.

        Every helper receives both handles before any start hook
        runs. A failing helper is logged and recorded; the
        runtime reaches RUNNING regardless.

        Returns:
            BatchResult with one outcome per helper
        """
        result = BatchResult(operation="start", started_at=datetime.now(timezone.utc))
        if self._shutdown_requested:
            result.completed_at = datetime.now(timezone.utc)
            return result

        await self._state_manager.transition_to(
            RuntimeState.STARTING,
            reason=f"Starting {len(units)} module helpers",
        )

        wired: List[HelperInstance] = []
        for instance in units:
            try:
                instance.helper.set_router(router)
                instance.helper.set_realtime_channel(channel)
                wired.append(instance)
            except Exception as e:
                result.outcomes.append(self._record_start_failure(instance, e, 0.0))

        batch = asyncio.gather(*(self._start_unit(instance) for instance in wired))
        self._pending_startup = batch
        try:
            result.outcomes.extend(await batch)
        finally:
            self._pending_startup = None
        result.completed_at = datetime.now(timezone.utc)
        self.last_start_result = result

        self._logger.info(
            f"Started {len(result.succeeded)} module helpers, {len(result.failed)} failed"
        )

        if self._state_manager.state == RuntimeState.STARTING:
            await self._state_manager.transition_to(
                RuntimeState.RUNNING,
                reason="Start batch settled",
            )
        return result

    async def _start_unit(self, instance: HelperInstance) -> UnitOutcome:
        timeout = self._config.start_timeout_seconds
        instance.status = HelperStatus.STARTING
        began = time.monotonic()
        try:
            await self._await_hook(instance.helper.start, timeout)
        except asyncio.CancelledError as e:
            if self._being_cancelled():
                raise
            return self._record_start_failure(instance, e, time.monotonic() - began)
        except asyncio.TimeoutError as e:
            if timeout is None:
                return self._record_start_failure(instance, e, time.monotonic() - began)
            failure = StartFailure(
                f"Start timed out for helper {instance.name}",
                identity=instance.identity,
                context={"timeout_seconds": timeout},
            )
            return self._record_start_failure(instance, failure, time.monotonic() - began)
        except Exception as e:
            return self._record_start_failure(instance, e, time.monotonic() - began)

        instance.status = HelperStatus.RUNNING
        instance.started_at = datetime.now(timezone.utc)
        instance.error = None
        return UnitOutcome(
            identity=instance.identity,
            succeeded=True,
            duration_seconds=time.monotonic() - began,
        )

    def _record_start_failure(
        self,
        instance: HelperInstance,
        error: BaseException,
        duration: float,
    ) -> UnitOutcome:
        failure = error if isinstance(error, StartFailure) else wrap_exception(
            error,
            StartFailure,
            message=f"Error when starting helper for module {instance.name}",
            identity=instance.identity,
        )
        self._logger.error(failure.to_log_format(), exc_info=failure.cause or None)
        instance.status = HelperStatus.FAILED
        instance.error = failure.message
        cause = failure.cause or failure
        return UnitOutcome(
            identity=instance.identity,
            succeeded=False,
            duration_seconds=duration,
            error=str(cause) or type(cause).__name__,
            error_type=type(cause).__name__,
        )

    # --------------------------------------------------------
    # Shutdown
    # --------------------------------------------------------

    async def stop_all(self, units: Sequence[HelperInstance]) -> BatchResult:
        """
        Stop helpers concurrently.

        Helpers without a stop hook count as stopped. Failures
        are logged individually and never raised.

        Returns:
            BatchResult with one outcome per helper
        """
        result = BatchResult(operation="stop", started_at=datetime.now(timezone.utc))
        result.outcomes.extend(
            await asyncio.gather(*(self._stop_unit(instance) for instance in units))
        )
        result.completed_at = datetime.now(timezone.utc)
        self.last_stop_result = result

        self._logger.info(
            f"Module helpers stopped ({len(result.succeeded)} ok, {len(result.failed)} failed)"
        )
        return result

    async def _stop_unit(self, instance: HelperInstance) -> UnitOutcome:
        if not instance.has_stop_hook:
            instance.status = HelperStatus.STOPPED
            instance.stopped_at = datetime.now(timezone.utc)
            return UnitOutcome(identity=instance.identity, succeeded=True)

        instance.status = HelperStatus.STOPPING
        began = time.monotonic()
        try:
            await self._await_hook(instance.helper.stop, None)
        except (Exception, asyncio.CancelledError) as e:
            if isinstance(e, asyncio.CancelledError) and self._being_cancelled():
                raise
            failure = wrap_exception(
                e,
                StopFailure,
                message=f"Error when stopping helper for module {instance.name}",
                identity=instance.identity,
            )
            self._logger.error(failure.to_log_format(), exc_info=e)
            instance.status = HelperStatus.FAILED
            instance.error = failure.message
            return UnitOutcome(
                identity=instance.identity,
                succeeded=False,
                duration_seconds=time.monotonic() - began,
                error=str(e) or type(e).__name__,
                error_type=type(e).__name__,
            )

        instance.status = HelperStatus.STOPPED
        instance.stopped_at = datetime.now(timezone.utc)
        return UnitOutcome(
            identity=instance.identity,
            succeeded=True,
            duration_seconds=time.monotonic() - began,
        )

    async def shutdown(self, reason: str = "Shutdown requested", triggered_by: str = "runtime") -> None:
        """
        Stop every loaded helper, then close the transport.

        Safe to call more than once; later calls wait for the
        first to finish.
        """
        if self._shutdown_started:
            await self._stopped.wait()
            return
        self._shutdown_started = True
        self._shutdown_requested = True

        self._logger.info("=== SHUTDOWN SEQUENCE ===")

        if self._state_manager.state == RuntimeState.IDLE:
            await self._state_manager.transition_to(RuntimeState.STOPPED, reason, triggered_by)
            self._finish_shutdown()
            return

        await self._state_manager.transition_to(RuntimeState.STOPPING, reason, triggered_by)

        pending = self._pending_startup
        if pending is not None and not pending.done():
            self._logger.info("Waiting for in-flight helper starts to settle")
            await asyncio.wait([pending])

        await self.stop_all(self._helpers)

        if self._transport is not None and self._transport.is_open:
            try:
                await self._transport.close()
            except Exception as e:
                self._logger.error(f"Error closing transport: {e}", exc_info=True)

        await self._state_manager.transition_to(
            RuntimeState.STOPPED,
            reason="Graceful shutdown complete",
            triggered_by=triggered_by,
        )
        self._finish_shutdown()
        self._logger.info("=== SHUTDOWN COMPLETE ===")

    def _finish_shutdown(self) -> None:
        if self._deadline_timer is not None:
            self._deadline_timer.cancel()
            self._deadline_timer = None
        self._stopped.set()

    def _arm_deadline(self) -> None:
        """Start the hard deadline watchdog, once."""
        if self._deadline_timer is not None or self._stopped.is_set():
            return
        timer = threading.Timer(self._config.shutdown_deadline_seconds, self._on_deadline)
        timer.daemon = True
        timer.name = "shutdown-deadline"
        self._deadline_timer = timer
        timer.start()

    async def wait_stopped(self) -> None:
        """Wait until shutdown completed."""
        await self._stopped.wait()

    def request_shutdown(self, sig: Optional[signal.Signals] = None) -> None:
        """
        Begin shutdown from a termination signal.

        The first request arms the hard deadline and schedules
        shutdown(). Later requests never re-enter stop logic.
        """
        label = sig.name if sig is not None else "SHUTDOWN"
        if self._shutdown_requested:
            self._logger.info(f"[{label}] Received while shutting down, already in progress")
            return

        self._logger.info(f"[{label}] Received. Shutting down server...")
        self._shutdown_requested = True

        self._arm_deadline()
        self._shutdown_task = asyncio.get_running_loop().create_task(
            self.shutdown(reason=f"{label} received", triggered_by="signal")
        )

    def _on_deadline(self) -> None:
        # Runs on the watchdog thread
        if self._stopped.is_set():
            return

        pending = [h.identity for h in self._helpers if h.status == HelperStatus.STOPPING]
        timeout = ShutdownTimeout(
            f"Shutdown did not finish within {self._config.shutdown_deadline_seconds}s, forcing exit",
            deadline_seconds=self._config.shutdown_deadline_seconds,
            pending=pending,
        )
        self._logger.critical(timeout.to_log_format())
        self._forced = True
        self._exit(self._config.forced_exit_code)

    # --------------------------------------------------------
    # Main entry
    # --------------------------------------------------------

    async def run(
        self,
        descriptors: Sequence[ModuleDescriptor],
        install_signals: bool = True,
    ) -> int:
        """
        Run the full lifecycle until shutdown.

        discover -> load -> open transport -> start -> wait for stop

        Returns:
            Exit code
        """
        if self._transport is None:
            raise ConfigurationError("Orchestrator.run() requires a transport")

        if install_signals:
            self.install_signal_handlers()
        self.install_exception_handler()

        self._logger.info(f"=== STARTUP SEQUENCE | host_version={self._config.host_version} ===")
        try:
            identities = self._registry.discover(descriptors)
            await self.load_all(identities)

            if not self._shutdown_requested:
                self._pending_startup = asyncio.ensure_future(self._transport.open())
                try:
                    router, channel = await self._pending_startup
                finally:
                    self._pending_startup = None

                if not self._shutdown_requested:
                    await self.start_all(self._helpers, router, channel)
                    self._logger.info("Sockets connected & modules started ...")

            await self._stopped.wait()
        except Exception as e:
            self._logger.error(f"Startup failed: {e}", exc_info=True)
            self._shutdown_requested = True
            self._arm_deadline()
            await self.shutdown(reason=f"Startup failed: {e}")
            raise
        finally:
            self.restore_signal_handlers()

        return self._config.forced_exit_code if self._forced else self._config.clean_exit_code

    # --------------------------------------------------------
    # Signal Handlers
    # --------------------------------------------------------

    def install_signal_handlers(self) -> None:
        """Install SIGINT/SIGTERM handlers on the running loop."""
        loop = asyncio.get_running_loop()

        if sys.platform == "win32":
            def handler(signum: int, frame: Any) -> None:
                loop.call_soon_threadsafe(self.request_shutdown, signal.Signals(signum))

            signal.signal(signal.SIGINT, handler)
            signal.signal(signal.SIGTERM, handler)
        else:
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, self.request_shutdown, sig)
        self._signals_installed = True

    def restore_signal_handlers(self) -> None:
        """Remove the handlers installed by install_signal_handlers()."""
        if not self._signals_installed:
            return
        if sys.platform == "win32":
            signal.signal(signal.SIGINT, signal.default_int_handler)
            signal.signal(signal.SIGTERM, signal.SIG_DFL)
        else:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.remove_signal_handler(sig)
        self._signals_installed = False

    # --------------------------------------------------------
    # Unhandled errors
    # --------------------------------------------------------

    def install_exception_handler(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Log unhandled loop errors instead of letting them end the process."""
        (loop or asyncio.get_running_loop()).set_exception_handler(self.handle_loop_exception)

    def handle_loop_exception(self, loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
        exc = context.get("exception")
        self._logger.error(
            f"Whoops! There was an uncaught exception: {context.get('message', '')}",
            exc_info=exc,
        )
        self._logger.error("The runtime will not quit, but it might be a good idea to check why this happened.")

    # --------------------------------------------------------
    # Helpers
    # --------------------------------------------------------

    @staticmethod
    def _being_cancelled() -> bool:
        """Whether the current task itself was asked to cancel."""
        task = asyncio.current_task()
        cancelling = getattr(task, "cancelling", None)
        return cancelling is not None and cancelling() > 0

    @staticmethod
    async def _await_hook(hook: Callable[[], Any], timeout: Optional[float]) -> None:
        result = hook()
        if not inspect.isawaitable(result):
            return
        if timeout is None:
            await result
        else:
            await asyncio.wait_for(result, timeout=timeout)

    # --------------------------------------------------------
    # Status
    # --------------------------------------------------------

    def get_status(self) -> Dict[str, Any]:
        """Get orchestrator status."""
        return {
            "state": self._state_manager.state.value,
            "reason": self._state_manager.reason,
            "host_version": self._config.host_version,
            "shutdown_requested": self._shutdown_requested,
            "forced": self._forced,
            "helpers": [h.to_dict() for h in self._helpers],
            "last_start": self.last_start_result.to_dict() if self.last_start_result else None,
            "last_stop": self.last_stop_result.to_dict() if self.last_stop_result else None,
        }


# ============================================================
# ORCHESTRATOR FACTORY
# ============================================================

def create_orchestrator(
    config: Optional[OrchestratorConfig] = None,
    registry: Optional[HelperRegistry] = None,
    transport: Any = None,
    exit_callback: Optional[ExitCallback] = None,
) -> Orchestrator:
    """
    Factory function to create an orchestrator.

    Args:
        config: Configuration (or load from environment)
        registry: Helper registry
        transport: Transport server
        exit_callback: Forced-exit callback

    Returns:
        Configured Orchestrator instance
    """
    if config is None:
        config = OrchestratorConfig.from_env()

    return Orchestrator(
        config=config,
        registry=registry,
        transport=transport,
        exit_callback=exit_callback,
    )


__all__ = [
    "Orchestrator",
    "create_orchestrator",
    "new_session_id",
    "setup_logging",
]
