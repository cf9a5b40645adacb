"""
Restamp Lifecycle Coordinator.

Single idempotent shutdown path for signals and child exits.
Requires Python 3.11+.
"""

import asyncio
import signal
from collections.abc import Callable
from enum import Enum
from typing import Any

from utils.logger import LoggerMixin

# Shell conventions: 128 + signal number
SIGNAL_EXIT_CODES: dict[signal.Signals, int] = {
    signal.SIGINT: 130,
    signal.SIGTERM: 143,
}


class ShutdownState(str, Enum):
    """Progress of the cleanup action."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class LifecycleCoordinator(LoggerMixin):
    """
    Collapses every shutdown trigger into one cleanup.

    Signal handlers and child exit handlers all call ``cleanup()``; only
    the first call runs the cleanup action and decides the exit code.
    """

    def __init__(self, on_cleanup: Callable[[int, str], Any] | None = None) -> None:
        """
        Initialize the coordinator.

        Args:
            on_cleanup: Called once with (exit_code, reason) when shutdown
                begins; expected to request termination of children
        """
        self._on_cleanup = on_cleanup
        self._state = ShutdownState.NOT_STARTED
        self._exit_code: int | None = None
        self._reason: str | None = None
        self._requested = asyncio.Event()
        self._installed: list[signal.Signals] = []

    def cleanup(self, code: int, reason: str) -> bool:
        """
        Begin shutdown with the given exit code.

        Args:
            code: Exit code for the supervisor
            reason: Short description of the trigger

        Returns:
            True if this call started the shutdown, False if it was ignored
        """
        if self._state is not ShutdownState.NOT_STARTED:
            self.log.debug("cleanup_ignored", code=code, reason=reason, state=self._state.value)
            return False

        self._state = ShutdownState.IN_PROGRESS
        self._exit_code = code
        self._reason = reason
        self.log.info("shutdown_started", exit_code=code, reason=reason)

        try:
            if self._on_cleanup is not None:
                self._on_cleanup(code, reason)
        finally:
            self._requested.set()
        return True

    def handle_signal(self, sig: signal.Signals) -> bool:
        """Translate a termination signal into a cleanup request."""
        sig = signal.Signals(sig)
        code = SIGNAL_EXIT_CODES.get(sig, 128 + sig.value)
        return self.cleanup(code, f"signal:{sig.name}")

    def install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        """Route SIGINT and SIGTERM through ``handle_signal``."""
        for sig in SIGNAL_EXIT_CODES:
            try:
                loop.add_signal_handler(sig, self.handle_signal, sig)
            except (NotImplementedError, RuntimeError) as e:
                self.log.warning("signal_handler_unavailable", signal=sig.name, error=str(e))
                continue
            self._installed.append(sig)

    def remove_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in self._installed:
            loop.remove_signal_handler(sig)
        self._installed.clear()

    async def wait(self) -> int:
        """Wait until shutdown has been requested and return the exit code."""
        await self._requested.wait()
        assert self._exit_code is not None
        return self._exit_code

    def mark_done(self) -> None:
        self._state = ShutdownState.DONE
        self.log.info("shutdown_complete", exit_code=self._exit_code, reason=self._reason)

    @property
    def state(self) -> ShutdownState:
        return self._state

    @property
    def requested(self) -> bool:
        return self._state is not ShutdownState.NOT_STARTED

    @property
    def exit_code(self) -> int | None:
        return self._exit_code

    @property
    def reason(self) -> str | None:
        return self._reason
