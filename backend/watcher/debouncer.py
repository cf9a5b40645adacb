"""
Restamp Debouncer.

Coalesces bursts of build completions into a single action.
Requires Python 3.11+.
"""

import asyncio
import time
from collections.abc import Callable
from typing import Any

from utils.logger import LoggerMixin


class Debouncer(LoggerMixin):
    """
    Debounces rapid completion notifications.

    A multi-entry build prints one completion line per entry. Each
    ``notify()`` restarts the quiet-period timer; the callback runs once
    the timer elapses with no new notification.

    Timers run on the asyncio event loop, so a superseded timer is
    cancelled before it can fire.
    """

    def __init__(
        self,
        delay_ms: int = 250,
        callback: Callable[[], Any] | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        """
        Initialize the debouncer.

        Args:
            delay_ms: Quiet period in milliseconds
            callback: Function to call after the quiet period
            loop: Event loop for timers; defaults to the running loop
        """
        self._delay = delay_ms / 1000.0
        self._callback = callback
        self._loop = loop
        self._timer: asyncio.TimerHandle | None = None
        self._last_notify: float | None = None
        self._fired = 0
        self._closed = False

    def set_callback(self, callback: Callable[[], Any]) -> None:
        """Set or update the callback function."""
        self._callback = callback

    def set_event_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Set the event loop for timers."""
        self._loop = loop

    def notify(self) -> None:
        """Record an event and restart the quiet-period timer."""
        if self._closed:
            return
        loop = self._loop or asyncio.get_running_loop()

        if self._timer is not None:
            self._timer.cancel()

        self._last_notify = time.monotonic()
        self._timer = loop.call_later(self._delay, self._fire)

    def _fire(self) -> None:
        self._timer = None
        self._fired += 1

        if self._last_notify is not None:
            self.log.debug(
                "debounce_elapsed",
                quiet_ms=round((time.monotonic() - self._last_notify) * 1000),
            )

        if self._callback is None:
            return
        try:
            self._callback()
        except Exception as e:
            self.log.error("debounce_callback_failed", error=str(e))

    def flush(self) -> bool:
        """
        Run a pending callback immediately.

        Returns:
            True if a callback was pending
        """
        if self._timer is None:
            return False
        self._timer.cancel()
        self._fire()
        return True

    def cancel(self) -> None:
        """Drop any pending callback without running it."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def close(self) -> None:
        """Cancel any pending callback and ignore further notifications."""
        self.cancel()
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> bool:
        """Check if a callback is scheduled."""
        return self._timer is not None

    @property
    def fired(self) -> int:
        """Number of times the callback has been triggered."""
        return self._fired
