"""
Cancellable single-shot timers for debounced input.
"""

import asyncio
from typing import Any, Callable, Optional

import structlog

logger = structlog.get_logger(__name__)


class CancellableTimer:
    """
    One pending callback at a time on the running event loop.

    Scheduling again replaces the pending callback. Coroutine callbacks are
    started as tasks when the timer fires.
    """

    def __init__(self):
        self._handle: Optional[asyncio.TimerHandle] = None
        self.task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self, delay: float, callback: Callable[..., Any], *args: Any) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(delay, self._fire, callback, args)

    def cancel(self) -> bool:
        """Cancel the pending callback; returns whether one was pending."""
        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        return True

    def _fire(self, callback: Callable[..., Any], args: tuple) -> None:
        self._handle = None
        result = callback(*args)
        if asyncio.iscoroutine(result):
            self.task = asyncio.get_running_loop().create_task(result)


class Debouncer:
    """Run ``callback`` only after ``delay`` seconds without a new trigger."""

    def __init__(self, delay: float, callback: Callable[..., Any], name: str = "debounce"):
        self.delay = delay
        self.callback = callback
        self.name = name
        self._timer = CancellableTimer()

    @property
    def pending(self) -> bool:
        return self._timer.pending

    @property
    def last_task(self) -> Optional[asyncio.Task]:
        return self._timer.task

    def trigger(self, *args: Any) -> None:
        if self._timer.pending:
            logger.debug("Debounced call superseded", name=self.name)
        self._timer.schedule(self.delay, self.callback, *args)

    def cancel(self) -> bool:
        return self._timer.cancel()
