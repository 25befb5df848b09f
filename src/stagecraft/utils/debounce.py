"""Trailing-edge debounce on the asyncio event loop."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set

logger = logging.getLogger(__name__)


class Debouncer:
    """Collapse bursts of triggers into one call after a quiet window.

    Every :meth:`trigger` restarts the timer; when ``wait`` seconds pass
    with no further trigger, ``func`` is awaited exactly once. Calls that
    are already running are never cancelled, so two overlapping runs
    race and the last one to finish wins.

    Example:
        >>> debouncer = Debouncer(save, wait=1.0)
        >>> debouncer.trigger()
        >>> debouncer.trigger()  # save() runs once, 1s after this call
    """

    def __init__(
        self,
        func: Callable[[], Awaitable[None]],
        wait: float,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        """Initialize the debouncer.

        Args:
            func: Coroutine function to run after the quiet window.
            wait: Quiet window in seconds.
            loop: Event loop to schedule on; defaults to the running loop.
        """
        self._func = func
        self._wait = wait
        self._loop = loop or asyncio.get_running_loop()
        self._handle: Optional[asyncio.TimerHandle] = None
        self._tasks: Set["asyncio.Task[None]"] = set()

    @property
    def pending(self) -> bool:
        """True while a call is scheduled but has not started."""
        return self._handle is not None

    @property
    def running(self) -> int:
        """Number of calls currently in flight."""
        return len(self._tasks)

    def trigger(self) -> None:
        """(Re)start the quiet window."""
        if self._handle is not None:
            self._handle.cancel()
        self._handle = self._loop.call_later(self._wait, self._fire)

    def cancel(self) -> None:
        """Drop a scheduled call. Calls already running are left alone."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        task = self._loop.create_task(self._run())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self) -> None:
        try:
            await self._func()
        except Exception:
            logger.exception("Debounced call failed")
