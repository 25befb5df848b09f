"""Run blocking transport calls without stalling the event loop.

Persistence adapters use synchronous libraries (``requests``, ``sqlite3``,
``zipfile``); each call is pushed onto a shared thread pool so the
project model stays on a single cooperative event loop.
"""
import asyncio
import functools
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Thread pool for blocking I/O operations
_io_executor: Optional[ThreadPoolExecutor] = None


def get_io_executor(max_workers: int = 4) -> ThreadPoolExecutor:
    """Get or create the I/O thread pool executor.

    Args:
        max_workers: Maximum worker threads

    Returns:
        ThreadPoolExecutor for I/O operations
    """
    global _io_executor
    if _io_executor is None:
        _io_executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="async_io")
    return _io_executor


def shutdown_executor() -> None:
    """Shutdown the I/O executor gracefully."""
    global _io_executor
    if _io_executor:
        _io_executor.shutdown(wait=True)
        _io_executor = None


async def run_blocking(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run ``func(*args, **kwargs)`` in the I/O pool and await its result.

    Exceptions raised by ``func`` propagate to the awaiting caller.
    """
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(get_io_executor(), functools.partial(func, *args, **kwargs))
