"""Utility helpers for Stagecraft."""

from .async_io import get_io_executor, run_blocking, shutdown_executor
from .debounce import Debouncer

__all__ = [
    "Debouncer",
    "get_io_executor",
    "run_blocking",
    "shutdown_executor",
]
