"""Lifetime management for model objects."""

import logging
from typing import Callable, List

logger = logging.getLogger(__name__)

Disposer = Callable[[], None]


class Disposable:
    """Object that owns cleanup callbacks tied to its lifetime.

    Observers registered "for the lifetime of" an object are added as
    disposers, so disposing the object tears them down. Disposers run in
    registration order, exactly once.
    """

    def __init__(self) -> None:
        self._disposers: List[Disposer] = []
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def add_disposer(self, disposer: Disposer) -> None:
        """Register a callback to run when this object is disposed."""
        if self._disposed:
            # Late registrations still get cleaned up
            disposer()
            return
        self._disposers.append(disposer)

    def dispose(self) -> None:
        """Run every registered disposer. Calling again is a no-op."""
        if self._disposed:
            return
        self._disposed = True
        disposers, self._disposers = self._disposers, []
        for disposer in disposers:
            disposer()
        logger.debug(f"Disposed {self.__class__.__name__} ({len(disposers)} disposers)")
