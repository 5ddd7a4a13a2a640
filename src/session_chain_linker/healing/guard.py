"""In-flight guard for long-running bulk operations.

A full resolution scan and a healing pass may overlap without corrupting
state, but running both at once wastes work.  Callers share one
:class:`InFlightGuard` and either skip (``try_acquire``) or fail fast
(``hold``) when the other operation is already running.

Classes
-------
OperationInProgressError
    Raised by :meth:`InFlightGuard.hold` when the guard is busy.
InFlightGuard
    Non-blocking mutual exclusion with the name of the current holder.
"""
from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class OperationInProgressError(RuntimeError):
    """Raised when a guarded operation is already running."""

    def __init__(self, requested: str, running: str | None) -> None:
        self.requested = requested
        self.running = running
        super().__init__(
            f"Cannot start {requested!r}: {running or 'another operation'!r} is in progress."
        )


class InFlightGuard:
    """Non-blocking flag shared by bulk operations.

    Never waits: acquisition either succeeds immediately or reports that
    another operation holds the guard.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._holder: str | None = None

    @property
    def is_busy(self) -> bool:
        """True while some operation holds the guard."""
        return self._lock.locked()

    @property
    def holder(self) -> str | None:
        """Name of the operation holding the guard, if any."""
        return self._holder

    def try_acquire(self, name: str) -> bool:
        """Acquire the guard for ``name`` without blocking.

        Returns
        -------
        bool
            False if the guard was already held.
        """
        if not self._lock.acquire(blocking=False):
            return False
        self._holder = name
        return True

    def release(self) -> None:
        """Release the guard.  Releasing an idle guard is a no-op."""
        if self._lock.locked():
            self._holder = None
            self._lock.release()

    @contextmanager
    def hold(self, name: str) -> Iterator[None]:
        """Hold the guard for the duration of the ``with`` block.

        Raises
        ------
        OperationInProgressError
            If the guard is already held.
        """
        if not self.try_acquire(name):
            raise OperationInProgressError(name, self._holder)
        try:
            yield
        finally:
            self.release()

    def __repr__(self) -> str:
        return f"InFlightGuard(holder={self._holder!r})"
