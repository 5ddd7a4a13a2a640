"""Periodic orphan healing on a background thread.

Classes
-------
HealingScheduler
    Runs a healing callable every ``interval_seconds`` until stopped.
    The caller owns the lifecycle: nothing starts on import or on engine
    construction.
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from session_chain_linker.healing.guard import InFlightGuard
from session_chain_linker.models import HealReport

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS: float = 300.0

HealCallable = Callable[[], HealReport]


class HealingScheduler:
    """Background scheduler for orphan healing passes.

    Each tick acquires the shared :class:`InFlightGuard` without blocking.
    When a full resolution scan (or a previous pass) holds the guard the
    tick is skipped.

    Parameters
    ----------
    heal:
        Callable performing one healing pass, normally
        ``ContinuationEngine.heal_orphans``.
    interval_seconds:
        Delay between passes.  Must be > 0.
    guard:
        Guard shared with other bulk operations.  A private guard is
        created when omitted.

    Example
    -------
    ::

        with HealingScheduler(engine.heal_orphans, 60, engine.guard):
            serve_forever()
    """

    def __init__(
        self,
        heal: HealCallable,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        guard: InFlightGuard | None = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be > 0, got {interval_seconds!r}.")
        self._heal = heal
        self.interval_seconds = interval_seconds
        self.guard = guard if guard is not None else InFlightGuard()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self.last_report: HealReport | None = None

    @property
    def is_running(self) -> bool:
        """True while the background thread is alive."""
        thread = self._thread
        return thread is not None and thread.is_alive()

    def start(self) -> None:
        """Start the background thread.  Starting twice is a no-op."""
        with self._lock:
            if self.is_running:
                return
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._run, name="orphan-healer", daemon=True
            )
            self._thread.start()
        logger.info("Orphan healing scheduled every %.0f seconds", self.interval_seconds)

    def stop(self, timeout: float | None = 5.0) -> None:
        """Signal the thread to stop and wait up to ``timeout`` seconds."""
        with self._lock:
            thread = self._thread
            self._stop_event.set()
            self._thread = None
        if thread is not None:
            thread.join(timeout)
            logger.info("Orphan healing scheduler stopped")

    def run_once(self) -> HealReport | None:
        """Run a single pass now.

        Returns
        -------
        HealReport | None
            ``None`` when the pass was skipped because the guard was busy.
        """
        if not self.guard.try_acquire("heal"):
            logger.debug("Skipping healing pass: %s in progress", self.guard.holder)
            return None
        try:
            report = self._heal()
        finally:
            self.guard.release()
        self.last_report = report
        return report

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            try:
                self.run_once()
            except Exception:  # noqa: BLE001
                logger.exception("Scheduled healing pass failed")

    def __enter__(self) -> HealingScheduler:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        self.stop()

    def __repr__(self) -> str:
        return (
            f"HealingScheduler(interval_seconds={self.interval_seconds}, "
            f"running={self.is_running})"
        )
