"""Unit tests for session_chain_linker.healing.scheduler and .guard."""
from __future__ import annotations

import threading

import pytest

from session_chain_linker.healing.guard import InFlightGuard, OperationInProgressError
from session_chain_linker.healing.scheduler import HealingScheduler
from session_chain_linker.models import HealReport


class CountingHealer:
    def __init__(self) -> None:
        self.calls = 0
        self.ran = threading.Event()

    def __call__(self) -> HealReport:
        self.calls += 1
        self.ran.set()
        return HealReport(healed=self.calls)


# ---------------------------------------------------------------------------
# InFlightGuard
# ---------------------------------------------------------------------------


class TestInFlightGuard:
    def test_idle_on_construction(self) -> None:
        guard = InFlightGuard()
        assert guard.is_busy is False
        assert guard.holder is None

    def test_try_acquire_and_release(self) -> None:
        guard = InFlightGuard()
        assert guard.try_acquire("scan") is True
        assert guard.is_busy is True
        assert guard.holder == "scan"
        assert guard.try_acquire("heal") is False
        guard.release()
        assert guard.is_busy is False
        assert guard.try_acquire("heal") is True

    def test_release_when_idle_is_noop(self) -> None:
        InFlightGuard().release()

    def test_hold_raises_when_busy(self) -> None:
        guard = InFlightGuard()
        guard.try_acquire("scan")
        with pytest.raises(OperationInProgressError) as exc_info:
            with guard.hold("heal"):
                pass
        assert exc_info.value.running == "scan"
        assert exc_info.value.requested == "heal"

    def test_hold_releases_on_error(self) -> None:
        guard = InFlightGuard()
        with pytest.raises(RuntimeError):
            with guard.hold("scan"):
                raise RuntimeError("boom")
        assert guard.is_busy is False

    def test_error_is_runtime_error(self) -> None:
        assert issubclass(OperationInProgressError, RuntimeError)


# ---------------------------------------------------------------------------
# HealingScheduler
# ---------------------------------------------------------------------------


class TestHealingScheduler:
    def test_rejects_non_positive_interval(self) -> None:
        with pytest.raises(ValueError):
            HealingScheduler(CountingHealer(), interval_seconds=0)

    def test_not_running_until_started(self) -> None:
        scheduler = HealingScheduler(CountingHealer(), interval_seconds=60)
        assert scheduler.is_running is False

    def test_run_once(self) -> None:
        heal = CountingHealer()
        scheduler = HealingScheduler(heal, interval_seconds=60)
        report = scheduler.run_once()
        assert report is not None
        assert report.healed == 1
        assert scheduler.last_report == report
        assert scheduler.guard.is_busy is False

    def test_run_once_skips_when_guard_busy(self) -> None:
        heal = CountingHealer()
        guard = InFlightGuard()
        guard.try_acquire("scan")
        scheduler = HealingScheduler(heal, interval_seconds=60, guard=guard)
        assert scheduler.run_once() is None
        assert heal.calls == 0

    def test_run_once_releases_guard_on_error(self) -> None:
        def _fail() -> HealReport:
            raise RuntimeError("boom")

        scheduler = HealingScheduler(_fail, interval_seconds=60)
        with pytest.raises(RuntimeError):
            scheduler.run_once()
        assert scheduler.guard.is_busy is False

    def test_start_runs_periodically_and_stop(self) -> None:
        heal = CountingHealer()
        scheduler = HealingScheduler(heal, interval_seconds=0.01)
        scheduler.start()
        try:
            assert scheduler.is_running is True
            assert heal.ran.wait(timeout=5)
        finally:
            scheduler.stop()
        assert scheduler.is_running is False
        assert heal.calls >= 1

    def test_start_twice_is_noop(self) -> None:
        scheduler = HealingScheduler(CountingHealer(), interval_seconds=60)
        scheduler.start()
        try:
            thread = scheduler._thread
            scheduler.start()
            assert scheduler._thread is thread
        finally:
            scheduler.stop()

    def test_stop_without_start(self) -> None:
        HealingScheduler(CountingHealer(), interval_seconds=60).stop()

    def test_context_manager(self) -> None:
        with HealingScheduler(CountingHealer(), interval_seconds=60) as scheduler:
            assert scheduler.is_running is True
        assert scheduler.is_running is False

    def test_failing_pass_does_not_kill_thread(self) -> None:
        calls = threading.Event()
        count = {"n": 0}

        def _flaky() -> HealReport:
            count["n"] += 1
            if count["n"] >= 2:
                calls.set()
            raise RuntimeError("transient")

        scheduler = HealingScheduler(_flaky, interval_seconds=0.01)
        with scheduler:
            assert calls.wait(timeout=5)

    def test_repr(self) -> None:
        assert "interval_seconds=60" in repr(HealingScheduler(CountingHealer(), 60))
