"""
Tests for treemirror.core.scheduler module.
"""

import threading
import time
from datetime import datetime
from pathlib import Path
from unittest.mock import Mock

import pytest

from treemirror.core.models import RunReport
from treemirror.core.scheduler import MirrorScheduler


def make_report() -> RunReport:
    return RunReport(source=Path("/s"), replica=Path("/r"), started_at=datetime.now())


class BlockingManager:
    """Manager whose run blocks until released."""

    def __init__(self) -> None:
        self.started = threading.Event()
        self.release = threading.Event()
        self.calls = 0

    def run(self, source: Path, replica: Path) -> RunReport:
        self.calls += 1
        self.started.set()
        self.release.wait(5)
        return make_report()


class TestMirrorScheduler:
    """Tests for MirrorScheduler."""

    def test_rejects_non_positive_interval(self) -> None:
        with pytest.raises(ValueError):
            MirrorScheduler(Mock(), Path("/s"), Path("/r"), interval_seconds=0)

    def test_run_now(self) -> None:
        manager = Mock()
        manager.run.return_value = make_report()
        scheduler = MirrorScheduler(manager, Path("/s"), Path("/r"), interval_seconds=60)

        report = scheduler.run_now()

        manager.run.assert_called_once_with(Path("/s"), Path("/r"))
        assert report is manager.run.return_value
        assert scheduler.last_report is report
        assert scheduler.runs_completed == 1

    def test_overlapping_run_is_skipped(self) -> None:
        manager = BlockingManager()
        scheduler = MirrorScheduler(manager, Path("/s"), Path("/r"), interval_seconds=60)

        worker = threading.Thread(target=scheduler.run_now)
        worker.start()
        assert manager.started.wait(5)

        assert scheduler.run_now() is None
        assert scheduler.ticks_skipped == 1

        manager.release.set()
        worker.join(5)
        assert manager.calls == 1
        assert scheduler.runs_completed == 1

    def test_skipped_ticks_counted_across_threads(self) -> None:
        manager = BlockingManager()
        scheduler = MirrorScheduler(manager, Path("/s"), Path("/r"), interval_seconds=60)
        worker = threading.Thread(target=scheduler.run_now)
        worker.start()
        assert manager.started.wait(5)

        def hammer() -> None:
            for _ in range(250):
                scheduler.run_now()

        callers = [threading.Thread(target=hammer) for _ in range(8)]
        for caller in callers:
            caller.start()
        for caller in callers:
            caller.join(10)
        manager.release.set()
        worker.join(5)

        assert scheduler.ticks_skipped == 2000
        assert scheduler.runs_completed == 1

    def test_manager_exception_does_not_escape(self) -> None:
        manager = Mock()
        manager.run.side_effect = RuntimeError("boom")
        scheduler = MirrorScheduler(manager, Path("/s"), Path("/r"), interval_seconds=60)

        assert scheduler.run_now() is None
        assert scheduler.runs_completed == 0
        # Lock released, the next run goes ahead
        manager.run.side_effect = None
        manager.run.return_value = make_report()
        assert scheduler.run_now() is not None

    def test_report_callbacks(self) -> None:
        manager = Mock()
        manager.run.return_value = make_report()
        scheduler = MirrorScheduler(manager, Path("/s"), Path("/r"), interval_seconds=60)
        received: list[RunReport] = []
        scheduler.add_report_callback(received.append)
        scheduler.add_report_callback(Mock(side_effect=RuntimeError("bad callback")))

        scheduler.run_now()

        assert received == [manager.run.return_value]

    def test_start_runs_periodically_and_stops(self) -> None:
        manager = Mock()
        manager.run.return_value = make_report()
        scheduler = MirrorScheduler(manager, Path("/s"), Path("/r"), interval_seconds=0.05)

        scheduler.start()
        assert scheduler.is_running
        deadline = time.monotonic() + 5
        while manager.run.call_count < 3 and time.monotonic() < deadline:
            time.sleep(0.01)
        scheduler.stop(timeout=5)

        assert manager.run.call_count >= 3
        assert not scheduler.is_running
        calls_after_stop = manager.run.call_count
        time.sleep(0.15)
        assert manager.run.call_count == calls_after_stop

    def test_run_on_start_false_waits_one_interval(self) -> None:
        manager = Mock()
        manager.run.return_value = make_report()
        scheduler = MirrorScheduler(
            manager, Path("/s"), Path("/r"), interval_seconds=30, run_on_start=False
        )

        scheduler.start()
        time.sleep(0.1)
        scheduler.stop(timeout=5)

        manager.run.assert_not_called()

    def test_stop_interrupts_wait(self) -> None:
        manager = Mock()
        manager.run.return_value = make_report()
        scheduler = MirrorScheduler(manager, Path("/s"), Path("/r"), interval_seconds=3600)

        scheduler.start()
        deadline = time.monotonic() + 5
        while manager.run.call_count < 1 and time.monotonic() < deadline:
            time.sleep(0.01)
        started = time.monotonic()
        scheduler.stop(timeout=5)

        assert time.monotonic() - started < 2
        assert manager.run.call_count == 1

    def test_double_start_rejected(self) -> None:
        manager = Mock()
        manager.run.return_value = make_report()
        scheduler = MirrorScheduler(manager, Path("/s"), Path("/r"), interval_seconds=3600)
        scheduler.start()
        try:
            with pytest.raises(RuntimeError):
                scheduler.start()
        finally:
            scheduler.stop(timeout=5)

    def test_overrun_skips_missed_ticks(self) -> None:
        now = [0.0]

        class FakeStop:
            """Stop event that advances the fake clock instead of sleeping."""

            def __init__(self) -> None:
                self.flag = False

            def is_set(self) -> bool:
                return self.flag

            def set(self) -> None:
                self.flag = True

            def wait(self, timeout: float) -> bool:
                now[0] += timeout
                return self.flag

        manager = Mock()
        scheduler = MirrorScheduler(
            manager, Path("/s"), Path("/r"), interval_seconds=10, clock=lambda: now[0]
        )
        stop = FakeStop()
        scheduler._stop = stop  # type: ignore[assignment]

        def slow_run(source: Path, replica: Path) -> RunReport:
            # Each run takes 3.5 intervals
            now[0] += 35.0
            if manager.run.call_count >= 2:
                stop.set()
            return make_report()

        manager.run.side_effect = slow_run

        scheduler._loop()

        assert manager.run.call_count == 2
        assert scheduler.ticks_skipped == 6
