"""
TreeMirror scheduler.

Re-runs the mirror on a fixed wall-clock interval from a background thread,
never letting two runs overlap.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from treemirror.core.logging import get_logger
from treemirror.core.models import RunReport

if TYPE_CHECKING:
    from treemirror.sync.manager import MirrorManager

logger = get_logger(__name__)

ReportCallback = Callable[[RunReport], None]


class MirrorScheduler:
    """Owns the periodic mirroring of one source and replica pair."""

    def __init__(
        self,
        manager: MirrorManager,
        source: Path,
        replica: Path,
        interval_seconds: float,
        run_on_start: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.manager = manager
        self.source = source
        self.replica = replica
        self.interval_seconds = interval_seconds
        self.run_on_start = run_on_start
        self._clock = clock
        self._stop = threading.Event()
        self._run_lock = threading.Lock()
        self._counter_lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._callbacks: list[ReportCallback] = []
        self.last_report: RunReport | None = None
        self.runs_completed = 0
        self.ticks_skipped = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def add_report_callback(self, callback: ReportCallback) -> None:
        """Add a callback to be notified after every completed run."""
        self._callbacks.append(callback)

    def start(self) -> None:
        if self.is_running:
            raise RuntimeError("Scheduler is already running")

        self._stop.clear()
        self._thread = threading.Thread(
            target=self._loop,
            name="treemirror-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            "Scheduler started",
            source=str(self.source),
            replica=str(self.replica),
            interval_seconds=self.interval_seconds,
        )

    def stop(self, timeout: float | None = None) -> None:
        """Stop ticking; a run in progress is allowed to finish."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("Scheduler thread still running after stop", timeout=timeout)
            else:
                self._thread = None
        logger.info("Scheduler stopped", runs_completed=self.runs_completed, ticks_skipped=self.ticks_skipped)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until stop() is called. Returns True if stopped."""
        return self._stop.wait(timeout)

    def run_now(self) -> RunReport | None:
        """Run immediately unless a run is already in progress."""
        if not self._run_lock.acquire(blocking=False):
            self._count_skipped()
            logger.warning("Skipping run, previous run still in progress")
            return None

        try:
            report = self.manager.run(self.source, self.replica)
        except Exception as e:
            logger.error("Mirror run raised", error=str(e), error_type=type(e).__name__)
            return None
        finally:
            self._run_lock.release()

        with self._counter_lock:
            self.last_report = report
            self.runs_completed += 1
        for callback in self._callbacks:
            try:
                callback(report)
            except Exception as e:
                logger.warning("Report callback error", error=str(e))
        return report

    def _count_skipped(self) -> None:
        with self._counter_lock:
            self.ticks_skipped += 1

    def _loop(self) -> None:
        next_tick = self._clock()
        if not self.run_on_start:
            next_tick += self.interval_seconds

        while not self._stop.is_set():
            delay = next_tick - self._clock()
            if delay > 0 and self._stop.wait(delay):
                break

            self.run_now()

            next_tick += self.interval_seconds
            now = self._clock()
            # Ticks that passed during an overlong run are dropped, not queued
            while next_tick <= now:
                next_tick += self.interval_seconds
                self._count_skipped()
                logger.warning("Skipped tick, run exceeded interval", interval_seconds=self.interval_seconds)
