"""
TreeMirror mirror manager.

Runs one scan, diff and reconcile cycle for a source and replica pair.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from treemirror.core.config import MirrorConfig
from treemirror.core.logging import OperationLogger, get_logger
from treemirror.core.models import ChangeSet, RunReport, TreeSnapshot
from treemirror.sync.differ import diff
from treemirror.sync.events import EventListener, EventRecorder
from treemirror.sync.reconciler import Reconciler
from treemirror.sync.scanner import scan_tree

logger = get_logger(__name__)


class MirrorRootError(Exception):
    """Raised when a source or replica root cannot be mirrored at all."""


def validate_roots(source: Path, replica: Path) -> None:
    for label, root in (("source", source), ("replica", replica)):
        if not root.exists():
            raise MirrorRootError(f"{label} folder does not exist: {root}")
        if not root.is_dir():
            raise MirrorRootError(f"{label} path is not a directory: {root}")
    source, replica = source.resolve(), replica.resolve()
    if source == replica:
        raise MirrorRootError(f"source and replica are the same folder: {source}")
    if source in replica.parents or replica in source.parents:
        raise MirrorRootError(f"source and replica must not contain each other: {source}, {replica}")


class MirrorManager:
    """Mirrors a source tree onto a replica tree, one run per call."""

    def __init__(
        self,
        config: MirrorConfig | None = None,
        listeners: Iterable[EventListener] = (),
    ) -> None:
        self.config = config or MirrorConfig()
        self._listeners = list(listeners)

    def add_listener(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def run(self, source: Path, replica: Path) -> RunReport:
        report = RunReport(source=source, replica=replica, started_at=datetime.now())
        recorder = EventRecorder(listeners=self._listeners)

        try:
            validate_roots(source, replica)
        except MirrorRootError as exc:
            report.fatal_error = str(exc)
            report.ended_at = datetime.now()
            logger.error("Mirror run aborted", source=str(source), replica=str(replica), error=str(exc))
            return report

        try:
            with OperationLogger("mirror run", logger, source=str(source), replica=str(replica)) as op:
                source_snapshot = self.scan(source, recorder)
                replica_snapshot = self.scan(replica, recorder)
                report.source_files = len(source_snapshot)
                report.replica_files = len(replica_snapshot)
                report.add_events(recorder.drain())

                change_set = diff(source_snapshot, replica_snapshot)
                logger.debug(
                    "Computed change set",
                    added=len(change_set.added),
                    modified=len(change_set.modified),
                    only_in_replica=len(change_set.only_in_replica),
                )

                reconciler = Reconciler(recorder, workers=self.config.workers)
                reconciler.reconcile(source, replica, change_set, report)
                op.update(**report.summary.to_dict())
        except Exception as exc:
            report.add_events(recorder.drain())
            report.fatal_error = f"{type(exc).__name__}: {exc}"
        finally:
            report.ended_at = report.ended_at or datetime.now()

        return report

    def preview(self, source: Path, replica: Path) -> ChangeSet:
        """Scan and diff without touching the replica."""
        validate_roots(source, replica)
        recorder = EventRecorder(listeners=self._listeners)
        return diff(self.scan(source, recorder), self.scan(replica, recorder))

    def scan(self, root: Path, recorder: EventRecorder | None = None) -> TreeSnapshot:
        return scan_tree(
            root,
            recorder,
            algorithm=self.config.hash_algorithm,
            chunk_size=self.config.chunk_size,
            workers=self.config.workers,
        )
