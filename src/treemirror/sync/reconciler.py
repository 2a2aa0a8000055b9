"""
TreeMirror reconciler.

Applies a change set to the replica in four ordered phases:

1. copy added and modified files (creating parent directories on demand)
2. create directories that exist in the source, including empty ones
3. delete files that only exist in the replica
4. delete directories that only exist in the replica

Each item either succeeds or is reported as a recoverable error; a failing
item never stops the rest of its phase.
"""

from __future__ import annotations

import shutil
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path

from treemirror.core.models import (
    ChangeKind,
    ChangeSet,
    DirectoryCreated,
    DirectoryDeleted,
    FileCopied,
    FileDeleted,
    FileReplaced,
    MirrorEvent,
    RecoverableError,
    RelativePath,
    RunReport,
)
from treemirror.sync.events import EventRecorder
from treemirror.sync.scanner import relative_key, scan_directories, walk_tree


class Reconciler:
    """Mutates a replica tree so it matches the source."""

    def __init__(self, recorder: EventRecorder | None = None, workers: int = 1) -> None:
        self.recorder = recorder or EventRecorder()
        self.workers = workers

    def reconcile(
        self,
        source_root: Path,
        replica_root: Path,
        change_set: ChangeSet,
        report: RunReport | None = None,
    ) -> RunReport:
        if report is None:
            report = RunReport(source=source_root, replica=replica_root, started_at=datetime.now())

        self.materialize_files(source_root, replica_root, change_set)
        self.mirror_directories(source_root, replica_root)
        self.delete_orphan_files(replica_root, change_set.only_in_replica)
        self.delete_orphan_directories(source_root, replica_root)

        report.add_events(self.recorder.drain())
        report.ended_at = datetime.now()
        return report

    # Phase 1

    def materialize_files(
        self, source_root: Path, replica_root: Path, change_set: ChangeSet
    ) -> list[MirrorEvent]:
        items = [(path, ChangeKind.ADDED) for path in change_set.added]
        items += [(path, ChangeKind.MODIFIED) for path in change_set.modified]

        def copy_one(item: tuple[RelativePath, ChangeKind]) -> MirrorEvent:
            rel_path, kind = item
            return self.copy_file(source_root, replica_root, rel_path, kind)

        if self.workers > 1 and len(items) > 1:
            # Leaving the executor waits for every copy before the next phase
            with ThreadPoolExecutor(max_workers=self.workers) as executor:
                return list(executor.map(copy_one, items))
        return [copy_one(item) for item in items]

    def copy_file(
        self,
        source_root: Path,
        replica_root: Path,
        rel_path: RelativePath,
        kind: ChangeKind,
    ) -> MirrorEvent:
        source_path = source_root / rel_path
        replica_path = replica_root / rel_path
        try:
            self.ensure_directory(replica_root, replica_path.parent)
            shutil.copyfile(source_path, replica_path)
            size = replica_path.stat().st_size
        except Exception as exc:
            return self.recorder.record(RecoverableError.from_exception(source_path, exc, "copy"))

        if kind is ChangeKind.MODIFIED:
            event: MirrorEvent = FileReplaced(path=replica_path, source=source_path, size_bytes=size)
        else:
            event = FileCopied(source=source_path, destination=replica_path, size_bytes=size)
        return self.recorder.record(event)

    def ensure_directory(self, replica_root: Path, directory: Path) -> None:
        """Create directory and any missing ancestors below replica_root, one level at a time."""
        missing: list[Path] = []
        current = directory
        while current != replica_root and current != current.parent and not current.is_dir():
            missing.append(current)
            current = current.parent

        for path in reversed(missing):
            try:
                path.mkdir()
            except FileExistsError:
                # Another worker created it first
                if path.is_dir():
                    continue
                raise
            self.recorder.record(DirectoryCreated(path=path))

    # Phase 2

    def mirror_directories(self, source_root: Path, replica_root: Path) -> list[MirrorEvent]:
        errors: list[MirrorEvent] = []
        for rel_path in sorted(scan_directories(source_root, self.recorder)):
            target = replica_root / rel_path
            if target.is_dir():
                continue
            try:
                self.ensure_directory(replica_root, target)
            except Exception as exc:
                errors.append(self.recorder.record(RecoverableError.from_exception(target, exc, "mkdir")))
        return errors

    # Phase 3

    def delete_orphan_files(
        self, replica_root: Path, orphans: tuple[RelativePath, ...]
    ) -> list[MirrorEvent]:
        outcomes: list[MirrorEvent] = []
        for rel_path in orphans:
            outcome = self.delete_file(replica_root / rel_path)
            if outcome is not None:
                outcomes.append(outcome)
        return outcomes

    def delete_file(self, path: Path) -> MirrorEvent | None:
        try:
            path.unlink()
        except FileNotFoundError:
            return None
        except Exception as exc:
            return self.recorder.record(RecoverableError.from_exception(path, exc, "delete"))
        return self.recorder.record(FileDeleted(path=path))

    # Phase 4

    def delete_orphan_directories(self, source_root: Path, replica_root: Path) -> list[MirrorEvent]:
        outcomes: list[MirrorEvent] = []
        for current, dirnames, _ in walk_tree(replica_root, self.recorder):
            keep: list[str] = []
            for dirname in dirnames:
                directory = current / dirname
                if (source_root / relative_key(replica_root, directory)).is_dir():
                    keep.append(dirname)
                    continue
                outcomes.append(self.delete_directory(directory))
            # Deleted subtrees are not descended into
            dirnames[:] = keep
        return outcomes

    def delete_directory(self, path: Path) -> MirrorEvent:
        try:
            shutil.rmtree(path)
        except Exception as exc:
            return self.recorder.record(RecoverableError.from_exception(path, exc, "rmdir"))
        return self.recorder.record(DirectoryDeleted(path=path))
