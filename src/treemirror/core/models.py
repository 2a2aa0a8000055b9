"""
TreeMirror data models.

Defines snapshots, change sets, mirror events and run reports.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, ClassVar

FileDigest = bytes
RelativePath = str
DirectorySet = frozenset[str]


class TreeSnapshot(Mapping[RelativePath, FileDigest]):
    """Point-in-time mapping of relative file path to content digest."""

    def __init__(
        self,
        root: Path,
        digests: Mapping[RelativePath, FileDigest] | None = None,
        unreadable: Iterable[RelativePath] = (),
    ) -> None:
        self.root = root
        self._digests = MappingProxyType(dict(digests or {}))
        self.unreadable: frozenset[RelativePath] = frozenset(unreadable)

    def __getitem__(self, key: RelativePath) -> FileDigest:
        return self._digests[key]

    def __iter__(self) -> Iterator[RelativePath]:
        return iter(self._digests)

    def __len__(self) -> int:
        return len(self._digests)

    def __repr__(self) -> str:
        return f"TreeSnapshot(root={str(self.root)!r}, files={len(self)}, unreadable={len(self.unreadable)})"

    def hexdigest(self, key: RelativePath) -> str:
        return self._digests[key].hex()


class ChangeKind(Enum):
    """Classification of a relative path after comparing two snapshots."""

    ADDED = "added"
    MODIFIED = "modified"
    ONLY_IN_REPLICA = "only_in_replica"


@dataclass(frozen=True)
class ChangeSet:
    """Paths that need action to bring the replica in line with the source."""

    added: tuple[RelativePath, ...] = ()
    modified: tuple[RelativePath, ...] = ()
    only_in_replica: tuple[RelativePath, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.modified or self.only_in_replica)

    def __len__(self) -> int:
        return len(self.added) + len(self.modified) + len(self.only_in_replica)

    def __iter__(self) -> Iterator[tuple[RelativePath, ChangeKind]]:
        for path in self.added:
            yield path, ChangeKind.ADDED
        for path in self.modified:
            yield path, ChangeKind.MODIFIED
        for path in self.only_in_replica:
            yield path, ChangeKind.ONLY_IN_REPLICA

    def kind_of(self, path: RelativePath) -> ChangeKind | None:
        for candidate, kind in self:
            if candidate == path:
                return kind
        return None

    def to_dict(self) -> dict[str, list[str]]:
        return {
            "added": list(self.added),
            "modified": list(self.modified),
            "only_in_replica": list(self.only_in_replica),
        }


@dataclass(frozen=True)
class MirrorEvent:
    """Base class for everything reported during a run."""

    kind: ClassVar[str] = "event"

    @property
    def is_error(self) -> bool:
        return False

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"kind": self.kind}
        for name, value in self.__dict__.items():
            data[name] = str(value) if isinstance(value, Path) else value
        return data


@dataclass(frozen=True)
class DirectoryCreated(MirrorEvent):
    kind: ClassVar[str] = "directory_created"

    path: Path


@dataclass(frozen=True)
class FileCopied(MirrorEvent):
    kind: ClassVar[str] = "file_copied"

    source: Path
    destination: Path
    size_bytes: int = 0


@dataclass(frozen=True)
class FileReplaced(MirrorEvent):
    kind: ClassVar[str] = "file_replaced"

    path: Path
    source: Path | None = None
    size_bytes: int = 0


@dataclass(frozen=True)
class FileDeleted(MirrorEvent):
    kind: ClassVar[str] = "file_deleted"

    path: Path


@dataclass(frozen=True)
class DirectoryDeleted(MirrorEvent):
    kind: ClassVar[str] = "directory_deleted"

    path: Path


@dataclass(frozen=True)
class RecoverableError(MirrorEvent):
    """A single item failed; the run carries on with the rest."""

    kind: ClassVar[str] = "recoverable_error"

    path: Path
    cause: str
    operation: str = ""

    @property
    def is_error(self) -> bool:
        return True

    @classmethod
    def from_exception(cls, path: Path, exc: BaseException, operation: str) -> RecoverableError:
        return cls(path=path, cause=f"{type(exc).__name__}: {exc}", operation=operation)


@dataclass
class RunSummary:
    directories_created: int = 0
    files_copied: int = 0
    files_replaced: int = 0
    files_deleted: int = 0
    directories_deleted: int = 0
    errors: int = 0
    bytes_copied: int = 0

    @property
    def mutations(self) -> int:
        return (
            self.directories_created
            + self.files_copied
            + self.files_replaced
            + self.files_deleted
            + self.directories_deleted
        )

    def count(self, event: MirrorEvent) -> None:
        if isinstance(event, DirectoryCreated):
            self.directories_created += 1
        elif isinstance(event, FileCopied):
            self.files_copied += 1
            self.bytes_copied += event.size_bytes
        elif isinstance(event, FileReplaced):
            self.files_replaced += 1
            self.bytes_copied += event.size_bytes
        elif isinstance(event, FileDeleted):
            self.files_deleted += 1
        elif isinstance(event, DirectoryDeleted):
            self.directories_deleted += 1
        elif isinstance(event, RecoverableError):
            self.errors += 1

    def to_dict(self) -> dict[str, int]:
        return {
            "directories_created": self.directories_created,
            "files_copied": self.files_copied,
            "files_replaced": self.files_replaced,
            "files_deleted": self.files_deleted,
            "directories_deleted": self.directories_deleted,
            "errors": self.errors,
            "bytes_copied": self.bytes_copied,
        }


@dataclass
class RunReport:
    """Outcome of one scan, diff and reconcile cycle."""

    source: Path
    replica: Path
    started_at: datetime
    ended_at: datetime | None = None
    events: list[MirrorEvent] = field(default_factory=list)
    summary: RunSummary = field(default_factory=RunSummary)
    source_files: int = 0
    replica_files: int = 0
    fatal_error: str | None = None

    def add_events(self, events: Iterable[MirrorEvent]) -> None:
        for event in events:
            self.events.append(event)
            self.summary.count(event)

    @property
    def errors(self) -> list[RecoverableError]:
        return [event for event in self.events if isinstance(event, RecoverableError)]

    @property
    def succeeded(self) -> bool:
        return self.fatal_error is None and self.summary.errors == 0

    @property
    def changed(self) -> bool:
        return self.summary.mutations > 0

    @property
    def duration_seconds(self) -> float | None:
        if self.ended_at:
            return (self.ended_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": str(self.source),
            "replica": str(self.replica),
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "duration_seconds": self.duration_seconds,
            "source_files": self.source_files,
            "replica_files": self.replica_files,
            "fatal_error": self.fatal_error,
            "succeeded": self.succeeded,
            "summary": self.summary.to_dict(),
            "events": [event.to_dict() for event in self.events],
        }
