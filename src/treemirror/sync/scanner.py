"""
Directory scanning and content hashing.

Builds the per-tree snapshots the differ compares.
"""

from __future__ import annotations

import hashlib
import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterator

from treemirror.core.models import (
    DirectorySet,
    FileDigest,
    RecoverableError,
    RelativePath,
    TreeSnapshot,
)
from treemirror.sync.events import EventRecorder

DEFAULT_ALGORITHM = "sha256"
DEFAULT_CHUNK_SIZE = 1024 * 1024


def hash_file(
    path: Path,
    algorithm: str = DEFAULT_ALGORITHM,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> FileDigest:
    """Return the digest of a file's full byte stream."""
    digest = hashlib.new(algorithm)
    with path.open("rb") as handle:
        while chunk := handle.read(chunk_size):
            digest.update(chunk)
    return digest.digest()


def relative_key(root: Path, path: Path) -> RelativePath:
    return path.relative_to(root).as_posix()


def walk_tree(
    root: Path, recorder: EventRecorder | None = None
) -> Iterator[tuple[Path, list[str], list[str]]]:
    """os.walk over root without descending into symlinked directories.

    Callers may prune ``dirnames`` in place, as with os.walk.
    """
    def on_error(exc: OSError) -> None:
        if recorder is not None:
            failed = Path(exc.filename) if exc.filename else root
            recorder.record(RecoverableError.from_exception(failed, exc, "scan"))

    for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
        current = Path(dirpath)
        dirnames[:] = [d for d in dirnames if not (current / d).is_symlink()]
        yield current, dirnames, filenames


def iter_files(root: Path, recorder: EventRecorder | None = None) -> Iterator[Path]:
    """Yield every regular file under root.

    Symlinks, FIFOs, sockets and device nodes are skipped; opening a FIFO
    for reading would block until a writer appears.
    """
    for current, _, filenames in walk_tree(root, recorder):
        for filename in filenames:
            path = current / filename
            if path.is_symlink() or not path.is_file():
                continue
            yield path


def scan_directories(root: Path, recorder: EventRecorder | None = None) -> DirectorySet:
    """Return the relative paths of all subdirectories under root."""
    directories: set[RelativePath] = set()
    for current, dirnames, _ in walk_tree(root, recorder):
        for dirname in dirnames:
            directories.add(relative_key(root, current / dirname))
    return frozenset(directories)


def scan_tree(
    root: Path,
    recorder: EventRecorder | None = None,
    *,
    algorithm: str = DEFAULT_ALGORITHM,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    workers: int = 1,
) -> TreeSnapshot:
    """
    Hash every file under root.

    Files that cannot be read are left out of the snapshot, listed in
    ``TreeSnapshot.unreadable`` and reported to the recorder.
    """
    paths = list(iter_files(root, recorder))

    def hash_one(path: Path) -> FileDigest | Exception:
        try:
            return hash_file(path, algorithm, chunk_size)
        except Exception as exc:
            return exc

    if workers > 1 and len(paths) > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(hash_one, paths))
    else:
        results = [hash_one(path) for path in paths]

    digests: dict[RelativePath, FileDigest] = {}
    unreadable: list[RelativePath] = []
    for path, result in zip(paths, results):
        key = relative_key(root, path)
        if isinstance(result, Exception):
            unreadable.append(key)
            if recorder is not None:
                recorder.record(RecoverableError.from_exception(path, result, "hash"))
            continue
        digests[key] = result

    return TreeSnapshot(root, digests, unreadable)
