"""
Snapshot comparison.
"""

from __future__ import annotations

from treemirror.core.models import ChangeSet, RelativePath, TreeSnapshot


def diff(source: TreeSnapshot, replica: TreeSnapshot) -> ChangeSet:
    """Classify every path seen in either snapshot by content digest only."""
    added: list[RelativePath] = []
    modified: list[RelativePath] = []

    for rel_path, digest in source.items():
        replica_digest = replica.get(rel_path)
        if replica_digest is None:
            added.append(rel_path)
        elif replica_digest != digest:
            modified.append(rel_path)

    # A source file that could not be read still exists; keep its replica copy
    only_in_replica = [
        rel_path
        for rel_path in replica
        if rel_path not in source and rel_path not in source.unreadable
    ]

    return ChangeSet(
        added=tuple(sorted(added)),
        modified=tuple(sorted(modified)),
        only_in_replica=tuple(sorted(only_in_replica)),
    )
