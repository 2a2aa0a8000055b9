"""
TreeMirror sync module.

Provides scanning, diffing and one-way reconciliation of directory trees.
"""

from treemirror.sync.differ import diff
from treemirror.sync.events import EventRecorder
from treemirror.sync.manager import MirrorManager, MirrorRootError
from treemirror.sync.reconciler import Reconciler
from treemirror.sync.scanner import hash_file, scan_directories, scan_tree

__all__ = [
    "diff",
    "EventRecorder",
    "MirrorManager",
    "MirrorRootError",
    "Reconciler",
    "hash_file",
    "scan_directories",
    "scan_tree",
]
