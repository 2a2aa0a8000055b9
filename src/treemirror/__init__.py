"""
TreeMirror - One-way periodic folder mirroring.

Keeps a replica directory tree identical to a source tree by comparing
file content digests and applying the differences on a fixed interval.
"""

__version__ = "1.0.0"
__author__ = "TreeMirror Team"

from treemirror.core.config import TreeMirrorConfig
from treemirror.sync.manager import MirrorManager

__all__ = ["TreeMirrorConfig", "MirrorManager", "__version__"]
