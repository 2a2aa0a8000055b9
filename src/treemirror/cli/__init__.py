"""
TreeMirror CLI Module.

Provides command-line interface for TreeMirror operations.
"""

from treemirror.cli.main import main, cli

__all__ = ["main", "cli"]
