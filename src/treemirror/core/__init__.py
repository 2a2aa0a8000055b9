"""
TreeMirror Core - Shared service layer.

Contains configuration, logging, data models and the run scheduler.
"""

from treemirror.core.config import LoggingConfig, MirrorConfig, TreeMirrorConfig, load_config
from treemirror.core.logging import OperationLogger, get_logger, setup_logging
from treemirror.core.models import (
    ChangeKind,
    ChangeSet,
    RunReport,
    TreeSnapshot,
)
from treemirror.core.scheduler import MirrorScheduler

__all__ = [
    "LoggingConfig",
    "MirrorConfig",
    "TreeMirrorConfig",
    "load_config",
    "OperationLogger",
    "get_logger",
    "setup_logging",
    "ChangeKind",
    "ChangeSet",
    "RunReport",
    "TreeSnapshot",
    "MirrorScheduler",
]
