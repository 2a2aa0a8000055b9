"""
Thread-safe recording of mirror events.

Every event is kept for the run report and written to the structured log,
so the log stream alone tells what changed in a run.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable

import structlog

from treemirror.core.logging import get_logger
from treemirror.core.models import (
    DirectoryCreated,
    DirectoryDeleted,
    FileCopied,
    FileDeleted,
    FileReplaced,
    MirrorEvent,
    RecoverableError,
)

EventListener = Callable[[MirrorEvent], None]

_MESSAGES = {
    DirectoryCreated: "Created directory",
    FileCopied: "Copied file",
    FileReplaced: "Replaced file",
    FileDeleted: "Deleted file",
    DirectoryDeleted: "Deleted directory",
    RecoverableError: "Recoverable error",
}


class EventRecorder:
    """Collects events from scanner and reconciler, logging each one."""

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        listeners: Iterable[EventListener] = (),
    ) -> None:
        self.logger = logger or get_logger(__name__)
        self._events: list[MirrorEvent] = []
        self._listeners: list[EventListener] = list(listeners)
        self._lock = threading.Lock()

    def add_listener(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def record(self, event: MirrorEvent) -> MirrorEvent:
        with self._lock:
            self._events.append(event)
            self._log(event)

        for listener in self._listeners:
            try:
                listener(event)
            except Exception as e:
                self.logger.warning("Event listener error", error=str(e))
        return event

    def _log(self, event: MirrorEvent) -> None:
        fields = event.to_dict()
        fields.pop("kind")
        message = _MESSAGES.get(type(event), event.kind)
        if event.is_error:
            self.logger.warning(message, action=event.kind, **fields)
        else:
            self.logger.info(message, action=event.kind, **fields)

    @property
    def events(self) -> list[MirrorEvent]:
        with self._lock:
            return list(self._events)

    @property
    def error_count(self) -> int:
        with self._lock:
            return sum(1 for event in self._events if event.is_error)

    def drain(self) -> list[MirrorEvent]:
        """Return recorded events and start over with an empty list."""
        with self._lock:
            events, self._events = self._events, []
        return events
