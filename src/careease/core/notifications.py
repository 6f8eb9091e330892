"""Transient user-visible notifications."""

from __future__ import annotations

import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from cachetools import TTLCache

logger = logging.getLogger(__name__)

Listener = Callable[["Notification"], None]


@dataclass
class Notification:
    id: int
    level: str  # success, info, warning, error, alarm
    message: str
    created_at: float = field(default_factory=time.time)


class Notifier:
    """Holds notifications until they expire.

    Active notifications live in a TTLCache, so nothing has to sweep them;
    listeners (a terminal renderer, tests) see each one as it is raised.
    """

    def __init__(self, ttl: float = 4.0, maxsize: int = 50, timer: Callable[[], float] = time.monotonic):
        self._active: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl, timer=timer)
        self._ids = itertools.count(1)
        self._listeners: List[Listener] = []
        self.history: List[Notification] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def notify(self, level: str, message: str) -> Notification:
        note = Notification(id=next(self._ids), level=level, message=message)
        self._active[note.id] = note
        self.history.append(note)
        del self.history[:-200]
        for listener in list(self._listeners):
            try:
                listener(note)
            except Exception as e:
                logger.warning("Notification listener failed: %s", e)
        return note

    def success(self, message: str) -> Notification:
        return self.notify("success", message)

    def info(self, message: str) -> Notification:
        return self.notify("info", message)

    def warning(self, message: str) -> Notification:
        return self.notify("warning", message)

    def error(self, message: str) -> Notification:
        return self.notify("error", message)

    def active(self) -> List[Notification]:
        """Notifications that have not expired or been dismissed, oldest first."""
        self._active.expire()
        return sorted(self._active.values(), key=lambda n: n.id)

    def dismiss(self, notification_id: int) -> Optional[Notification]:
        return self._active.pop(notification_id, None)
