from __future__ import annotations

import itertools
import logging
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable

from tracker.constants import SEVERITIES

logger = logging.getLogger(__name__)

NOTIFICATION_SIGNAL = "notification"


@dataclass(frozen=True)
class Notification:
    id: int
    message: str
    severity: str
    expires_at: float


class Notifier:
    """Named signals for external listeners plus the current toast."""

    def __init__(self, ttl_seconds: float = 3, clock: Callable[[], float] = time.monotonic):
        self._ttl = ttl_seconds
        self._clock = clock
        self._listeners: dict[str, list[Callable]] = defaultdict(list)
        self._ids = itertools.count(1)
        self._current: Notification | None = None

    def subscribe(self, signal: str, callback: Callable) -> Callable[[], None]:
        self._listeners[signal].append(callback)

        def _unsubscribe():
            if callback in self._listeners[signal]:
                self._listeners[signal].remove(callback)

        return _unsubscribe

    def emit(self, signal: str, **payload) -> None:
        for callback in list(self._listeners.get(signal, ())):
            try:
                callback(**payload)
            except Exception:
                logger.exception("Listener for %s failed", signal)

    def notify(self, message: str, severity: str = "info") -> Notification:
        if severity not in SEVERITIES:
            severity = "info"
        notification = Notification(
            id=next(self._ids),
            message=message,
            severity=severity,
            expires_at=self._clock() + self._ttl,
        )
        self._current = notification
        self.emit(NOTIFICATION_SIGNAL, message=message, severity=severity)
        return notification

    def current_notification(self) -> Notification | None:
        if self._current is not None and self._clock() >= self._current.expires_at:
            self._current = None
        return self._current

    def clear_notification(self) -> None:
        self._current = None
