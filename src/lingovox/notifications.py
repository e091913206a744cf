"""User-facing notifications.

The default notifier writes to the log; front ends subclass it and override
``deliver`` to show toasts or dialogs.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum

LOGGER = logging.getLogger("lingovox.notifications")


class NotificationLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    message: str
    title: str = ""
    level: NotificationLevel = NotificationLevel.INFO
    created_at: float = field(default_factory=time.time)

    def __str__(self) -> str:
        return f"{self.title}: {self.message}" if self.title else self.message


_LOG_LEVELS = {
    NotificationLevel.INFO: logging.INFO,
    NotificationLevel.SUCCESS: logging.INFO,
    NotificationLevel.WARNING: logging.WARNING,
    NotificationLevel.ERROR: logging.ERROR,
}


class Notifier:
    """Collects notifications and hands each one to ``deliver``."""

    def __init__(self, history_size: int = 100) -> None:
        self._history: deque[Notification] = deque(maxlen=max(history_size, 0))
        self._lock = threading.Lock()

    def notify(
        self, message: str, title: str = "", level: NotificationLevel = NotificationLevel.INFO
    ) -> Notification:
        notification = Notification(message=message, title=title, level=level)
        with self._lock:
            self._history.append(notification)
        self.deliver(notification)
        return notification

    def info(self, message: str, title: str = "") -> Notification:
        return self.notify(message, title, NotificationLevel.INFO)

    def success(self, message: str, title: str = "") -> Notification:
        return self.notify(message, title, NotificationLevel.SUCCESS)

    def warning(self, message: str, title: str = "") -> Notification:
        return self.notify(message, title, NotificationLevel.WARNING)

    def error(self, message: str, title: str = "") -> Notification:
        return self.notify(message, title, NotificationLevel.ERROR)

    def deliver(self, notification: Notification) -> None:
        LOGGER.log(_LOG_LEVELS[notification.level], "%s", notification)

    @property
    def history(self) -> list[Notification]:
        with self._lock:
            return list(self._history)

    def clear(self) -> None:
        with self._lock:
            self._history.clear()
