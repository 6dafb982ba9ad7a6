"""Notification sinks that ship with the engine."""

import logging
import threading
from collections import deque

from ryaion.domain.models import AlertNotification

logger = logging.getLogger(__name__)


class LoggingNotificationSink:
    """Writes each firing to the log."""

    def __init__(self, level: int = logging.WARNING) -> None:
        self._level = level

    def notify(self, notification: AlertNotification) -> None:
        logger.log(
            self._level,
            "PRICE ALERT: %s %s %.2f (last %.2f)",
            notification.instrument_id,
            notification.direction.value,
            notification.target_price,
            notification.price,
        )


class RecentNotifications:
    """Keeps the most recent firings in memory, newest last."""

    def __init__(self, maxlen: int = 50) -> None:
        self._items: deque[AlertNotification] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def notify(self, notification: AlertNotification) -> None:
        with self._lock:
            self._items.append(notification)

    def items(self) -> list[AlertNotification]:
        with self._lock:
            return list(self._items)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        return len(self._items)
