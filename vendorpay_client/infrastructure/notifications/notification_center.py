from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List

from shared.config.settings import settings
from shared.utils.logging_config import get_logger
from vendorpay_client.application.interfaces.service_interfaces import NotifierInterface

logger = get_logger(__name__)


@dataclass(frozen=True)
class Notification:
    level: str
    title: str
    message: str
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class NotificationCenter(NotifierInterface):
    """Keeps the most recent transient notifications until a view drains them."""

    def __init__(self, history_size: int = None):
        self._notifications = deque(maxlen=history_size or settings.notification_history_size)

    def success(self, title: str, message: str) -> None:
        self._publish("success", title, message)

    def error(self, title: str, message: str) -> None:
        self._publish("error", title, message)

    def _publish(self, level: str, title: str, message: str) -> None:
        self._notifications.append(Notification(level=level, title=title, message=message))
        logger.info("Notification published", extra={"level": level, "title": title})

    def peek(self) -> List[Notification]:
        return list(self._notifications)

    def drain(self) -> List[Notification]:
        """Return and forget every pending notification."""
        notifications = list(self._notifications)
        self._notifications.clear()
        return notifications
