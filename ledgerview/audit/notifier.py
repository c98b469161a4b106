"""
User Notifications

DESIGN DECISION: There is exactly ONE way a failure reaches the user.
Whatever went wrong (a fetch, a create, an edit, a tag) ends up here
as a Notification, and the front-end renders whatever is here as a
transient message. Nothing is shown only in a log.
"""

from collections import deque
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from ledgerview.config import get_settings


class NotificationSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class Notification(BaseModel):
    """A transient, user-visible message."""
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    severity: NotificationSeverity
    message: str = Field(..., min_length=1, max_length=500)


NotificationListener = Callable[[Notification], None]


class Notifier:
    """Bounded queue of notifications with subscriber callbacks."""

    def __init__(self, history_size: Optional[int] = None):
        size = history_size or get_settings().app.notification_history
        self._notifications: deque[Notification] = deque(maxlen=size)
        self._listeners: list[NotificationListener] = []

    def subscribe(self, listener: NotificationListener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def notify(self, severity: NotificationSeverity, message: str) -> Notification:
        notification = Notification(severity=severity, message=message[:500])
        self._notifications.append(notification)
        for listener in list(self._listeners):
            listener(notification)
        return notification

    def error(self, message: str) -> Notification:
        return self.notify(NotificationSeverity.ERROR, message)

    def warning(self, message: str) -> Notification:
        return self.notify(NotificationSeverity.WARNING, message)

    def info(self, message: str) -> Notification:
        return self.notify(NotificationSeverity.INFO, message)

    @property
    def notifications(self) -> list[Notification]:
        """Pending notifications, oldest first."""
        return list(self._notifications)

    def latest(self) -> Optional[Notification]:
        return self._notifications[-1] if self._notifications else None

    def dismiss(self, notification_id: UUID) -> bool:
        for notification in self._notifications:
            if notification.id == notification_id:
                self._notifications.remove(notification)
                return True
        return False

    def clear(self) -> None:
        self._notifications.clear()
