"""Audit logging and user notification package."""

from ledgerview.audit.logger import AuditLogger, configure_logging
from ledgerview.audit.notifier import (
    Notification,
    NotificationSeverity,
    Notifier,
)

__all__ = [
    "AuditLogger",
    "Notification",
    "NotificationSeverity",
    "Notifier",
    "configure_logging",
]
