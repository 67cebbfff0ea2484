"""Notification dispatch for order and payment events."""

from .dispatcher import (
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    NotificationEvent,
    safe_dispatch,
)

__all__ = [
    "LoggingNotificationDispatcher",
    "NotificationDispatcher",
    "NotificationEvent",
    "safe_dispatch",
]
