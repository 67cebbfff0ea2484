"""Outbound user notifications.

Delivery (e-mail, push) is owned by another service; the engine only hands
events over after the state change has committed, and a failed hand-over
never undoes that change.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Mapping, Protocol

logger = logging.getLogger(__name__)


class NotificationEvent(str, Enum):
    SMS_RECEIVED = "SMS_RECEIVED"
    ORDER_EXPIRED = "ORDER_EXPIRED"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"


class NotificationDispatcher(Protocol):
    async def dispatch(self, event: NotificationEvent, user_id: str, payload: Mapping[str, Any]) -> None:
        ...


class LoggingNotificationDispatcher:
    async def dispatch(self, event: NotificationEvent, user_id: str, payload: Mapping[str, Any]) -> None:
        logger.info("Notification %s for user %s: %s", event.value, user_id, dict(payload))


async def safe_dispatch(
    dispatcher: NotificationDispatcher,
    event: NotificationEvent,
    user_id: str,
    payload: Mapping[str, Any],
) -> None:
    try:
        await dispatcher.dispatch(event, user_id, payload)
    except Exception as exc:  # pylint: disable=broad-except
        logger.warning("Notification %s for user %s failed: %s", event.value, user_id, exc)
