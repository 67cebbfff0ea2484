"""Order snapshots handed out of the unit of work."""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, Optional

from otpmarket.db.models import Order as OrderModel
from otpmarket.domain.common import OrderStatus, RefundReason

_DATETIME_FIELDS = ("created_at", "expires_at", "completed_at", "cancelled_at", "archived_at")


@dataclass(slots=True, frozen=True)
class TerminalOutcome:
    """How an order ended: the canonical status plus whether the price went back."""

    status: OrderStatus
    reason: Optional[RefundReason]
    refunded: bool


@dataclass(slots=True, frozen=True)
class OrderSnapshot:
    id: str
    order_number: str
    user_id: str
    service_code: str
    country: str
    provider_id: str
    external_id: Optional[str]
    phone_number: Optional[str]
    price_cents: int
    currency: str
    status: OrderStatus
    refunded: bool
    terminal_reason: Optional[str]
    sms_code: Optional[str]
    sms_message: Optional[str]
    created_at: datetime
    expires_at: Optional[datetime]
    completed_at: Optional[datetime]
    cancelled_at: Optional[datetime]
    archived_at: Optional[datetime]

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def outcome(self) -> Optional[TerminalOutcome]:
        if not self.is_terminal:
            return None
        reason = RefundReason(self.terminal_reason) if self.terminal_reason else None
        return TerminalOutcome(status=self.status, reason=reason, refunded=self.refunded)

    @classmethod
    def from_model(cls, model: OrderModel) -> "OrderSnapshot":
        return cls(
            id=model.id,
            order_number=model.order_number,
            user_id=model.user_id,
            service_code=model.service_code,
            country=model.country,
            provider_id=model.provider_id,
            external_id=model.external_id,
            phone_number=model.phone_number,
            price_cents=model.price_cents,
            currency=model.currency,
            status=OrderStatus(model.status),
            refunded=bool(model.refunded),
            terminal_reason=model.terminal_reason,
            sms_code=model.sms_code,
            sms_message=model.sms_message,
            created_at=model.created_at,
            expires_at=model.expires_at,
            completed_at=model.completed_at,
            cancelled_at=model.cancelled_at,
            archived_at=model.archived_at,
        )

    def to_cache(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for item in fields(self):
            value = getattr(self, item.name)
            if isinstance(value, datetime):
                value = value.isoformat()
            elif isinstance(value, OrderStatus):
                value = value.value
            data[item.name] = value
        return data

    @classmethod
    def from_cache(cls, data: dict[str, Any]) -> "OrderSnapshot":
        values = dict(data)
        values["status"] = OrderStatus(values["status"])
        for name in _DATETIME_FIELDS:
            if values.get(name):
                values[name] = datetime.fromisoformat(values[name])
        return cls(**values)
