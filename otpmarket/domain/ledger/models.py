"""Ledger value objects returned to callers outside the unit of work."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from otpmarket.domain.common import OrderStatus, RefundReason


@dataclass(slots=True, frozen=True)
class TransactionRecord:
    id: str
    transaction_number: str
    user_id: str
    order_id: Optional[str]
    type: str
    amount_cents: int
    balance_before_cents: Optional[int]
    balance_after_cents: Optional[int]
    status: str
    external_reference: Optional[str]
    payment_method: Optional[str]
    description: Optional[str]
    metadata: Optional[dict[str, Any]]
    created_at: datetime
    completed_at: Optional[datetime]

    @property
    def signed_amount_cents(self) -> int:
        return self.amount_cents if self.type in ("DEPOSIT", "REFUND") else -self.amount_cents


@dataclass(slots=True, frozen=True)
class RefundResult:
    order_id: str
    user_id: str
    transaction_id: Optional[str]
    amount_cents: int
    status: OrderStatus
    reason: RefundReason
    balance_after_cents: Optional[int]


@dataclass(slots=True, frozen=True)
class DepositResult:
    transaction_id: str
    user_id: str
    reference: str
    amount_cents: int
    balance_before_cents: int
    balance_after_cents: int


@dataclass(slots=True, frozen=True)
class BalanceSnapshot:
    user_id: str
    balance_cents: int
    currency: str


@dataclass(slots=True, frozen=True)
class BalanceAudit:
    user_id: str
    stored_cents: int
    computed_cents: int

    @property
    def difference_cents(self) -> int:
        return self.stored_cents - self.computed_cents

    @property
    def is_consistent(self) -> bool:
        return self.difference_cents == 0 and self.stored_cents >= 0
