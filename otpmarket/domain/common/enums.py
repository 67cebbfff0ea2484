"""Status vocabularies shared by the order and ledger packages."""

from __future__ import annotations

from enum import Enum


class OrderStatus(str, Enum):
    PENDING_CHARGE = "PENDING_CHARGE"
    PROCESSING = "PROCESSING"
    WAITING_FOR_SMS = "WAITING_FOR_SMS"
    COMPLETED = "COMPLETED"
    EXPIRED = "EXPIRED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_ORDER_STATUSES


class RefundReason(str, Enum):
    USER_CANCELLED = "USER_CANCELLED"
    PROVIDER_FAILURE = "PROVIDER_FAILURE"
    EXPIRED = "EXPIRED"

    @property
    def terminal_status(self) -> OrderStatus:
        return _TERMINAL_STATUS_FOR_REASON[self]


class TransactionType(str, Enum):
    ORDER_PAYMENT = "ORDER_PAYMENT"
    REFUND = "REFUND"
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"

    @property
    def is_credit(self) -> bool:
        return self in (TransactionType.DEPOSIT, TransactionType.REFUND)


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


ACTIVE_ORDER_STATUSES = (
    OrderStatus.PENDING_CHARGE,
    OrderStatus.PROCESSING,
    OrderStatus.WAITING_FOR_SMS,
)
CANCELLABLE_ORDER_STATUSES = ACTIVE_ORDER_STATUSES
TERMINAL_ORDER_STATUSES = (
    OrderStatus.COMPLETED,
    OrderStatus.EXPIRED,
    OrderStatus.FAILED,
    OrderStatus.CANCELLED,
)

_TERMINAL_STATUS_FOR_REASON = {
    RefundReason.USER_CANCELLED: OrderStatus.CANCELLED,
    RefundReason.PROVIDER_FAILURE: OrderStatus.FAILED,
    RefundReason.EXPIRED: OrderStatus.EXPIRED,
}
