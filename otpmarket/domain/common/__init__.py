"""Shared domain primitives."""

from .enums import (
    ACTIVE_ORDER_STATUSES,
    CANCELLABLE_ORDER_STATUSES,
    TERMINAL_ORDER_STATUSES,
    OrderStatus,
    RefundReason,
    TransactionStatus,
    TransactionType,
)
from .identifiers import generate_order_number, generate_reference
from .repository import AsyncRepository

__all__ = [
    "ACTIVE_ORDER_STATUSES",
    "CANCELLABLE_ORDER_STATUSES",
    "TERMINAL_ORDER_STATUSES",
    "AsyncRepository",
    "OrderStatus",
    "RefundReason",
    "TransactionStatus",
    "TransactionType",
    "generate_order_number",
    "generate_reference",
]
