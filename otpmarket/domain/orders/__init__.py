"""Order domain exports"""

from otpmarket.domain.common import OrderStatus, RefundReason

from .exceptions import OrderError, OrderNotCancellable, OrderNotFound
from .models import OrderSnapshot, TerminalOutcome
from .service import OrderService

__all__ = [
    "OrderError",
    "OrderNotCancellable",
    "OrderNotFound",
    "OrderService",
    "OrderSnapshot",
    "OrderStatus",
    "RefundReason",
    "TerminalOutcome",
]
