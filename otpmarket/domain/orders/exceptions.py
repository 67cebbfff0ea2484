"""Order domain specific exceptions."""

from __future__ import annotations


class OrderError(Exception):
    """Base class for order domain errors."""


class OrderNotFound(OrderError):
    """Raised when the order does not exist or belongs to another user."""

    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class OrderNotCancellable(OrderError):
    """Raised when the order already reached a terminal status."""

    def __init__(self, order_id: str, status: str) -> None:
        super().__init__(f"Order {order_id} cannot be cancelled in status {status}")
        self.order_id = order_id
        self.status = status
