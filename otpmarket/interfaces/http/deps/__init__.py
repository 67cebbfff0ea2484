"""Reusable FastAPI dependencies."""

from .database import get_app_container, get_db_session
from .services import get_order_service, get_payment_service, get_reconciliation_service

__all__ = [
    "get_app_container",
    "get_db_session",
    "get_order_service",
    "get_payment_service",
    "get_reconciliation_service",
]
