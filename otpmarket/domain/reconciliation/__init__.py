"""Reconciliation of overdue orders and wallet balances."""

from .models import BalanceAuditReport, SweepResult
from .service import ReconciliationService
from .workers import OrderMonitor, SweepScheduler

__all__ = [
    "BalanceAuditReport",
    "OrderMonitor",
    "ReconciliationService",
    "SweepResult",
    "SweepScheduler",
]
