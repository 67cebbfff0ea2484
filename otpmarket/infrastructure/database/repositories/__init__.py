"""SQLAlchemy-backed repository implementations."""

from .ledger_repository import SqlLedgerRepository
from .order_repository import SqlOrderRepository
from .pricing_repository import SqlPricingRepository

__all__ = [
    "SqlLedgerRepository",
    "SqlOrderRepository",
    "SqlPricingRepository",
]
