"""Ledger domain exports"""

from .exceptions import InsufficientBalance, InvalidAmount, LedgerError, UserNotFound, WithdrawalTooSmall
from .models import BalanceAudit, BalanceSnapshot, DepositResult, RefundResult, TransactionRecord
from .service import LedgerService

__all__ = [
    "BalanceAudit",
    "BalanceSnapshot",
    "DepositResult",
    "InsufficientBalance",
    "InvalidAmount",
    "LedgerError",
    "LedgerService",
    "RefundResult",
    "TransactionRecord",
    "UserNotFound",
    "WithdrawalTooSmall",
]
