"""Ledger domain service.

Every method runs inside the caller's unit of work (one ``AsyncSession``
transaction) and never performs network I/O, so a balance change and the
ledger row that explains it always commit or roll back together.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from otpmarket.core.clock import utcnow
from otpmarket.db.models import Transaction as TransactionModel
from otpmarket.domain.common import (
    ACTIVE_ORDER_STATUSES,
    RefundReason,
    TransactionStatus,
    TransactionType,
    generate_reference,
)
from otpmarket.infrastructure.database.repositories.ledger_repository import SqlLedgerRepository
from otpmarket.infrastructure.database.repositories.order_repository import SqlOrderRepository

from .exceptions import InsufficientBalance, InvalidAmount, UserNotFound, WithdrawalTooSmall
from .models import BalanceAudit, BalanceSnapshot, DepositResult, RefundResult, TransactionRecord
from .repository import LedgerRepository, OrderStatusRepository

logger = logging.getLogger(__name__)

_NUMBER_PREFIX = {
    TransactionType.ORDER_PAYMENT: "TXN",
    TransactionType.REFUND: "REF",
    TransactionType.DEPOSIT: "DEP",
    TransactionType.WITHDRAWAL: "WD",
}


@dataclass(slots=True)
class LedgerService:
    repository: LedgerRepository
    orders: OrderStatusRepository
    min_withdrawal_cents: int = 1000

    @classmethod
    def with_session(cls, session: AsyncSession, min_withdrawal_cents: int = 1000) -> "LedgerService":
        return cls(SqlLedgerRepository(session), SqlOrderRepository(session), min_withdrawal_cents)

    async def charge(
        self,
        user_id: str,
        amount_cents: int,
        order_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> str:
        """Debit ``amount_cents`` and record an ORDER_PAYMENT; returns the transaction id."""
        if amount_cents <= 0:
            raise InvalidAmount("Charge amount must be positive")
        user = await self.repository.get_user(user_id)
        if user is None:
            raise UserNotFound(user_id)

        balance_after = await self.repository.debit_if_sufficient(user_id, amount_cents)
        if balance_after is None:
            user = await self.repository.get_user(user_id)
            raise InsufficientBalance(amount_cents, user.balance_cents if user else 0)

        tx = await self.repository.add_transaction(
            transaction_number=generate_reference(_NUMBER_PREFIX[TransactionType.ORDER_PAYMENT]),
            user_id=user_id,
            order_id=order_id,
            type=TransactionType.ORDER_PAYMENT.value,
            amount_cents=amount_cents,
            balance_before_cents=balance_after + amount_cents,
            balance_after_cents=balance_after,
            status=TransactionStatus.COMPLETED.value,
            idempotency_key=f"charge:{order_id}" if order_id else None,
            description=description,
            completed_at=utcnow(),
        )
        return tx.id

    async def refund(
        self,
        order_id: str,
        reason: RefundReason | str,
        amount_cents: Optional[int] = None,
        *,
        now: Optional[datetime] = None,
    ) -> Optional[RefundResult]:
        """Move a live order to its terminal status and give the money back.

        The status compare-and-swap is the guard: when the order is already
        terminal nothing is credited and ``None`` is returned.
        """
        reason = RefundReason(reason)
        now = now or utcnow()
        status = reason.terminal_status
        order = await self.orders.transition(
            order_id,
            from_statuses=ACTIVE_ORDER_STATUSES,
            status=status,
            refunded=True,
            terminal_reason=reason.value,
            cancelled_at=now,
        )
        if order is None:
            logger.info("Refund skipped for order %s: already terminal", order_id)
            return None

        amount = order.price_cents if amount_cents is None else amount_cents
        if amount <= 0:
            return RefundResult(order.id, order.user_id, None, 0, status, reason, None)

        balance_after = await self.repository.credit(order.user_id, amount)
        if balance_after is None:
            raise UserNotFound(order.user_id)
        tx = await self.repository.add_transaction(
            transaction_number=generate_reference(_NUMBER_PREFIX[TransactionType.REFUND]),
            user_id=order.user_id,
            order_id=order.id,
            type=TransactionType.REFUND.value,
            amount_cents=amount,
            balance_before_cents=balance_after - amount,
            balance_after_cents=balance_after,
            status=TransactionStatus.COMPLETED.value,
            idempotency_key=f"refund:{order.id}",
            description=f"Refund for order {order.order_number} ({reason.value.lower()})",
            completed_at=now,
        )
        logger.info("Refunded %s cents for order %s (%s)", amount, order.id, reason.value)
        return RefundResult(order.id, order.user_id, tx.id, amount, status, reason, balance_after)

    async def register_deposit(
        self,
        user_id: str,
        amount_cents: int,
        reference: str,
        payment_method: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
        description: Optional[str] = None,
    ) -> TransactionRecord:
        """Record a PENDING deposit; an existing row with the same reference is returned as is.

        A concurrent insert of the same reference surfaces as ``IntegrityError``
        from the unique constraint; the caller's unit of work decides how to recover.
        """
        if amount_cents <= 0:
            raise InvalidAmount("Deposit amount must be positive")
        existing = await self.repository.get_by_reference(reference)
        if existing is not None:
            return self._to_record(existing)
        if await self.repository.get_user(user_id) is None:
            raise UserNotFound(user_id)

        tx = await self.repository.add_transaction(
            transaction_number=generate_reference(_NUMBER_PREFIX[TransactionType.DEPOSIT]),
            user_id=user_id,
            type=TransactionType.DEPOSIT.value,
            amount_cents=amount_cents,
            status=TransactionStatus.PENDING.value,
            external_reference=reference,
            payment_method=payment_method,
            description=description or "Wallet deposit",
            meta=_dump(metadata),
        )
        return self._to_record(tx)

    async def apply_deposit(
        self,
        external_reference: str,
        amount_cents: Optional[int] = None,
        metadata: Optional[dict[str, Any]] = None,
        *,
        now: Optional[datetime] = None,
    ) -> Optional[DepositResult]:
        """Complete the PENDING deposit matched by reference and credit the paid amount.

        Returns ``None`` when no PENDING row matches (unknown reference or
        already completed), which makes gateway redeliveries harmless.
        """
        tx = await self.repository.complete_pending_deposit(
            external_reference,
            amount_cents=amount_cents,
            completed_at=now or utcnow(),
            meta=_dump(metadata),
        )
        if tx is None:
            return None

        balance_after = await self.repository.credit(tx.user_id, tx.amount_cents)
        if balance_after is None:
            raise UserNotFound(tx.user_id)
        balance_before = balance_after - tx.amount_cents
        await self.repository.set_balance_snapshot(tx.id, before=balance_before, after=balance_after)
        logger.info("Deposit %s credited %s cents to user %s", external_reference, tx.amount_cents, tx.user_id)
        return DepositResult(
            transaction_id=tx.id,
            user_id=tx.user_id,
            reference=external_reference,
            amount_cents=tx.amount_cents,
            balance_before_cents=balance_before,
            balance_after_cents=balance_after,
        )

    async def request_withdrawal(
        self,
        user_id: str,
        amount_cents: int,
        details: Optional[dict[str, Any]] = None,
    ) -> TransactionRecord:
        """Debit the balance now and leave a PENDING WITHDRAWAL for payout."""
        if amount_cents < self.min_withdrawal_cents:
            raise WithdrawalTooSmall(self.min_withdrawal_cents)
        if await self.repository.get_user(user_id) is None:
            raise UserNotFound(user_id)

        balance_after = await self.repository.debit_if_sufficient(user_id, amount_cents)
        if balance_after is None:
            user = await self.repository.get_user(user_id)
            raise InsufficientBalance(amount_cents, user.balance_cents if user else 0)

        tx = await self.repository.add_transaction(
            transaction_number=generate_reference(_NUMBER_PREFIX[TransactionType.WITHDRAWAL]),
            user_id=user_id,
            type=TransactionType.WITHDRAWAL.value,
            amount_cents=amount_cents,
            balance_before_cents=balance_after + amount_cents,
            balance_after_cents=balance_after,
            status=TransactionStatus.PENDING.value,
            payment_method="bank_transfer",
            description="Withdrawal request",
            meta=_dump(details),
        )
        return self._to_record(tx)

    async def get_balance(self, user_id: str) -> BalanceSnapshot:
        user = await self.repository.get_user(user_id)
        if user is None:
            raise UserNotFound(user_id)
        return BalanceSnapshot(user_id=user.id, balance_cents=user.balance_cents, currency=user.currency)

    async def list_transactions(
        self,
        user_id: str,
        limit: int = 20,
        offset: int = 0,
        type: Optional[str] = None,
    ) -> list[TransactionRecord]:
        rows = await self.repository.list_transactions(user_id, limit, offset, type)
        return [self._to_record(row) for row in rows]

    async def audit_user(self, user_id: str) -> BalanceAudit:
        """Recompute the balance from the ledger and compare it with the stored one."""
        user = await self.repository.get_user(user_id)
        if user is None:
            raise UserNotFound(user_id)
        totals = await self.repository.signed_totals(user_id)
        computed = sum(
            amount if TransactionType(kind).is_credit else -amount for kind, amount in totals.items()
        )
        return BalanceAudit(user_id=user_id, stored_cents=user.balance_cents, computed_cents=computed)

    @staticmethod
    def _to_record(model: TransactionModel) -> TransactionRecord:
        return TransactionRecord(
            id=model.id,
            transaction_number=model.transaction_number,
            user_id=model.user_id,
            order_id=model.order_id,
            type=model.type,
            amount_cents=model.amount_cents,
            balance_before_cents=model.balance_before_cents,
            balance_after_cents=model.balance_after_cents,
            status=model.status,
            external_reference=model.external_reference,
            payment_method=model.payment_method,
            description=model.description,
            metadata=json.loads(model.meta) if model.meta else None,
            created_at=model.created_at,
            completed_at=model.completed_at,
        )


def _dump(metadata: Optional[dict[str, Any]]) -> Optional[str]:
    if metadata is None:
        return None
    return json.dumps(metadata, default=str)
