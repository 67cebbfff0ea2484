"""SQLAlchemy implementation for the ledger domain"""

from __future__ import annotations

from datetime import datetime
from typing import Sequence

from sqlalchemy import desc, func, select, update

from otpmarket.db.models import Transaction, User
from otpmarket.domain.common import AsyncRepository, TransactionStatus, TransactionType


class SqlLedgerRepository(AsyncRepository[Transaction]):
    async def get_user(self, user_id: str) -> User | None:
        return await self.session.get(User, user_id)

    async def get_user_by_email(self, email: str) -> User | None:
        stmt = select(User).where(func.lower(User.email) == email.strip().lower())
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def debit_if_sufficient(self, user_id: str, amount_cents: int) -> int | None:
        """Decrement the balance only when it covers ``amount_cents``; returns the new balance."""
        stmt = (
            update(User)
            .where(User.id == user_id, User.balance_cents >= amount_cents)
            .values(balance_cents=User.balance_cents - amount_cents)
            .execution_options(synchronize_session="fetch")
            .returning(User.balance_cents)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def credit(self, user_id: str, amount_cents: int) -> int | None:
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(balance_cents=User.balance_cents + amount_cents)
            .execution_options(synchronize_session="fetch")
            .returning(User.balance_cents)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def add_transaction(self, **fields) -> Transaction:
        return await self.add(Transaction(**fields))

    async def get_by_reference(self, reference: str) -> Transaction | None:
        stmt = select(Transaction).where(Transaction.external_reference == reference)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def complete_pending_deposit(
        self,
        reference: str,
        *,
        amount_cents: int | None,
        completed_at: datetime,
        meta: str | None,
    ) -> Transaction | None:
        values: dict = {
            "status": TransactionStatus.COMPLETED.value,
            "completed_at": completed_at,
        }
        if amount_cents is not None:
            values["amount_cents"] = amount_cents
        if meta is not None:
            values["meta"] = meta
        stmt = (
            update(Transaction)
            .where(
                Transaction.external_reference == reference,
                Transaction.type == TransactionType.DEPOSIT.value,
                Transaction.status == TransactionStatus.PENDING.value,
            )
            .values(**values)
            .execution_options(synchronize_session="fetch")
            .returning(Transaction)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def set_balance_snapshot(self, transaction_id: str, *, before: int, after: int) -> None:
        stmt = (
            update(Transaction)
            .where(Transaction.id == transaction_id)
            .values(balance_before_cents=before, balance_after_cents=after)
            .execution_options(synchronize_session="fetch")
        )
        await self.session.execute(stmt)

    async def list_transactions(
        self,
        user_id: str,
        limit: int,
        offset: int,
        type: str | None = None,
    ) -> Sequence[Transaction]:
        stmt = select(Transaction).where(Transaction.user_id == user_id)
        if type:
            stmt = stmt.where(Transaction.type == type)
        stmt = stmt.order_by(desc(Transaction.created_at)).offset(offset).limit(limit)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list_for_order(self, order_id: str) -> Sequence[Transaction]:
        stmt = select(Transaction).where(Transaction.order_id == order_id).order_by(Transaction.created_at)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def signed_totals(self, user_id: str) -> dict[str, int]:
        """Sum of balance-affecting amounts per transaction type.

        Withdrawals debit the balance when requested, so pending ones count.
        """
        affecting = (Transaction.status == TransactionStatus.COMPLETED.value) | (
            Transaction.type == TransactionType.WITHDRAWAL.value
        )
        stmt = (
            select(Transaction.type, func.coalesce(func.sum(Transaction.amount_cents), 0))
            .where(Transaction.user_id == user_id, affecting)
            .group_by(Transaction.type)
        )
        result = await self.session.execute(stmt)
        return {row[0]: int(row[1]) for row in result.all()}

    async def list_users(self, limit: int, offset: int = 0) -> Sequence[User]:
        stmt = select(User).order_by(User.created_at, User.id).offset(offset).limit(limit)
        result = await self.session.execute(stmt)
        return result.scalars().all()
