"""Repository interfaces used by the ledger service."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Protocol, Sequence

from otpmarket.db.models import Order as OrderModel, Transaction as TransactionModel, User as UserModel
from otpmarket.domain.common import OrderStatus


class LedgerRepository(Protocol):
    async def get_user(self, user_id: str) -> UserModel | None:
        ...

    async def debit_if_sufficient(self, user_id: str, amount_cents: int) -> int | None:
        ...

    async def credit(self, user_id: str, amount_cents: int) -> int | None:
        ...

    async def add_transaction(self, **fields) -> TransactionModel:
        ...

    async def get_by_reference(self, reference: str) -> TransactionModel | None:
        ...

    async def complete_pending_deposit(
        self,
        reference: str,
        *,
        amount_cents: int | None,
        completed_at: datetime,
        meta: str | None,
    ) -> TransactionModel | None:
        ...

    async def set_balance_snapshot(self, transaction_id: str, *, before: int, after: int) -> None:
        ...

    async def list_transactions(
        self, user_id: str, limit: int, offset: int, type: str | None = None
    ) -> Sequence[TransactionModel]:
        ...

    async def signed_totals(self, user_id: str) -> dict[str, int]:
        ...


class OrderStatusRepository(Protocol):
    async def transition(
        self,
        order_id: str,
        *,
        from_statuses: Iterable[OrderStatus | str],
        **values,
    ) -> OrderModel | None:
        ...
