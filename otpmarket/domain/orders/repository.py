"""Repository interface for orders."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Protocol, Sequence

from otpmarket.db.models import Order as OrderModel
from otpmarket.domain.common import OrderStatus


class OrderRepository(Protocol):
    async def add(self, instance: OrderModel) -> OrderModel:
        ...

    async def get(self, order_id: str) -> OrderModel | None:
        ...

    async def get_for_user(self, order_id: str, user_id: str) -> OrderModel | None:
        ...

    async def transition(
        self,
        order_id: str,
        *,
        from_statuses: Iterable[OrderStatus | str],
        **values,
    ) -> OrderModel | None:
        ...

    async def set_phone_number(self, order_id: str, phone_number: str) -> None:
        ...

    async def list_for_user(
        self,
        user_id: str,
        *,
        status: str | None = None,
        search: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Sequence[OrderModel]:
        ...

    async def overdue_ids(self, now: datetime, limit: int) -> list[str]:
        ...

    async def active_ids(self) -> list[str]:
        ...

    async def archive_completed(self, *, completed_before: datetime, now: datetime) -> int:
        ...
