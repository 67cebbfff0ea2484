"""SQLAlchemy implementation for the order domain"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Sequence

from sqlalchemy import desc, or_, select, update

from otpmarket.db.models import Order
from otpmarket.domain.common import ACTIVE_ORDER_STATUSES, AsyncRepository, OrderStatus


def _status_values(statuses: Iterable[OrderStatus | str]) -> list[str]:
    return [s.value if isinstance(s, OrderStatus) else s for s in statuses]


class SqlOrderRepository(AsyncRepository[Order]):
    async def get(self, order_id: str) -> Order | None:
        return await self.session.get(Order, order_id, populate_existing=True)

    async def get_for_user(self, order_id: str, user_id: str) -> Order | None:
        stmt = select(Order).where(Order.id == order_id, Order.user_id == user_id)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def transition(
        self,
        order_id: str,
        *,
        from_statuses: Iterable[OrderStatus | str],
        **values,
    ) -> Order | None:
        """Compare-and-swap: apply ``values`` only while the status is in ``from_statuses``.

        Returns the updated row, or ``None`` when another writer got there first.
        """
        for key, value in list(values.items()):
            if isinstance(value, OrderStatus):
                values[key] = value.value
        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.status.in_(_status_values(from_statuses)))
            .values(**values)
            .execution_options(synchronize_session="fetch")
            .returning(Order)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def set_phone_number(self, order_id: str, phone_number: str) -> None:
        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.phone_number.is_(None))
            .values(phone_number=phone_number)
            .execution_options(synchronize_session="fetch")
        )
        await self.session.execute(stmt)

    async def list_for_user(
        self,
        user_id: str,
        *,
        status: str | None = None,
        search: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Sequence[Order]:
        stmt = select(Order).where(Order.user_id == user_id)
        if status:
            stmt = stmt.where(Order.status == status)
        if search:
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(
                or_(
                    Order.order_number.ilike(pattern),
                    Order.phone_number.ilike(pattern),
                    Order.service_code.ilike(pattern),
                    Order.sms_code.ilike(pattern),
                )
            )
        stmt = stmt.order_by(desc(Order.created_at)).offset(offset).limit(limit)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def overdue_ids(self, now: datetime, limit: int) -> list[str]:
        stmt = (
            select(Order.id)
            .where(
                Order.status.in_(_status_values(ACTIVE_ORDER_STATUSES)),
                Order.expires_at.is_not(None),
                Order.expires_at < now,
            )
            .order_by(Order.expires_at)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def active_ids(self) -> list[str]:
        stmt = (
            select(Order.id)
            .where(Order.status.in_(_status_values(ACTIVE_ORDER_STATUSES)))
            .order_by(Order.created_at)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def archive_completed(self, *, completed_before: datetime, now: datetime) -> int:
        stmt = (
            update(Order)
            .where(
                Order.status == OrderStatus.COMPLETED.value,
                Order.completed_at < completed_before,
                Order.archived_at.is_(None),
            )
            .values(archived_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0
