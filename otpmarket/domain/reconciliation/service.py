"""Periodic safety net for orders nobody is watching and for wallet drift."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from otpmarket.domain.ledger import LedgerService
from otpmarket.domain.orders import OrderService
from otpmarket.infrastructure.database.repositories.ledger_repository import SqlLedgerRepository

from .models import BalanceAuditReport, SweepResult

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ReconciliationService:
    orders: OrderService
    session_factory: async_sessionmaker[AsyncSession]
    batch_size: int = 1000

    async def sweep(self, limit: Optional[int] = None) -> SweepResult:
        """Expire and refund overdue live orders, oldest deadline first.

        ``expired`` counts the transitions this sweep actually made; orders
        finished concurrently by someone else are checked but not counted.
        """
        order_ids = await self.orders.overdue_order_ids(self.batch_size if limit is None else limit)
        expired = 0
        failed = 0
        for order_id in order_ids:
            try:
                if await self.orders.evaluate_expiry(order_id):
                    expired += 1
            except Exception as exc:  # pylint: disable=broad-except
                failed += 1
                logger.error("Sweep could not expire order %s: %s", order_id, exc)
        if order_ids:
            logger.info("Sweep checked %s overdue orders, expired %s, failed %s", len(order_ids), expired, failed)
        return SweepResult(checked=len(order_ids), expired=expired, failed=failed)

    async def audit_balances(self, limit: int = 500, offset: int = 0) -> BalanceAuditReport:
        """Compare stored balances with the ledger; reports drift, never corrects it."""
        report = BalanceAuditReport()
        async with self.session_factory() as session:
            users = await SqlLedgerRepository(session).list_users(limit, offset)
            ledger = LedgerService.with_session(session)
            for user in users:
                report.checked += 1
                audit = await ledger.audit_user(user.id)
                if not audit.is_consistent:
                    report.anomalies.append(audit)
                    logger.warning(
                        "Balance drift for user %s: stored %s, ledger %s",
                        audit.user_id,
                        audit.stored_cents,
                        audit.computed_cents,
                    )
        return report
