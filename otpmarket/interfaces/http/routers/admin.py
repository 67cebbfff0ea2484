"""Operator endpoints: expiry sweep, archival and wallet audit."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from otpmarket.core.config import get_settings
from otpmarket.core.security import get_current_admin
from otpmarket.domain.orders import OrderService
from otpmarket.domain.reconciliation import ReconciliationService
from otpmarket.interfaces.http.deps import get_order_service, get_reconciliation_service
from otpmarket.schemas import (
    ArchiveResponse,
    BalanceAuditItem,
    BalanceAuditResponse,
    CurrentUser,
    SweepResponse,
)

router = APIRouter()


@router.post("/orders/sweep", response_model=SweepResponse, summary="Expire overdue orders now")
async def sweep_expired_orders(
    limit: int = Query(default=1000, ge=1, le=5000),
    _: CurrentUser = Depends(get_current_admin),
    reconciliation: ReconciliationService = Depends(get_reconciliation_service),
) -> SweepResponse:
    result = await reconciliation.sweep(limit)
    return SweepResponse(checked=result.checked, expired=result.expired, failed=result.failed)


@router.post("/orders/archive", response_model=ArchiveResponse, summary="Archive old completed orders")
async def archive_completed_orders(
    older_than_days: Optional[int] = Query(default=None, ge=1),
    _: CurrentUser = Depends(get_current_admin),
    orders: OrderService = Depends(get_order_service),
) -> ArchiveResponse:
    days = older_than_days or get_settings().orders.archive_after_days
    return ArchiveResponse(archived=await orders.archive_completed(days))


@router.get("/wallets/audit", response_model=BalanceAuditResponse, summary="Compare balances with the ledger")
async def audit_wallets(
    limit: int = Query(default=500, ge=1, le=5000),
    offset: int = Query(default=0, ge=0),
    _: CurrentUser = Depends(get_current_admin),
    reconciliation: ReconciliationService = Depends(get_reconciliation_service),
) -> BalanceAuditResponse:
    report = await reconciliation.audit_balances(limit, offset)
    return BalanceAuditResponse(
        checked=report.checked,
        anomalies=[
            BalanceAuditItem(
                user_id=item.user_id,
                stored_cents=item.stored_cents,
                computed_cents=item.computed_cents,
                difference_cents=item.difference_cents,
            )
            for item in report.anomalies
        ],
    )
