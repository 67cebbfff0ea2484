"""Wallet endpoints: balance, ledger history, deposits and withdrawals."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from otpmarket.core.config import get_settings
from otpmarket.core.security import get_current_user
from otpmarket.domain.ledger import LedgerService, TransactionRecord
from otpmarket.domain.payments import PaymentService
from otpmarket.interfaces.http.deps import get_db_session, get_payment_service
from otpmarket.interfaces.http.errors import DOMAIN_ERRORS, to_http_exception
from otpmarket.schemas import (
    CurrentUser,
    DepositInitRequest,
    DepositVerificationResponse,
    WalletSnapshotResponse,
    WalletTransactionListResponse,
    WalletTransactionResponse,
    WithdrawalRequest,
)

router = APIRouter()


def _to_response(record: TransactionRecord) -> WalletTransactionResponse:
    return WalletTransactionResponse(
        id=record.id,
        transaction_number=record.transaction_number,
        type=record.type,
        amount_cents=record.amount_cents,
        balance_before_cents=record.balance_before_cents,
        balance_after_cents=record.balance_after_cents,
        status=record.status,
        order_id=record.order_id,
        external_reference=record.external_reference,
        payment_method=record.payment_method,
        description=record.description,
        created_at=record.created_at,
        completed_at=record.completed_at,
    )


@router.get("", response_model=WalletSnapshotResponse, summary="Current balance")
async def get_wallet(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> WalletSnapshotResponse:
    try:
        snapshot = await LedgerService.with_session(db).get_balance(user.id)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return WalletSnapshotResponse(balance_cents=snapshot.balance_cents, currency=snapshot.currency)


@router.get("/transactions", response_model=WalletTransactionListResponse, summary="Ledger history")
async def list_transactions(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    type_filter: Optional[str] = Query(default=None, alias="type"),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> WalletTransactionListResponse:
    records = await LedgerService.with_session(db).list_transactions(user.id, limit, offset, type_filter)
    return WalletTransactionListResponse(transactions=[_to_response(record) for record in records])


@router.post(
    "/deposits",
    response_model=WalletTransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start a deposit with a payment gateway",
)
async def initialize_deposit(
    payload: DepositInitRequest,
    user: CurrentUser = Depends(get_current_user),
    payments: PaymentService = Depends(get_payment_service),
) -> WalletTransactionResponse:
    try:
        record = await payments.initialize_deposit(user.id, payload.amount_cents, payload.gateway)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return _to_response(record)


@router.post(
    "/deposits/{reference}/verify",
    response_model=DepositVerificationResponse,
    summary="Check a deposit with its gateway and credit it once paid",
)
async def verify_deposit(
    reference: str,
    user: CurrentUser = Depends(get_current_user),
    payments: PaymentService = Depends(get_payment_service),
) -> DepositVerificationResponse:
    try:
        result = await payments.verify_deposit(user.id, reference)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return DepositVerificationResponse(
        outcome=result.outcome.value, reference=reference, amount_cents=result.amount_cents
    )


@router.post(
    "/withdrawals",
    response_model=WalletTransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request a withdrawal to a bank account",
)
async def request_withdrawal(
    payload: WithdrawalRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> WalletTransactionResponse:
    ledger = LedgerService.with_session(db, min_withdrawal_cents=get_settings().min_withdrawal_cents)
    try:
        record = await ledger.request_withdrawal(user.id, payload.amount_cents, payload.bank_details)
    except DOMAIN_ERRORS as exc:
        await db.rollback()
        raise to_http_exception(exc) from exc
    await db.commit()
    return _to_response(record)
