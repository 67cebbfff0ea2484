"""Order endpoints for the signed-in user."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from otpmarket.core.security import get_current_user
from otpmarket.domain.orders import OrderService, OrderSnapshot
from otpmarket.interfaces.http.deps import get_order_service
from otpmarket.interfaces.http.errors import DOMAIN_ERRORS, to_http_exception
from otpmarket.schemas import (
    CurrentUser,
    OrderCreateRequest,
    OrderListResponse,
    OrderResponse,
    TerminalOutcomeResponse,
)

router = APIRouter()


def _to_response(snapshot: OrderSnapshot) -> OrderResponse:
    outcome = snapshot.outcome
    return OrderResponse(
        id=snapshot.id,
        order_number=snapshot.order_number,
        service_code=snapshot.service_code,
        country=snapshot.country,
        provider_id=snapshot.provider_id,
        phone_number=snapshot.phone_number,
        price_cents=snapshot.price_cents,
        currency=snapshot.currency,
        status=snapshot.status.value,
        refunded=snapshot.refunded,
        sms_code=snapshot.sms_code,
        sms_message=snapshot.sms_message,
        outcome=TerminalOutcomeResponse(
            status=outcome.status.value,
            reason=outcome.reason.value if outcome.reason else None,
            refunded=outcome.refunded,
        )
        if outcome
        else None,
        created_at=snapshot.created_at,
        expires_at=snapshot.expires_at,
        completed_at=snapshot.completed_at,
        cancelled_at=snapshot.cancelled_at,
    )


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED, summary="Rent a number")
async def create_order(
    payload: OrderCreateRequest,
    user: CurrentUser = Depends(get_current_user),
    orders: OrderService = Depends(get_order_service),
) -> OrderResponse:
    try:
        snapshot = await orders.create_order(
            user.id,
            payload.service_code,
            payload.country,
            preferred_provider=payload.preferred_provider,
        )
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return _to_response(snapshot)


@router.get("", response_model=OrderListResponse, summary="List own orders")
async def list_orders(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    search: Optional[str] = None,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user: CurrentUser = Depends(get_current_user),
    orders: OrderService = Depends(get_order_service),
) -> OrderListResponse:
    snapshots = await orders.list_orders(user.id, status=status_filter, search=search, limit=limit, offset=offset)
    return OrderListResponse(orders=[_to_response(snapshot) for snapshot in snapshots])


@router.get("/{order_id}", response_model=OrderResponse, summary="Order status (polls the provider)")
async def get_order(
    order_id: str,
    user: CurrentUser = Depends(get_current_user),
    orders: OrderService = Depends(get_order_service),
) -> OrderResponse:
    try:
        snapshot = await orders.get_order_status(order_id, user_id=user.id)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return _to_response(snapshot)


@router.post("/{order_id}/cancel", response_model=OrderResponse, summary="Cancel and refund an order")
async def cancel_order(
    order_id: str,
    user: CurrentUser = Depends(get_current_user),
    orders: OrderService = Depends(get_order_service),
) -> OrderResponse:
    try:
        snapshot = await orders.cancel_order(order_id, user.id)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return _to_response(snapshot)
