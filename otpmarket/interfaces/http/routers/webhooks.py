"""Payment gateway webhooks.

Signatures are computed over the raw request body, so the body is read as
bytes and never re-serialised before verification.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from otpmarket.domain.payments import PaymentError, PaymentService
from otpmarket.interfaces.http.deps import get_payment_service
from otpmarket.interfaces.http.errors import to_http_exception
from otpmarket.schemas import WebhookAck

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/{gateway}", response_model=WebhookAck, summary="Receive a payment gateway webhook")
async def receive_webhook(
    gateway: str,
    request: Request,
    payments: PaymentService = Depends(get_payment_service),
) -> WebhookAck:
    raw_body = await request.body()
    try:
        header = payments.gateway(gateway).signature_header
        result = await payments.handle_webhook(gateway, raw_body, request.headers.get(header))
    except PaymentError as exc:
        logger.warning("Rejected %s webhook: %s", gateway, exc)
        raise to_http_exception(exc) from exc
    return WebhookAck(outcome=result.outcome.value, reference=result.reference)
