"""Translate domain errors into HTTP responses."""

from fastapi import HTTPException, status

from otpmarket.domain.ledger import InsufficientBalance, InvalidAmount, LedgerError, UserNotFound, WithdrawalTooSmall
from otpmarket.domain.orders import OrderError, OrderNotCancellable, OrderNotFound
from otpmarket.domain.payments import (
    DepositNotFound,
    InvalidSignature,
    MalformedPayload,
    PaymentError,
    UnknownGateway,
    VerificationFailed,
)
from otpmarket.domain.pricing import PricingError, PricingUnavailable
from otpmarket.domain.providers import NoProviderAvailable, ProviderError, ProviderUnavailable, ServiceUnsupported

DOMAIN_ERRORS = (LedgerError, OrderError, PaymentError, PricingError, ProviderError)

_STATUS_BY_ERROR: tuple[tuple[type[Exception], int], ...] = (
    (InsufficientBalance, status.HTTP_402_PAYMENT_REQUIRED),
    (WithdrawalTooSmall, status.HTTP_400_BAD_REQUEST),
    (InvalidAmount, status.HTTP_400_BAD_REQUEST),
    (UserNotFound, status.HTTP_404_NOT_FOUND),
    (PricingUnavailable, status.HTTP_400_BAD_REQUEST),
    (ServiceUnsupported, status.HTTP_400_BAD_REQUEST),
    (NoProviderAvailable, status.HTTP_400_BAD_REQUEST),
    (ProviderUnavailable, status.HTTP_502_BAD_GATEWAY),
    (OrderNotFound, status.HTTP_404_NOT_FOUND),
    (OrderNotCancellable, status.HTTP_409_CONFLICT),
    (InvalidSignature, status.HTTP_401_UNAUTHORIZED),
    (UnknownGateway, status.HTTP_404_NOT_FOUND),
    (MalformedPayload, status.HTTP_400_BAD_REQUEST),
    (DepositNotFound, status.HTTP_404_NOT_FOUND),
    (VerificationFailed, status.HTTP_502_BAD_GATEWAY),
)


def to_http_exception(exc: Exception) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
