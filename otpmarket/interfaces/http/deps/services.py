"""Domain service providers."""

from fastapi import Depends

from otpmarket.core.container import ApplicationContainer
from otpmarket.domain.orders import OrderService
from otpmarket.domain.payments import PaymentService
from otpmarket.domain.reconciliation import ReconciliationService

from .database import get_app_container


def get_order_service(container: ApplicationContainer = Depends(get_app_container)) -> OrderService:
    return container.orders


def get_payment_service(container: ApplicationContainer = Depends(get_app_container)) -> PaymentService:
    return container.payments


def get_reconciliation_service(
    container: ApplicationContainer = Depends(get_app_container),
) -> ReconciliationService:
    return container.reconciliation
