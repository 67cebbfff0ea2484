"""Payment gateway webhooks, deposit initialisation and verification."""

from .exceptions import (
    DepositNotFound,
    InvalidSignature,
    MalformedPayload,
    PaymentError,
    UnknownGateway,
    VerificationFailed,
)
from .gateways import EtegramGateway, FlutterwaveGateway, PaymentGateway, PaystackGateway
from .models import GatewayEvent, GatewayVerification, WebhookOutcome, WebhookResult
from .service import PaymentService
from .verification import FlutterwaveVerifier, PaymentVerifier, PaystackVerifier

__all__ = [
    "DepositNotFound",
    "EtegramGateway",
    "FlutterwaveGateway",
    "FlutterwaveVerifier",
    "GatewayEvent",
    "GatewayVerification",
    "InvalidSignature",
    "MalformedPayload",
    "PaymentError",
    "PaymentGateway",
    "PaymentService",
    "PaymentVerifier",
    "PaystackGateway",
    "PaystackVerifier",
    "UnknownGateway",
    "VerificationFailed",
    "WebhookOutcome",
    "WebhookResult",
]
