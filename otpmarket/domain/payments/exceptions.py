"""Payment domain specific exceptions."""

from __future__ import annotations


class PaymentError(Exception):
    """Base class for payment errors."""


class UnknownGateway(PaymentError):
    """Raised for webhook or deposit requests naming a gateway we do not integrate."""

    def __init__(self, gateway: str) -> None:
        super().__init__(f"Unknown payment gateway: {gateway}")
        self.gateway = gateway


class InvalidSignature(PaymentError):
    """Raised when a webhook fails signature verification."""


class MalformedPayload(PaymentError):
    """Raised when a verified webhook body is not a JSON object."""


class DepositNotFound(PaymentError):
    """Raised when a reference names no deposit of the requesting user."""

    def __init__(self, reference: str) -> None:
        super().__init__(f"Deposit {reference} not found")
        self.reference = reference


class VerificationFailed(PaymentError):
    """Raised when the gateway's verification API cannot be reached or refuses the lookup."""
