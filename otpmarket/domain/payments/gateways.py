"""Signature verification and payload normalisation per payment gateway."""

from __future__ import annotations

import hashlib
import hmac
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Protocol

from otpmarket.core.clock import to_cents
from otpmarket.core.config import EtegramSettings, FlutterwaveSettings, PaystackSettings

from .exceptions import InvalidSignature
from .models import GatewayEvent


class PaymentGateway(Protocol):
    name: str
    signature_header: str
    reference_prefix: str

    def verify(self, raw_body: bytes, signature: Optional[str]) -> None:
        ...

    def parse(self, payload: dict[str, Any]) -> Optional[GatewayEvent]:
        ...


def _hmac_hex(secret: str, raw_body: bytes, digest) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, digest).hexdigest()


def _matches(expected: str, received: str) -> bool:
    # bytes, so a non-ASCII header is a mismatch rather than a TypeError
    return hmac.compare_digest(expected.encode("utf-8"), received.encode("utf-8"))


def major_to_cents(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return to_cents(Decimal(str(value)))
    except InvalidOperation:
        return None


class PaystackGateway:
    name = "paystack"
    signature_header = "x-paystack-signature"
    reference_prefix = "PST"

    def __init__(self, settings: PaystackSettings) -> None:
        self._secret = settings.secret_key

    def verify(self, raw_body: bytes, signature: Optional[str]) -> None:
        if not self._secret:
            raise InvalidSignature("Paystack secret key not configured")
        expected = _hmac_hex(self._secret, raw_body, hashlib.sha512)
        if not signature or not _matches(expected, signature.strip().lower()):
            raise InvalidSignature("Paystack signature mismatch")

    def parse(self, payload: dict[str, Any]) -> Optional[GatewayEvent]:
        if payload.get("event") != "charge.success":
            return None
        data = payload.get("data")
        if not isinstance(data, dict):
            return None
        reference = data.get("reference")
        metadata = data.get("metadata") if isinstance(data.get("metadata"), dict) else {}
        channel = data.get("channel")
        customer = data.get("customer") if isinstance(data.get("customer"), dict) else {}
        amount = data.get("amount")
        try:
            # kobo are already minor units
            amount_cents = int(amount) if amount is not None else None
        except (TypeError, ValueError):
            amount_cents = None
        unregistered = channel == "dedicated_nuban" or bool(
            data.get("paid_at") and not metadata.get("created_from_initialize")
        )
        return GatewayEvent(
            gateway=self.name,
            event_id=str(data.get("id") or reference or ""),
            reference=reference,
            amount_cents=amount_cents,
            successful=str(data.get("status", "success")).lower() == "success",
            customer_email=customer.get("email"),
            unregistered=unregistered,
            metadata={"provider": self.name, "reference": reference, "channel": channel},
        )


class FlutterwaveGateway:
    name = "flutterwave"
    signature_header = "verif-hash"
    reference_prefix = "FLW"

    def __init__(self, settings: FlutterwaveSettings) -> None:
        self._secret_hash = settings.secret_hash

    def verify(self, raw_body: bytes, signature: Optional[str]) -> None:
        if not self._secret_hash:
            raise InvalidSignature("Flutterwave secret hash not configured")
        if not signature or not _matches(self._secret_hash, signature):
            raise InvalidSignature("Flutterwave verif-hash mismatch")

    def parse(self, payload: dict[str, Any]) -> Optional[GatewayEvent]:
        data = payload.get("data")
        if not isinstance(data, dict):
            return None
        reference = data.get("tx_ref")
        return GatewayEvent(
            gateway=self.name,
            event_id=str(data.get("id") or reference or ""),
            reference=reference,
            amount_cents=major_to_cents(data.get("amount")),
            successful=str(data.get("status", "")).lower() == "successful",
            metadata={"provider": self.name, "reference": reference},
        )


class EtegramGateway:
    name = "etegram"
    signature_header = "x-etegram-signature"
    reference_prefix = "ETG"

    def __init__(self, settings: EtegramSettings) -> None:
        self._secret = settings.webhook_secret

    def verify(self, raw_body: bytes, signature: Optional[str]) -> None:
        if not self._secret:
            raise InvalidSignature("Etegram webhook secret not configured")
        expected = _hmac_hex(self._secret, raw_body, hashlib.sha256)
        if not signature or not _matches(expected, signature.strip().lower()):
            raise InvalidSignature("Etegram signature mismatch")

    def parse(self, payload: dict[str, Any]) -> Optional[GatewayEvent]:
        data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
        reference = payload.get("reference") or data.get("reference")
        status = str(payload.get("status") or data.get("status") or "").lower()
        amount = payload.get("amount") if payload.get("amount") is not None else data.get("amount")
        return GatewayEvent(
            gateway=self.name,
            event_id=str(reference or ""),
            reference=reference,
            amount_cents=major_to_cents(amount),
            successful=status in ("success", "successful"),
            metadata={"provider": self.name, "reference": reference},
        )
