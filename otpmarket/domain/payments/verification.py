"""Verify-by-reference lookups against gateway APIs.

Used when the client returns from checkout before (or instead of) the
webhook arriving. Lookups are read-only; crediting stays with the ledger.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol
from urllib.parse import quote

import httpx

from otpmarket.core.config import FlutterwaveSettings, PaystackSettings
from otpmarket.infrastructure.http import RetryExhausted, RetryPolicy

from .exceptions import VerificationFailed
from .gateways import major_to_cents
from .models import GatewayVerification

logger = logging.getLogger(__name__)


class PaymentVerifier(Protocol):
    name: str

    async def verify(self, reference: str) -> GatewayVerification:
        ...

    async def aclose(self) -> None:
        ...


class _HttpVerifier:
    name = ""
    label = ""

    def __init__(
        self,
        *,
        secret: str,
        retry: RetryPolicy,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 15.0,
    ) -> None:
        self._secret = secret
        self._retry = retry
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def _fetch(self, url: str, **params: Any) -> dict[str, Any]:
        if not self._secret:
            raise VerificationFailed(f"{self.label} secret key not configured")
        try:
            response = await self._retry.send(
                self._client,
                "GET",
                url,
                params=params or None,
                headers={"Authorization": f"Bearer {self._secret}"},
            )
        except RetryExhausted as exc:
            raise VerificationFailed(f"{self.label} verification unavailable: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = None
        if response.status_code >= 400:
            message = body.get("message") if isinstance(body, dict) else None
            raise VerificationFailed(
                f"{self.label} verification failed: {message or f'HTTP {response.status_code}'}"
            )
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict):
            raise VerificationFailed(f"{self.label} verification returned an unexpected body")
        return data

    async def aclose(self) -> None:
        await self._client.aclose()


class PaystackVerifier(_HttpVerifier):
    name = "paystack"
    label = "Paystack"

    def __init__(self, settings: PaystackSettings, **kwargs: Any) -> None:
        super().__init__(secret=settings.secret_key, **kwargs)
        self._api_url = settings.api_url.rstrip("/")

    async def verify(self, reference: str) -> GatewayVerification:
        data = await self._fetch(f"{self._api_url}/transaction/verify/{quote(reference, safe='')}")
        status = str(data.get("status") or "").lower()
        try:
            # kobo are already minor units
            amount_cents = int(data["amount"]) if data.get("amount") is not None else None
        except (TypeError, ValueError):
            amount_cents = None
        return GatewayVerification(reference, status, paid=status == "success", amount_cents=amount_cents)


class FlutterwaveVerifier(_HttpVerifier):
    name = "flutterwave"
    label = "Flutterwave"

    def __init__(self, settings: FlutterwaveSettings, **kwargs: Any) -> None:
        super().__init__(secret=settings.secret_key, **kwargs)
        self._api_url = settings.api_url.rstrip("/")

    async def verify(self, reference: str) -> GatewayVerification:
        data = await self._fetch(f"{self._api_url}/transactions/verify_by_reference", tx_ref=reference)
        if data.get("tx_ref") not in (None, reference):
            logger.warning("Flutterwave verification for %s answered for %s", reference, data.get("tx_ref"))
            return GatewayVerification(reference, "mismatch", paid=False)
        status = str(data.get("status") or "").lower()
        return GatewayVerification(
            reference,
            status,
            paid=status in ("successful", "success"),
            amount_cents=major_to_cents(data.get("amount")),
        )
