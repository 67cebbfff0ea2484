"""TextVerified adapter (US numbers only).

Calls use a bearer token obtained from ``POST /auth``; the token is kept in a
``TokenState`` shared by all requests of the adapter and refreshed when it
expires or when the API answers 401.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import httpx

from otpmarket.core.config import TextVerifiedSettings
from otpmarket.infrastructure.http import RetryExhausted, RetryPolicy

from .base import CodeCheck, Reservation, TimedValue
from .exceptions import ProviderUnavailable, ServiceUnsupported
from .extraction import extract_code

logger = logging.getLogger(__name__)

PROVIDER_ID = "textverified"
SUPPORTED_COUNTRIES = frozenset({"US"})


@dataclass
class TokenState:
    token: TimedValue[str] = field(default_factory=TimedValue)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class TextVerifiedAdapter:
    provider_id = PROVIDER_ID
    priority = 2

    def __init__(
        self,
        settings: TextVerifiedSettings,
        *,
        retry: RetryPolicy,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 15.0,
        state: Optional[TokenState] = None,
    ) -> None:
        self._settings = settings
        self._retry = retry
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._state = state or TokenState()

    @property
    def configured(self) -> bool:
        return bool(self._settings.api_key and self._settings.username)

    def serves_country(self, country: str) -> bool:
        return country.upper() in SUPPORTED_COUNTRIES

    def _url(self, path_or_href: str) -> str:
        if path_or_href.startswith(("http://", "https://")):
            return path_or_href
        return f"{self._settings.api_url.rstrip('/')}/{path_or_href.lstrip('/')}"

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._retry.send(self._client, method, url, **kwargs)
        except RetryExhausted as exc:
            raise ProviderUnavailable(self.provider_id, str(exc)) from exc

    async def bearer_token(self, *, force: bool = False) -> str:
        if not force:
            token = self._state.token.get()
            if token:
                return token
        async with self._state.lock:
            token = self._state.token.get()
            if token and not force:
                return token
            if not self.configured:
                raise ProviderUnavailable(self.provider_id, "API key or username not configured")
            response = await self._send(
                "POST",
                self._url("auth"),
                headers={
                    "X-API-KEY": self._settings.api_key,
                    "X-API-USERNAME": self._settings.username,
                },
            )
            if response.status_code >= 400:
                raise ProviderUnavailable(self.provider_id, f"authentication failed with HTTP {response.status_code}")
            data = _json(response) or {}
            token = data.get("token") or data.get("access_token") or data.get("bearerToken")
            if not token:
                raise ProviderUnavailable(self.provider_id, "no bearer token in auth response")
            logger.info("TextVerified bearer token refreshed")
            return self._state.token.store(token, self._settings.token_ttl_seconds)

    async def _authorized(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        token = await self.bearer_token()
        response = await self._send(method, url, headers={"Authorization": f"Bearer {token}"}, **kwargs)
        if response.status_code == 401:
            self._state.token.invalidate()
            token = await self.bearer_token(force=True)
            response = await self._send(method, url, headers={"Authorization": f"Bearer {token}"}, **kwargs)
        return response

    async def supports(self, service_code: str, country: str) -> bool:
        return self.serves_country(country) and bool(service_code)

    async def reserve_number(self, service_code: str, country: str) -> Reservation:
        if not self.serves_country(country):
            raise ServiceUnsupported(self.provider_id, service_code, country)

        response = await self._authorized(
            "POST",
            self._url("verifications"),
            json={"serviceName": service_code, "capability": "sms"},
        )
        data = _json(response)
        if data is None:
            raise ProviderUnavailable(
                self.provider_id, f"verification returned a non-JSON body (HTTP {response.status_code})"
            )
        if response.status_code >= 400:
            message = data.get("message") or data.get("error") or f"HTTP {response.status_code}"
            raise ProviderUnavailable(self.provider_id, f"verification failed: {message}")
        href = data.get("href")
        if not href:
            raise ProviderUnavailable(self.provider_id, "verification response missing href")

        cost = None
        if data.get("price") is not None:
            try:
                cost = Decimal(str(data["price"]))
            except InvalidOperation:
                cost = None
        logger.info("TextVerified created verification %s for %s", href.rsplit("/", 1)[-1], service_code)
        return Reservation(external_id=href, phone_number=data.get("number"), cost=cost)

    async def check_for_code(self, external_id: str) -> CodeCheck:
        href = self._url(external_id)
        response = await self._authorized("GET", f"{href.rstrip('/')}/messages")
        if response.status_code >= 400:
            response = await self._authorized("GET", href)
        if response.status_code >= 400:
            logger.info("TextVerified lookup for %s answered HTTP %s", external_id, response.status_code)
            return CodeCheck.not_found()
        data = _json(response)
        if data is None:
            return CodeCheck.not_found()
        found = extract_code(data)
        if found is None:
            return CodeCheck.not_found()
        return CodeCheck(found=True, code=found.code, raw_text=found.message)

    async def get_verification_details(self, external_id: str) -> Optional[dict[str, Optional[str]]]:
        response = await self._authorized("GET", self._url(external_id))
        if response.status_code >= 400:
            logger.warning("TextVerified details for %s failed with HTTP %s", external_id, response.status_code)
            return None
        data = _json(response) or {}
        nested = data.get("data") if isinstance(data.get("data"), dict) else {}
        return {
            "state": data.get("state") or nested.get("state"),
            "number": nested.get("phoneNumber") or nested.get("number") or data.get("number"),
        }

    async def refresh_reservation(self, external_id: str) -> Optional[str]:
        details = await self.get_verification_details(external_id)
        return details.get("number") if details else None

    async def cancel(self, external_id: str) -> None:
        try:
            response = await self._authorized("DELETE", self._url(external_id))
        except ProviderUnavailable as exc:
            logger.warning("TextVerified cancel failed for %s: %s", external_id, exc)
            return
        if response.status_code >= 400:
            logger.warning("TextVerified cancel for %s answered HTTP %s", external_id, response.status_code)
            return
        logger.info("TextVerified cancelled verification %s", external_id)

    async def aclose(self) -> None:
        await self._client.aclose()


def _json(response: httpx.Response) -> Optional[dict[str, Any]]:
    try:
        data = response.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else {"data": data}
