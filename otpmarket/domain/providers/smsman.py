"""SMS-Man adapter.

SMS-Man authenticates with a ``token`` query parameter and answers every
call with HTTP 200; failures are reported in the body as ``error_code`` /
``error_msg``.
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import httpx

from otpmarket.core.config import SmsManSettings
from otpmarket.infrastructure.cache import CacheBackend
from otpmarket.infrastructure.http import RetryExhausted, RetryPolicy

from .base import CodeCheck, Reservation, TimedValue
from .exceptions import ProviderUnavailable, ServiceUnsupported
from .extraction import extract_code

logger = logging.getLogger(__name__)

PROVIDER_ID = "sms-man"
APPLICATIONS_CACHE_KEY = "smsman:applications"

# ISO 3166 alpha-2 -> SMS-Man country id
SMSMAN_COUNTRY_IDS: dict[str, str] = {
    "RU": "0", "UA": "1", "KZ": "2", "CN": "3", "PH": "4", "MM": "5", "ID": "6",
    "MY": "7", "KE": "8", "TZ": "9", "VN": "10", "KG": "11", "US": "12", "IL": "13",
    "HK": "14", "PL": "15", "GB": "16", "MG": "17", "ZA": "18", "RO": "19", "EG": "20",
    "IN": "21", "IE": "22", "KH": "23", "LA": "24", "HT": "25", "CI": "26", "GM": "27",
    "RS": "28", "YE": "29", "ZM": "30", "UZ": "31", "TJ": "32", "EC": "33", "SV": "34",
    "LY": "35", "JM": "36", "TT": "37", "GH": "38", "AR": "39", "UG": "40", "ZW": "41",
    "BO": "42", "CM": "43", "MA": "44", "AO": "45", "CA": "46", "MZ": "47", "NP": "48",
    "KR": "49", "TH": "50", "BD": "51", "NL": "52", "FR": "53", "DE": "54", "IT": "55",
    "ES": "56", "BR": "57", "MX": "58", "NG": "59",
}

# still waiting for the message, not a failure
WAITING_ERROR_CODES = {"wait_sms"}


class SmsManAdapter:
    provider_id = PROVIDER_ID
    priority = 1

    def __init__(
        self,
        settings: SmsManSettings,
        *,
        cache: CacheBackend,
        retry: RetryPolicy,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 15.0,
        catalog_ttl: int = 60 * 60 * 24,
    ) -> None:
        self._settings = settings
        self._cache = cache
        self._retry = retry
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._catalog_ttl = catalog_ttl
        self._applications: TimedValue[dict[str, str]] = TimedValue()
        self._applications_lock = asyncio.Lock()

    @property
    def configured(self) -> bool:
        return bool(self._settings.api_key)

    def serves_country(self, country: str) -> bool:
        return country.upper() in SMSMAN_COUNTRY_IDS

    async def _call(self, path: str, **params: Any) -> dict[str, Any]:
        if not self.configured:
            raise ProviderUnavailable(self.provider_id, "API key not configured")
        url = f"{self._settings.api_url.rstrip('/')}/{path}"
        try:
            response = await self._retry.send(
                self._client, "GET", url, params={"token": self._settings.api_key, **params}
            )
        except RetryExhausted as exc:
            raise ProviderUnavailable(self.provider_id, str(exc)) from exc
        if response.status_code >= 500:
            raise ProviderUnavailable(self.provider_id, f"{path} returned HTTP {response.status_code}")
        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderUnavailable(self.provider_id, f"{path} returned a non-JSON body") from exc
        if not isinstance(data, (dict, list)):
            raise ProviderUnavailable(self.provider_id, f"{path} returned an unexpected body")
        return data if isinstance(data, dict) else {"items": data}

    async def applications(self) -> dict[str, str]:
        """Map of application slug/code -> SMS-Man application id."""
        cached = self._applications.get()
        if cached is not None:
            return cached
        async with self._applications_lock:
            cached = self._applications.get()
            if cached is not None:
                return cached
            shared = await self._cache.get(APPLICATIONS_CACHE_KEY)
            if isinstance(shared, dict) and shared:
                return self._applications.store(shared, self._catalog_ttl)

            data = await self._call("applications")
            entries = data.get("items") if "items" in data else list(data.values())
            mapping: dict[str, str] = {}
            for entry in entries or []:
                if not isinstance(entry, dict) or entry.get("id") is None:
                    continue
                code = entry.get("slug") or entry.get("code")
                if code:
                    mapping[str(code)] = str(entry["id"])
            if not mapping:
                raise ProviderUnavailable(self.provider_id, "application list is empty")
            logger.info("Loaded %s SMS-Man applications", len(mapping))
            await self._cache.set(APPLICATIONS_CACHE_KEY, mapping, self._catalog_ttl)
            return self._applications.store(mapping, self._catalog_ttl)

    async def supports(self, service_code: str, country: str) -> bool:
        if not self.serves_country(country):
            return False
        return service_code in await self.applications()

    async def reserve_number(self, service_code: str, country: str) -> Reservation:
        country_id = SMSMAN_COUNTRY_IDS.get(country.upper())
        if country_id is None:
            raise ServiceUnsupported(self.provider_id, service_code, country)
        application_id = (await self.applications()).get(service_code)
        if application_id is None:
            raise ServiceUnsupported(self.provider_id, service_code, country)

        data = await self._call("get-number", country_id=country_id, application_id=application_id)
        if data.get("success") is False or data.get("error_code"):
            # no_numbers, no_balance and friends are definitive answers, not retried
            reason = data.get("error_msg") or data.get("error") or data.get("error_code") or "failed to get number"
            raise ProviderUnavailable(self.provider_id, str(reason))
        request_id = data.get("request_id")
        if request_id is None:
            raise ProviderUnavailable(self.provider_id, "response missing request_id")

        cost = None
        if data.get("cost") is not None:
            try:
                cost = Decimal(str(data["cost"]))
            except InvalidOperation:
                cost = None
        logger.info("SMS-Man reserved request %s for %s/%s", request_id, service_code, country)
        return Reservation(external_id=str(request_id), phone_number=data.get("number"), cost=cost)

    async def check_for_code(self, external_id: str) -> CodeCheck:
        data = await self._call("get-sms", request_id=external_id)
        error_code = data.get("error_code")
        if error_code:
            if error_code not in WAITING_ERROR_CODES:
                logger.info("SMS-Man get-sms for %s answered %s", external_id, error_code)
            return CodeCheck.not_found()
        found = extract_code(data)
        if found is None:
            return CodeCheck.not_found()
        return CodeCheck(found=True, code=found.code, raw_text=found.message)

    async def refresh_reservation(self, external_id: str) -> Optional[str]:
        # get-number always returns the phone number
        return None

    async def cancel(self, external_id: str) -> None:
        try:
            data = await self._call("set-status", request_id=external_id, status="close")
            if data.get("success") is False or data.get("error_code"):
                logger.info(
                    "SMS-Man set-status close refused for %s (%s), falling back to cancel-request",
                    external_id,
                    data.get("error_msg") or data.get("error_code"),
                )
                data = await self._call("cancel-request", request_id=external_id)
                if data.get("success") is False:
                    logger.warning(
                        "SMS-Man cancel-request failed for %s: %s", external_id, data.get("error_msg")
                    )
                    return
            logger.info("SMS-Man cancelled request %s", external_id)
        except ProviderUnavailable as exc:
            logger.warning("SMS-Man cancel failed for %s: %s", external_id, exc)

    async def aclose(self) -> None:
        await self._client.aclose()
