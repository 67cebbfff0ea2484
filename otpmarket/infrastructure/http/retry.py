"""Bounded retry for outbound provider calls.

Transport failures and gateway errors (502, 503, 504) back off
exponentially; HTTP 429 and 503 wait for the ``Retry-After`` the server asks
for, capped at ``max_retry_after``. Any other response goes back to the
caller untouched so that adapters can interpret provider-specific error
bodies.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable

import httpx

from otpmarket.core.config import RetrySettings

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]

RETRYABLE_STATUSES = frozenset({502, 503, 504})


class RetryExhausted(Exception):
    """Raised when every attempt failed with a transient error."""

    def __init__(self, message: str, last_error: Exception | None = None) -> None:
        super().__init__(message)
        self.last_error = last_error


def parse_retry_after(value: str | None, default: float = 1.0) -> float:
    if not value:
        return default
    try:
        return max(float(value), 0.0)
    except ValueError:
        return default


@dataclass(slots=True)
class RetryPolicy:
    attempts: int = 3
    backoff_seconds: float = 0.3
    max_retry_after: float = 30.0
    sleep: Sleep = field(default=asyncio.sleep, repr=False)

    @classmethod
    def from_settings(cls, settings: RetrySettings, sleep: Sleep | None = None) -> "RetryPolicy":
        return cls(
            attempts=settings.attempts,
            backoff_seconds=settings.backoff_seconds,
            max_retry_after=settings.max_retry_after,
            sleep=sleep or asyncio.sleep,
        )

    async def send(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        **kwargs,
    ) -> httpx.Response:
        delay = self.backoff_seconds
        last_error: Exception | None = None
        total = max(self.attempts, 1)
        for attempt in range(1, total + 1):
            try:
                response = await client.request(method, url, **kwargs)
            except httpx.TransportError as exc:
                last_error = exc
                logger.warning(
                    "%s %s failed on attempt %s/%s: %s", method, _safe_url(url), attempt, total, exc
                )
                if attempt < total:
                    await self.sleep(delay)
                    delay *= 2
                continue

            if response.status_code == 429:
                wait = min(parse_retry_after(response.headers.get("Retry-After")), self.max_retry_after)
                logger.warning(
                    "%s %s rate limited on attempt %s/%s, waiting %.1fs",
                    method,
                    _safe_url(url),
                    attempt,
                    total,
                    wait,
                )
                last_error = httpx.HTTPStatusError("rate limited", request=response.request, response=response)
                if attempt < total:
                    await self.sleep(wait)
                continue

            if response.status_code in RETRYABLE_STATUSES:
                wait = delay
                if response.status_code == 503 and response.headers.get("Retry-After"):
                    wait = min(parse_retry_after(response.headers["Retry-After"], delay), self.max_retry_after)
                logger.warning(
                    "%s %s answered HTTP %s on attempt %s/%s",
                    method,
                    _safe_url(url),
                    response.status_code,
                    attempt,
                    total,
                )
                last_error = httpx.HTTPStatusError(
                    f"server error {response.status_code}", request=response.request, response=response
                )
                if attempt < total:
                    await self.sleep(wait)
                    delay *= 2
                continue
            return response

        raise RetryExhausted(f"{method} {_safe_url(url)} failed after {total} attempts", last_error)


def _safe_url(url: str) -> str:
    # query strings carry API tokens
    return url.split("?", 1)[0]
