"""Closed set of provider adapters and the selection order between them."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from .base import ProviderAdapter
from .exceptions import NoProviderAvailable

logger = logging.getLogger(__name__)


class ProviderRegistry:
    def __init__(self, adapters: Iterable[ProviderAdapter]) -> None:
        self._adapters: dict[str, ProviderAdapter] = {}
        for adapter in adapters:
            self._adapters[adapter.provider_id] = adapter

    def __contains__(self, provider_id: str) -> bool:
        return provider_id in self._adapters

    @property
    def provider_ids(self) -> list[str]:
        return list(self._adapters)

    def get(self, provider_id: str) -> ProviderAdapter:
        try:
            return self._adapters[provider_id]
        except KeyError:
            raise KeyError(f"Unknown provider: {provider_id}") from None

    def candidates(
        self,
        service_code: str,
        country: str,
        preferred: Optional[str] = None,
    ) -> list[ProviderAdapter]:
        """Adapters that serve ``country``, highest priority first.

        A preference narrows the set to that provider; a preference the
        country cannot use yields no candidates rather than a silent fallback.
        """
        pool = list(self._adapters.values())
        if preferred:
            pool = [adapter for adapter in pool if adapter.provider_id == preferred]
        selected = [adapter for adapter in pool if adapter.serves_country(country)]
        if not selected:
            raise NoProviderAvailable(service_code, country, preferred)
        return sorted(selected, key=lambda adapter: adapter.priority, reverse=True)

    async def aclose(self) -> None:
        for adapter in self._adapters.values():
            try:
                await adapter.aclose()
            except Exception as exc:  # pylint: disable=broad-except
                logger.warning("Closing provider %s failed: %s", adapter.provider_id, exc)
