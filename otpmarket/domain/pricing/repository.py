"""Repository interface for price lookups."""

from __future__ import annotations

from typing import Protocol, Sequence

from otpmarket.db.models import PricingRule as PricingRuleModel


class PricingRepository(Protocol):
    async def get_base_cost(self, provider_id: str, service_code: str, country: str) -> int | None:
        ...

    async def matching_rules(self, service_code: str, country: str) -> Sequence[PricingRuleModel]:
        ...
