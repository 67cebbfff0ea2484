"""Resolve the price a user pays for a number.

``final = base + markup`` where the markup comes from the highest-priority
active rule that applies to the service and country. Quotes are cached for a
few minutes; a stale quote only shifts a price by one rule edit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from otpmarket.core.clock import to_cents
from otpmarket.db.models import PricingRule as PricingRuleModel
from otpmarket.infrastructure.cache import CacheBackend
from otpmarket.infrastructure.database.repositories.pricing_repository import SqlPricingRepository

from .exceptions import PricingUnavailable
from .models import MarkupType, Quote

logger = logging.getLogger(__name__)


def select_rule(rules: Sequence[PricingRuleModel]) -> Optional[PricingRuleModel]:
    """Highest priority wins; on a tie the more specific scope wins."""
    if not rules:
        return None

    def rank(rule: PricingRuleModel) -> tuple[int, int]:
        specificity = int(rule.service_code is not None) * 2 + int(rule.country is not None)
        return (rule.priority or 0, specificity)

    return max(rules, key=rank)


def compute_markup(base_cost_cents: int, rule: Optional[PricingRuleModel]) -> int:
    if rule is None:
        return 0
    value = Decimal(str(rule.markup_value))
    if MarkupType(rule.markup_type) is MarkupType.PERCENTAGE:
        markup = Decimal(base_cost_cents) * value / Decimal(100)
        return int(markup.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return to_cents(value)


@dataclass(slots=True)
class PricingService:
    session_factory: async_sessionmaker[AsyncSession]
    cache: CacheBackend
    ttl: int = 300

    @staticmethod
    def cache_key(provider_id: str, service_code: str, country: str) -> str:
        return f"pricing:{provider_id}:{service_code}:{country}"

    async def price(self, provider_id: str, service_code: str, country: str) -> Quote:
        key = self.cache_key(provider_id, service_code, country)
        cached = await self.cache.get(key)
        if cached:
            try:
                return Quote.from_dict(cached)
            except (KeyError, TypeError, ValueError):
                logger.warning("Ignoring malformed cached quote %s", key)

        async with self.session_factory() as session:
            repository = SqlPricingRepository(session)
            base_cost = await repository.get_base_cost(provider_id, service_code, country)
            if base_cost is None:
                raise PricingUnavailable(provider_id, service_code, country)
            rule = select_rule(await repository.matching_rules(service_code, country))

        markup = compute_markup(base_cost, rule)
        quote = Quote(base_cost_cents=base_cost, markup_cents=markup, final_price_cents=base_cost + markup)
        await self.cache.set(key, quote.to_dict(), self.ttl)
        return quote

    async def invalidate(self, provider_id: str, service_code: str, country: str) -> None:
        await self.cache.delete(self.cache_key(provider_id, service_code, country))
