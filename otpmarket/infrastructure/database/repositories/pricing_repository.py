"""SQLAlchemy implementation for the pricing domain"""

from __future__ import annotations

from typing import Sequence

from sqlalchemy import and_, desc, or_, select

from otpmarket.db.models import PricingRule, ProviderPrice
from otpmarket.domain.common import AsyncRepository


class SqlPricingRepository(AsyncRepository[ProviderPrice]):
    async def get_base_cost(self, provider_id: str, service_code: str, country: str) -> int | None:
        stmt = select(ProviderPrice.base_cost_cents).where(
            ProviderPrice.provider_id == provider_id,
            ProviderPrice.service_code == service_code,
            ProviderPrice.country == country,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def matching_rules(self, service_code: str, country: str) -> Sequence[PricingRule]:
        """Active rules from every scope tier that can apply, highest priority first."""
        service_match = or_(PricingRule.service_code.is_(None), PricingRule.service_code == service_code)
        country_match = or_(PricingRule.country.is_(None), PricingRule.country == country)
        stmt = (
            select(PricingRule)
            .where(PricingRule.is_active.is_(True), and_(service_match, country_match))
            .order_by(desc(PricingRule.priority), PricingRule.created_at)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def upsert_price(self, provider_id: str, service_code: str, country: str, base_cost_cents: int) -> ProviderPrice:
        stmt = select(ProviderPrice).where(
            ProviderPrice.provider_id == provider_id,
            ProviderPrice.service_code == service_code,
            ProviderPrice.country == country,
        )
        result = await self.session.execute(stmt)
        price = result.scalars().first()
        if price is None:
            price = ProviderPrice(
                provider_id=provider_id,
                service_code=service_code,
                country=country,
                base_cost_cents=base_cost_cents,
            )
            return await self.add(price)
        price.base_cost_cents = base_cost_cents
        await self.session.flush()
        return price
