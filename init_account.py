"""
Seed a funded test customer plus a default provider price and markup rule,
so an order can be placed against a local instance right away.
"""
import asyncio
from decimal import Decimal

from sqlalchemy import select

from otpmarket.core.logging import setup_logging
from otpmarket.core.security import create_access_token
from otpmarket.db.models import PricingRule, User
from otpmarket.db.session import get_db, init_db
from otpmarket.domain.common import generate_reference
from otpmarket.domain.ledger import LedgerService
from otpmarket.domain.pricing import MarkupType
from otpmarket.infrastructure.database.repositories import SqlPricingRepository

CUSTOMER_EMAIL = "customer@example.com"
OPENING_BALANCE_CENTS = 500_000


async def create_default_account():
    """Create the customer, credit the opening balance and seed pricing."""
    await init_db()

    async for db in get_db():
        result = await db.execute(select(User).where(User.email == CUSTOMER_EMAIL))
        user = result.scalar_one_or_none()
        if user is not None:
            print(f"Customer already exists: {user.id}")
            return

        user = User(email=CUSTOMER_EMAIL, role="user")
        db.add(user)
        await db.flush()

        # Opening balance goes through the deposit path so the ledger stays auditable.
        ledger = LedgerService.with_session(db)
        reference = generate_reference("SEED")
        await ledger.register_deposit(user.id, OPENING_BALANCE_CENTS, reference, payment_method="seed")
        await ledger.apply_deposit(reference)

        pricing = SqlPricingRepository(db)
        await pricing.upsert_price("sms-man", "whatsapp", "NG", 30_000)
        await pricing.upsert_price("textverified", "whatsapp", "US", 45_000)
        db.add(
            PricingRule(
                name="default",
                markup_type=MarkupType.PERCENTAGE.value,
                markup_value=Decimal("20"),
                priority=0,
            )
        )

        print(f"Customer created: {user.id} ({CUSTOMER_EMAIL})")
        print(f"Opening balance: {OPENING_BALANCE_CENTS} cents")
        print(f"Token: {create_access_token(user.id)}")


if __name__ == "__main__":
    setup_logging()
    asyncio.run(create_default_account())
