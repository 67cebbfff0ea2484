"""Pytest fixtures: file-backed SQLite, fake providers and a wired container."""
import os
from datetime import timedelta
from decimal import Decimal
from typing import Optional

import httpx
import pytest
from sqlalchemy import select

# Settings are read on import by a few modules (security, main)
os.environ.setdefault("SECURITY__SECRET_KEY", "test-secret-key")
os.environ.setdefault("ORDERS__MONITOR_ENABLED", "false")
os.environ.setdefault("ORDERS__SWEEP_ENABLED", "false")

from otpmarket.core.clock import utcnow
from otpmarket.core.config import (
    DatabaseSettings,
    EtegramSettings,
    FlutterwaveSettings,
    OrderSettings,
    PaystackSettings,
    Settings,
)
from otpmarket.core.container import ApplicationContainer
from otpmarket.db.models import Order, PricingRule, Transaction, User
from otpmarket.domain.payments import FlutterwaveVerifier, PaystackVerifier
from otpmarket.domain.providers import CodeCheck, Reservation
from otpmarket.infrastructure.cache import MemoryCache
from otpmarket.infrastructure.database import build_engine
from otpmarket.infrastructure.database.repositories import SqlPricingRepository
from otpmarket.infrastructure.http import RetryPolicy

PAYSTACK_SECRET = "sk_test_paystack"
FLUTTERWAVE_HASH = "flw-secret-hash"
FLUTTERWAVE_SECRET = "FLWSECK_TEST-flutterwave"
ETEGRAM_SECRET = "etegram-secret"


class FakeAdapter:
    """In-memory provider whose behaviour each test can steer."""

    def __init__(
        self,
        provider_id: str = "fake-sms",
        priority: int = 1,
        countries: tuple[str, ...] = ("NG", "US"),
        services: Optional[set[str]] = None,
        phone_number: Optional[str] = "+2348000000001",
    ) -> None:
        self.provider_id = provider_id
        self.priority = priority
        self.countries = countries
        self.services = services
        self.phone_number = phone_number
        self.reserve_error: Optional[Exception] = None
        self.on_reserve = None
        self.code: Optional[str] = None
        self.refreshed_phone: Optional[str] = None
        self.reserved: list[tuple[str, str]] = []
        self.checks: list[str] = []
        self.cancelled: list[str] = []
        self.closed = False

    def serves_country(self, country: str) -> bool:
        return country.upper() in self.countries

    async def supports(self, service_code: str, country: str) -> bool:
        return self.services is None or service_code in self.services

    async def reserve_number(self, service_code: str, country: str) -> Reservation:
        self.reserved.append((service_code, country))
        if self.on_reserve is not None:
            await self.on_reserve()
        if self.reserve_error is not None:
            raise self.reserve_error
        return Reservation(
            external_id=f"{self.provider_id}-{len(self.reserved)}",
            phone_number=self.phone_number,
        )

    async def check_for_code(self, external_id: str) -> CodeCheck:
        self.checks.append(external_id)
        if self.code:
            return CodeCheck(found=True, code=self.code, raw_text=f"Your code is {self.code}")
        return CodeCheck.not_found()

    async def cancel(self, external_id: str) -> None:
        self.cancelled.append(external_id)

    async def refresh_reservation(self, external_id: str) -> Optional[str]:
        return self.refreshed_phone

    async def aclose(self) -> None:
        self.closed = True


class RecordingNotifier:
    def __init__(self) -> None:
        self.events: list[tuple[str, str, dict]] = []

    async def dispatch(self, event, user_id, payload) -> None:
        self.events.append((event.value, user_id, dict(payload)))

    def of(self, event: str) -> list[tuple[str, str, dict]]:
        return [item for item in self.events if item[0] == event]


class GatewayApi:
    """Scripted Paystack and Flutterwave verify-by-reference endpoints."""

    def __init__(self):
        self.payments: dict[str, dict] = {}
        self.failure: Optional[int] = None
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.failure is not None:
            return httpx.Response(self.failure, json={"status": False, "message": "Invalid key"})
        if "/transaction/verify/" in request.url.path:
            reference = request.url.path.rsplit("/", 1)[-1]
        else:
            reference = request.url.params.get("tx_ref")
        data = self.payments.get(reference)
        if data is None:
            return httpx.Response(400, json={"status": False, "message": "Transaction reference not found"})
        return httpx.Response(200, json={"status": True, "message": "Verification successful", "data": data})


async def _no_sleep(_delay):
    return None


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        environment="test",
        database=DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'otpmarket.db'}"),
        orders=OrderSettings(monitor_enabled=False, sweep_enabled=False),
        paystack=PaystackSettings(secret_key=PAYSTACK_SECRET),
        flutterwave=FlutterwaveSettings(secret_hash=FLUTTERWAVE_HASH, secret_key=FLUTTERWAVE_SECRET),
        etegram=EtegramSettings(webhook_secret=ETEGRAM_SECRET),
    )


@pytest.fixture
def provider() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def cache() -> MemoryCache:
    return MemoryCache()


@pytest.fixture
async def container(settings, provider, notifier, cache):
    container = ApplicationContainer.build(
        settings,
        engine=build_engine(settings),
        cache=cache,
        providers=[provider],
        notifier=notifier,
    )
    await container.startup()
    try:
        yield container
    finally:
        await container.shutdown()


@pytest.fixture
def make_user(container):
    async def _make(balance_cents: int = 0, *, email: Optional[str] = None, role: str = "user") -> str:
        async with container.session_factory() as session, session.begin():
            user = User(email=email, role=role, balance_cents=balance_cents, currency="NGN")
            session.add(user)
            await session.flush()
            return user.id

    return _make


@pytest.fixture
def set_price(container):
    async def _set(
        base_cost_cents: int,
        *,
        provider_id: str = "fake-sms",
        service_code: str = "whatsapp",
        country: str = "NG",
    ) -> None:
        async with container.session_factory() as session, session.begin():
            await SqlPricingRepository(session).upsert_price(provider_id, service_code, country, base_cost_cents)
        await container.pricing.invalidate(provider_id, service_code, country)

    return _set


@pytest.fixture
def add_rule(container):
    async def _add(
        markup_type: str,
        markup_value: str,
        *,
        service_code: Optional[str] = None,
        country: Optional[str] = None,
        priority: int = 0,
        is_active: bool = True,
    ) -> None:
        async with container.session_factory() as session, session.begin():
            session.add(
                PricingRule(
                    markup_type=markup_type,
                    markup_value=Decimal(markup_value),
                    service_code=service_code,
                    country=country,
                    priority=priority,
                    is_active=is_active,
                )
            )

    return _add


@pytest.fixture
def balance_of(container):
    async def _balance(user_id: str) -> int:
        async with container.session_factory() as session:
            user = await session.get(User, user_id)
            return user.balance_cents

    return _balance


@pytest.fixture
def transactions_of(container):
    async def _transactions(user_id: str, type_: Optional[str] = None) -> list[Transaction]:
        async with container.session_factory() as session:
            stmt = select(Transaction).where(Transaction.user_id == user_id)
            if type_:
                stmt = stmt.where(Transaction.type == type_)
            result = await session.execute(stmt.order_by(Transaction.created_at))
            return list(result.scalars().all())

    return _transactions


@pytest.fixture
def make_overdue(container):
    """Move an order's deadline into the past."""

    async def _overdue(order_id: str, minutes: int = 1) -> None:
        async with container.session_factory() as session, session.begin():
            order = await session.get(Order, order_id)
            order.expires_at = utcnow() - timedelta(minutes=minutes)

    return _overdue


@pytest.fixture
async def gateway_api(container):
    """Point the container's deposit verifiers at a scripted gateway API."""
    api = GatewayApi()
    retry = RetryPolicy(sleep=_no_sleep)
    for verifier in container.payments.verifiers.values():
        await verifier.aclose()
    container.payments.verifiers = {
        "paystack": PaystackVerifier(
            container.settings.paystack,
            retry=retry,
            client=httpx.AsyncClient(transport=httpx.MockTransport(api)),
        ),
        "flutterwave": FlutterwaveVerifier(
            container.settings.flutterwave,
            retry=retry,
            client=httpx.AsyncClient(transport=httpx.MockTransport(api)),
        ),
    }
    return api
