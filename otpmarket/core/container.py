"""Dependency container wiring infrastructure and domain services."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from otpmarket.core.config import Settings, get_settings
from otpmarket.domain.notifications import LoggingNotificationDispatcher, NotificationDispatcher
from otpmarket.domain.orders import OrderService
from otpmarket.domain.payments import (
    EtegramGateway,
    FlutterwaveGateway,
    FlutterwaveVerifier,
    PaymentService,
    PaymentVerifier,
    PaystackGateway,
    PaystackVerifier,
)
from otpmarket.domain.pricing import PricingService
from otpmarket.domain.providers import ProviderAdapter, ProviderRegistry, SmsManAdapter, TextVerifiedAdapter
from otpmarket.domain.reconciliation import OrderMonitor, ReconciliationService, SweepScheduler
from otpmarket.infrastructure.cache import CacheBackend, build_cache
from otpmarket.infrastructure.database.session import build_engine, build_session_factory, init_db
from otpmarket.infrastructure.http import RetryPolicy

logger = logging.getLogger(__name__)


def build_verifiers(settings: Settings) -> list[PaymentVerifier]:
    retry = RetryPolicy.from_settings(settings.retry)
    timeout = settings.retry.request_timeout
    return [
        PaystackVerifier(settings.paystack, retry=retry, timeout=timeout),
        FlutterwaveVerifier(settings.flutterwave, retry=retry, timeout=timeout),
    ]


def build_providers(settings: Settings, cache: CacheBackend, retry: RetryPolicy) -> list[ProviderAdapter]:
    timeout = settings.retry.request_timeout
    return [
        SmsManAdapter(
            settings.smsman,
            cache=cache,
            retry=retry,
            timeout=timeout,
            catalog_ttl=settings.cache.provider_catalog_ttl,
        ),
        TextVerifiedAdapter(settings.textverified, retry=retry, timeout=timeout),
    ]


@dataclass(slots=True)
class ApplicationContainer:
    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    cache: CacheBackend
    providers: ProviderRegistry
    notifier: NotificationDispatcher
    pricing: PricingService
    orders: OrderService
    payments: PaymentService
    reconciliation: ReconciliationService
    monitor: OrderMonitor
    scheduler: SweepScheduler

    @classmethod
    def build(
        cls,
        settings: Optional[Settings] = None,
        *,
        engine: Optional[AsyncEngine] = None,
        cache: Optional[CacheBackend] = None,
        providers: Optional[Iterable[ProviderAdapter]] = None,
        notifier: Optional[NotificationDispatcher] = None,
    ) -> "ApplicationContainer":
        settings = settings or get_settings()
        engine = engine or build_engine(settings)
        session_factory = build_session_factory(engine)
        cache = cache or build_cache(settings.cache)
        notifier = notifier or LoggingNotificationDispatcher()
        if providers is None:
            providers = build_providers(settings, cache, RetryPolicy.from_settings(settings.retry))
        registry = ProviderRegistry(providers)

        pricing = PricingService(session_factory, cache, ttl=settings.cache.pricing_ttl)
        orders = OrderService(
            session_factory=session_factory,
            providers=registry,
            pricing=pricing,
            cache=cache,
            notifier=notifier,
            expiry_minutes=settings.orders.expiry_minutes,
            status_ttl=settings.cache.order_status_ttl,
        )
        payments = PaymentService.build(
            session_factory,
            [
                PaystackGateway(settings.paystack),
                FlutterwaveGateway(settings.flutterwave),
                EtegramGateway(settings.etegram),
            ],
            cache,
            notifier,
            guard_ttl=settings.cache.webhook_guard_ttl,
            verifiers=build_verifiers(settings),
        )
        reconciliation = ReconciliationService(orders, session_factory, batch_size=settings.orders.sweep_batch_size)
        monitor = OrderMonitor(orders, interval=settings.orders.poll_interval_seconds)
        if settings.orders.monitor_enabled:
            orders.add_reservation_listener(monitor.track)
        scheduler = SweepScheduler(reconciliation, interval=settings.orders.sweep_interval_seconds)

        return cls(
            settings=settings,
            engine=engine,
            session_factory=session_factory,
            cache=cache,
            providers=registry,
            notifier=notifier,
            pricing=pricing,
            orders=orders,
            payments=payments,
            reconciliation=reconciliation,
            monitor=monitor,
            scheduler=scheduler,
        )

    async def startup(self) -> None:
        if self.settings.database.create_all:
            await init_db(self.engine)
        if self.settings.orders.monitor_enabled:
            await self.monitor.resume()
        if self.settings.orders.sweep_enabled:
            self.scheduler.start()
        logger.info("Application container started")

    async def shutdown(self) -> None:
        await self.scheduler.stop()
        await self.monitor.stop()
        await self.providers.aclose()
        await self.payments.aclose()
        await self.cache.close()
        await self.engine.dispose()
        logger.info("Application container stopped")


@lru_cache()
def get_container() -> ApplicationContainer:
    return ApplicationContainer.build(get_settings())


__all__ = ["ApplicationContainer", "build_providers", "get_container"]
