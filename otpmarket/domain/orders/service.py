"""Order lifecycle: charge, reserve, wait for the code, expire or cancel.

Database work happens in short units of work (``session.begin()``); provider
calls always run between them, never inside one. Every status change is a
compare-and-swap on the order row, which is what makes completion, expiry
and cancellation safe to race.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from otpmarket.core.clock import utcnow
from otpmarket.db.models import Order as OrderModel, generate_uuid
from otpmarket.domain.common import (
    CANCELLABLE_ORDER_STATUSES,
    OrderStatus,
    RefundReason,
    generate_order_number,
)
from otpmarket.domain.ledger import LedgerService
from otpmarket.domain.notifications import NotificationDispatcher, NotificationEvent, safe_dispatch
from otpmarket.domain.pricing import PricingService
from otpmarket.domain.providers import (
    ProviderAdapter,
    ProviderError,
    ProviderRegistry,
    ProviderUnavailable,
    ServiceUnsupported,
)
from otpmarket.infrastructure.cache import CacheBackend
from otpmarket.infrastructure.database.repositories.order_repository import SqlOrderRepository

from .exceptions import OrderNotCancellable, OrderNotFound
from .models import OrderSnapshot

logger = logging.getLogger(__name__)

ReservationListener = Callable[[str], None]


@dataclass
class OrderService:
    session_factory: async_sessionmaker[AsyncSession]
    providers: ProviderRegistry
    pricing: PricingService
    cache: CacheBackend
    notifier: NotificationDispatcher
    expiry_minutes: int = 20
    status_ttl: int = 300
    clock: Callable[[], datetime] = utcnow
    reservation_listeners: list[ReservationListener] = field(default_factory=list)

    @staticmethod
    def status_cache_key(order_id: str) -> str:
        return f"order-status:{order_id}"

    def add_reservation_listener(self, listener: ReservationListener) -> None:
        """``listener(order_id)`` runs once an order starts waiting for its SMS."""
        self.reservation_listeners.append(listener)

    async def create_order(
        self,
        user_id: str,
        service_code: str,
        country: str,
        preferred_provider: Optional[str] = None,
    ) -> OrderSnapshot:
        country = country.upper()
        adapter = await self._select_provider(service_code, country, preferred_provider)
        quote = await self.pricing.price(adapter.provider_id, service_code, country)

        now = self.clock()
        order_id = generate_uuid()
        async with self.session_factory() as session, session.begin():
            ledger = LedgerService.with_session(session)
            balance = await ledger.get_balance(user_id)
            order = OrderModel(
                id=order_id,
                order_number=generate_order_number(),
                user_id=user_id,
                service_code=service_code,
                country=country,
                provider_id=adapter.provider_id,
                price_cents=quote.final_price_cents,
                base_cost_cents=quote.base_cost_cents,
                currency=balance.currency,
                status=OrderStatus.PROCESSING.value,
                created_at=now,
                # a crash before reservation still leaves the order sweepable
                expires_at=now + timedelta(minutes=self.expiry_minutes),
            )
            await SqlOrderRepository(session).add(order)
            await ledger.charge(
                user_id,
                quote.final_price_cents,
                order_id=order_id,
                description=f"Payment for {service_code} in {country}",
            )
        logger.info(
            "Order %s charged %s cents for %s/%s via %s",
            order_id,
            quote.final_price_cents,
            service_code,
            country,
            adapter.provider_id,
        )

        try:
            reservation = await adapter.reserve_number(service_code, country)
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Provider %s failed for order %s, refunding: %s", adapter.provider_id, order_id, exc)
            async with self.session_factory() as session, session.begin():
                await LedgerService.with_session(session).refund(order_id, RefundReason.PROVIDER_FAILURE)
            await self.cache.delete(self.status_cache_key(order_id))
            if isinstance(exc, ProviderUnavailable):
                raise
            raise ProviderUnavailable(adapter.provider_id, str(exc) or type(exc).__name__) from exc

        async with self.session_factory() as session, session.begin():
            updated = await SqlOrderRepository(session).transition(
                order_id,
                from_statuses=(OrderStatus.PROCESSING,),
                status=OrderStatus.WAITING_FOR_SMS,
                external_id=reservation.external_id,
                phone_number=reservation.phone_number,
                expires_at=self.clock() + timedelta(minutes=self.expiry_minutes),
            )
            snapshot = OrderSnapshot.from_model(updated) if updated is not None else None

        if snapshot is None:
            # the order ended (cancelled or swept) while the provider was answering
            logger.warning("Order %s ended before reservation %s landed", order_id, reservation.external_id)
            await self._cancel_at_provider(adapter, order_id, reservation.external_id)
            return await self._load(order_id)

        for listener in list(self.reservation_listeners):
            try:
                listener(order_id)
            except Exception as exc:  # pylint: disable=broad-except
                logger.warning("Reservation listener failed for order %s: %s", order_id, exc)
        return snapshot

    async def get_order_status(self, order_id: str, user_id: Optional[str] = None) -> OrderSnapshot:
        key = self.status_cache_key(order_id)
        cached = await self.cache.get(key)
        if cached:
            try:
                snapshot = OrderSnapshot.from_cache(cached)
            except (KeyError, TypeError, ValueError):
                logger.warning("Ignoring malformed cached order %s", order_id)
            else:
                # only terminal snapshots are final enough to serve without a refresh
                if snapshot.is_terminal and (user_id is None or snapshot.user_id == user_id):
                    return snapshot

        snapshot = await self._load(order_id, user_id)
        if not snapshot.is_terminal:
            if snapshot.phone_number is None and snapshot.external_id:
                await self._refresh_phone_number(snapshot)
            if snapshot.status is OrderStatus.WAITING_FOR_SMS and not snapshot.sms_code:
                await self.poll_status(order_id)
            await self.evaluate_expiry(order_id)
            snapshot = await self._load(order_id, user_id)

        await self.cache.set(key, snapshot.to_cache(), self.status_ttl)
        return snapshot

    async def poll_status(self, order_id: str) -> bool:
        """Ask the provider for the code once; ``True`` when this call completed the order."""
        snapshot = await self._load(order_id)
        if snapshot.status is not OrderStatus.WAITING_FOR_SMS or snapshot.sms_code or not snapshot.external_id:
            return False
        adapter = self._adapter_for(snapshot)
        if adapter is None:
            return False
        try:
            check = await adapter.check_for_code(snapshot.external_id)
        except ProviderError as exc:
            logger.warning("Polling %s for order %s failed: %s", adapter.provider_id, order_id, exc)
            return False
        if not check.found or not check.code:
            return False

        async with self.session_factory() as session, session.begin():
            updated = await SqlOrderRepository(session).transition(
                order_id,
                from_statuses=(OrderStatus.WAITING_FOR_SMS,),
                status=OrderStatus.COMPLETED,
                sms_code=check.code,
                sms_message=check.raw_text,
                completed_at=self.clock(),
            )
        if updated is None:
            return False

        logger.info("Order %s received its code", order_id)
        await self.cache.delete(self.status_cache_key(order_id))
        await safe_dispatch(
            self.notifier,
            NotificationEvent.SMS_RECEIVED,
            snapshot.user_id,
            {
                "order_id": order_id,
                "order_number": snapshot.order_number,
                "service_code": snapshot.service_code,
                "phone_number": snapshot.phone_number,
                "code": check.code,
            },
        )
        return True

    async def evaluate_expiry(self, order_id: str, now: Optional[datetime] = None) -> bool:
        """Expire and refund an overdue live order; ``True`` only for the caller whose refund won."""
        now = now or self.clock()
        snapshot = await self._load(order_id)
        if snapshot.is_terminal or snapshot.expires_at is None or snapshot.expires_at >= now:
            return False

        adapter = self._adapter_for(snapshot)
        if adapter is not None and snapshot.external_id:
            await self._cancel_at_provider(adapter, order_id, snapshot.external_id)

        async with self.session_factory() as session, session.begin():
            result = await LedgerService.with_session(session).refund(order_id, RefundReason.EXPIRED, now=now)
        if result is None:
            return False

        logger.info("Order %s expired, refunded %s cents", order_id, result.amount_cents)
        await self.cache.delete(self.status_cache_key(order_id))
        await safe_dispatch(
            self.notifier,
            NotificationEvent.ORDER_EXPIRED,
            snapshot.user_id,
            {
                "order_id": order_id,
                "order_number": snapshot.order_number,
                "refunded_cents": result.amount_cents,
            },
        )
        return True

    async def cancel_order(self, order_id: str, user_id: str) -> OrderSnapshot:
        snapshot = await self._load(order_id, user_id)
        if snapshot.status not in CANCELLABLE_ORDER_STATUSES:
            raise OrderNotCancellable(order_id, snapshot.status.value)

        adapter = self._adapter_for(snapshot)
        if adapter is not None and snapshot.external_id:
            await self._cancel_at_provider(adapter, order_id, snapshot.external_id)

        async with self.session_factory() as session, session.begin():
            result = await LedgerService.with_session(session).refund(order_id, RefundReason.USER_CANCELLED)
        if result is None:
            # lost the race against completion or expiry
            current = await self._load(order_id)
            raise OrderNotCancellable(order_id, current.status.value)

        logger.info("Order %s cancelled by user, refunded %s cents", order_id, result.amount_cents)
        await self.cache.delete(self.status_cache_key(order_id))
        return await self._load(order_id)

    async def list_orders(
        self,
        user_id: str,
        *,
        status: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[OrderSnapshot]:
        async with self.session_factory() as session:
            rows = await SqlOrderRepository(session).list_for_user(
                user_id, status=status, search=search, limit=limit, offset=offset
            )
            return [OrderSnapshot.from_model(row) for row in rows]

    async def archive_completed(self, older_than_days: int = 90, now: Optional[datetime] = None) -> int:
        now = now or self.clock()
        async with self.session_factory() as session, session.begin():
            archived = await SqlOrderRepository(session).archive_completed(
                completed_before=now - timedelta(days=older_than_days), now=now
            )
        if archived:
            logger.info("Archived %s completed orders older than %s days", archived, older_than_days)
        return archived

    async def active_order_ids(self) -> list[str]:
        async with self.session_factory() as session:
            return await SqlOrderRepository(session).active_ids()

    async def overdue_order_ids(self, limit: int, now: Optional[datetime] = None) -> list[str]:
        async with self.session_factory() as session:
            return await SqlOrderRepository(session).overdue_ids(now or self.clock(), limit)

    async def _select_provider(
        self,
        service_code: str,
        country: str,
        preferred_provider: Optional[str],
    ) -> ProviderAdapter:
        candidates = self.providers.candidates(service_code, country, preferred_provider)
        for adapter in candidates:
            if await adapter.supports(service_code, country):
                return adapter
        raise ServiceUnsupported(candidates[0].provider_id, service_code, country)

    def _adapter_for(self, snapshot: OrderSnapshot) -> Optional[ProviderAdapter]:
        try:
            return self.providers.get(snapshot.provider_id)
        except KeyError:
            logger.error("Order %s references unknown provider %s", snapshot.id, snapshot.provider_id)
            return None

    async def _cancel_at_provider(self, adapter: ProviderAdapter, order_id: str, external_id: str) -> None:
        try:
            await adapter.cancel(external_id)
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Cancelling %s at %s for order %s failed: %s", external_id, adapter.provider_id, order_id, exc)
        else:
            logger.info("Requested cancellation of %s at %s for order %s", external_id, adapter.provider_id, order_id)

    async def _refresh_phone_number(self, snapshot: OrderSnapshot) -> None:
        adapter = self._adapter_for(snapshot)
        if adapter is None or not snapshot.external_id:
            return
        try:
            phone_number = await adapter.refresh_reservation(snapshot.external_id)
        except ProviderError as exc:
            logger.warning("Refreshing reservation for order %s failed: %s", snapshot.id, exc)
            return
        if not phone_number:
            return
        async with self.session_factory() as session, session.begin():
            await SqlOrderRepository(session).set_phone_number(snapshot.id, phone_number)

    async def _load(self, order_id: str, user_id: Optional[str] = None) -> OrderSnapshot:
        async with self.session_factory() as session:
            repository = SqlOrderRepository(session)
            if user_id is None:
                order = await repository.get(order_id)
            else:
                order = await repository.get_for_user(order_id, user_id)
            if order is None:
                raise OrderNotFound(order_id)
            return OrderSnapshot.from_model(order)
