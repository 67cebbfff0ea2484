"""Turn signed gateway webhooks and verify-by-reference lookups into ledger credits.

Gateways deliver at least once, so every path ends in the ledger's
compare-and-swap on the PENDING deposit: a redelivered event finds the row
already COMPLETED and credits nothing. The short-lived cache guard only saves
the database round trip for obvious redeliveries.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from otpmarket.domain.common import TransactionStatus, TransactionType, generate_reference
from otpmarket.domain.ledger import DepositResult, LedgerService, TransactionRecord
from otpmarket.domain.notifications import NotificationDispatcher, NotificationEvent, safe_dispatch
from otpmarket.infrastructure.cache import CacheBackend
from otpmarket.infrastructure.database.repositories.ledger_repository import SqlLedgerRepository

from .exceptions import DepositNotFound, MalformedPayload, UnknownGateway
from .gateways import PaymentGateway
from .models import GatewayEvent, WebhookOutcome, WebhookResult
from .verification import PaymentVerifier

logger = logging.getLogger(__name__)


@dataclass
class PaymentService:
    session_factory: async_sessionmaker[AsyncSession]
    gateways: dict[str, PaymentGateway]
    cache: CacheBackend
    notifier: NotificationDispatcher
    guard_ttl: int = 600
    verifiers: dict[str, PaymentVerifier] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        session_factory: async_sessionmaker[AsyncSession],
        gateways: Iterable[PaymentGateway],
        cache: CacheBackend,
        notifier: NotificationDispatcher,
        guard_ttl: int = 600,
        verifiers: Iterable[PaymentVerifier] = (),
    ) -> "PaymentService":
        return cls(
            session_factory,
            {gateway.name: gateway for gateway in gateways},
            cache,
            notifier,
            guard_ttl,
            {verifier.name: verifier for verifier in verifiers},
        )

    def gateway(self, name: str) -> PaymentGateway:
        gateway = self.gateways.get(name.lower())
        if gateway is None:
            raise UnknownGateway(name)
        return gateway

    async def handle_webhook(self, gateway_name: str, raw_body: bytes, signature: Optional[str]) -> WebhookResult:
        gateway = self.gateway(gateway_name)
        gateway.verify(raw_body, signature)
        try:
            payload = json.loads(raw_body)
        except ValueError as exc:
            raise MalformedPayload("Webhook body is not valid JSON") from exc
        if not isinstance(payload, dict):
            raise MalformedPayload("Webhook body is not a JSON object")

        event = gateway.parse(payload)
        if event is None or not event.successful or not event.reference:
            logger.info("Ignoring %s webhook without a successful payment", gateway.name)
            return WebhookResult(WebhookOutcome.IGNORED, reference=event.reference if event else None)

        guard_key = f"webhook:{gateway.name}:{event.event_id}" if event.event_id else None
        if guard_key and not await self.cache.add(guard_key, 1, self.guard_ttl):
            logger.info("Skipping redelivered %s webhook %s", gateway.name, event.reference)
            return WebhookResult(WebhookOutcome.DUPLICATE, reference=event.reference)

        try:
            return await self._settle(event)
        except Exception:
            # let the gateway's retry reach the database again
            if guard_key:
                await self.cache.delete(guard_key)
            raise

    async def initialize_deposit(self, user_id: str, amount_cents: int, gateway_name: str) -> TransactionRecord:
        """Register a PENDING deposit whose reference the client pays against."""
        gateway = self.gateway(gateway_name)
        reference = generate_reference(gateway.reference_prefix)
        async with self.session_factory() as session, session.begin():
            record = await LedgerService.with_session(session).register_deposit(
                user_id,
                amount_cents,
                reference,
                payment_method=gateway.name,
                metadata={"provider": gateway.name},
                description=f"Deposit via {gateway.name.capitalize()}",
            )
        logger.info("Initialized %s deposit %s for user %s", gateway.name, reference, user_id)
        return record

    async def verify_deposit(self, user_id: str, reference: str) -> WebhookResult:
        """Ask the deposit's gateway whether it was paid, and credit it if so.

        The gateway lookup runs outside any transaction. Crediting goes through
        the same ledger compare-and-swap as webhooks, so a webhook racing this
        call still credits once.
        """
        async with self.session_factory() as session:
            deposit = await SqlLedgerRepository(session).get_by_reference(reference)
        if deposit is None or deposit.user_id != user_id or deposit.type != TransactionType.DEPOSIT.value:
            raise DepositNotFound(reference)
        if deposit.status == TransactionStatus.COMPLETED.value:
            return WebhookResult(
                WebhookOutcome.DUPLICATE, reference=reference, amount_cents=deposit.amount_cents, user_id=user_id
            )
        if deposit.status != TransactionStatus.PENDING.value:
            return WebhookResult(WebhookOutcome.IGNORED, reference=reference, user_id=user_id)

        gateway = self.gateway(deposit.payment_method or "")
        verifier = self.verifiers.get(gateway.name)
        if verifier is None:
            # settled by webhook only
            return WebhookResult(WebhookOutcome.PENDING, reference=reference, user_id=user_id)

        verification = await verifier.verify(reference)
        if not verification.paid:
            logger.info("%s reports deposit %s as %s", gateway.name, reference, verification.status or "unknown")
            return WebhookResult(WebhookOutcome.PENDING, reference=reference, user_id=user_id)

        event = GatewayEvent(
            gateway=gateway.name,
            event_id=f"verify:{reference}",
            reference=reference,
            amount_cents=verification.amount_cents,
            successful=True,
            metadata={"provider": gateway.name, "reference": reference, "verified": True},
        )
        amount = verification.amount_cents if verification.amount_cents and verification.amount_cents > 0 else None
        credited = await self._apply(reference, amount, event)
        if credited is None:
            return WebhookResult(WebhookOutcome.DUPLICATE, reference=reference, user_id=user_id)
        return await self._credited(event, credited)

    async def aclose(self) -> None:
        for verifier in self.verifiers.values():
            await verifier.aclose()

    async def _settle(self, event: GatewayEvent) -> WebhookResult:
        amount = event.amount_cents if event.amount_cents and event.amount_cents > 0 else None
        deposit = await self._apply(event.reference, amount, event)
        if deposit is not None:
            return await self._credited(event, deposit)

        if event.unregistered and event.customer_email and amount:
            return await self._settle_unregistered(event, amount)

        if await self._already_completed(event.reference):
            logger.info("%s deposit %s already credited", event.gateway, event.reference)
            return WebhookResult(WebhookOutcome.DUPLICATE, reference=event.reference)
        logger.warning("No pending deposit for %s reference %s", event.gateway, event.reference)
        return WebhookResult(WebhookOutcome.IGNORED, reference=event.reference)

    async def _settle_unregistered(self, event: GatewayEvent, amount_cents: int) -> WebhookResult:
        """Virtual-account transfers arrive without a deposit we registered; create one, then settle it."""
        async with self.session_factory() as session:
            user = await SqlLedgerRepository(session).get_user_by_email(event.customer_email)
        if user is None:
            logger.warning("%s transfer %s from unknown customer", event.gateway, event.reference)
            return WebhookResult(WebhookOutcome.IGNORED, reference=event.reference)

        try:
            async with self.session_factory() as session, session.begin():
                await LedgerService.with_session(session).register_deposit(
                    user.id,
                    amount_cents,
                    event.reference,
                    payment_method=event.gateway,
                    metadata={**event.metadata, "type": "virtual_account"},
                    description=f"Deposit via {event.gateway.capitalize()} Virtual Account",
                )
        except IntegrityError:
            # a concurrent delivery registered the same reference first
            logger.info("Deposit %s registered concurrently", event.reference)

        deposit = await self._apply(event.reference, amount_cents, event)
        if deposit is None:
            return WebhookResult(WebhookOutcome.DUPLICATE, reference=event.reference)
        return await self._credited(event, deposit)

    async def _apply(self, reference: str, amount_cents: Optional[int], event: GatewayEvent) -> Optional[DepositResult]:
        async with self.session_factory() as session, session.begin():
            return await LedgerService.with_session(session).apply_deposit(
                reference, amount_cents, metadata=event.metadata
            )

    async def _already_completed(self, reference: str) -> bool:
        async with self.session_factory() as session:
            existing = await SqlLedgerRepository(session).get_by_reference(reference)
            return existing is not None and existing.status == TransactionStatus.COMPLETED.value

    async def _credited(self, event: GatewayEvent, deposit: DepositResult) -> WebhookResult:
        await safe_dispatch(
            self.notifier,
            NotificationEvent.PAYMENT_RECEIVED,
            deposit.user_id,
            {
                "reference": deposit.reference,
                "amount_cents": deposit.amount_cents,
                "balance_cents": deposit.balance_after_cents,
                "gateway": event.gateway,
            },
        )
        return WebhookResult(
            WebhookOutcome.CREDITED,
            reference=deposit.reference,
            amount_cents=deposit.amount_cents,
            user_id=deposit.user_id,
        )
