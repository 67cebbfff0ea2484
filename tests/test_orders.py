"""Order lifecycle: charge, reservation, completion, cancellation and expiry."""
from datetime import timedelta

import pytest

from otpmarket.core.clock import utcnow
from otpmarket.domain.common import OrderStatus, RefundReason, TransactionType
from otpmarket.domain.ledger import InsufficientBalance
from otpmarket.domain.orders import OrderNotCancellable, OrderNotFound
from otpmarket.domain.pricing import PricingUnavailable
from otpmarket.domain.providers import NoProviderAvailable, ProviderUnavailable, ServiceUnsupported


async def test_create_order_charges_and_reserves(container, provider, make_user, set_price, balance_of, transactions_of):
    user_id = await make_user(1000)
    await set_price(300)

    order = await container.orders.create_order(user_id, "whatsapp", "ng")

    assert order.status is OrderStatus.WAITING_FOR_SMS
    assert order.country == "NG"
    assert order.price_cents == 300
    assert order.phone_number == "+2348000000001"
    assert order.external_id == "fake-sms-1"
    assert order.expires_at is not None and order.expires_at > utcnow()
    assert await balance_of(user_id) == 700

    payments = await transactions_of(user_id, TransactionType.ORDER_PAYMENT.value)
    assert len(payments) == 1
    assert payments[0].order_id == order.id
    assert payments[0].balance_before_cents == 1000
    assert payments[0].balance_after_cents == 700
    assert payments[0].idempotency_key == f"charge:{order.id}"


async def test_expired_order_is_refunded_once(container, provider, notifier, make_user, set_price, balance_of, transactions_of):
    user_id = await make_user(1000)
    await set_price(300)
    order = await container.orders.create_order(user_id, "whatsapp", "NG")

    after_deadline = order.expires_at + timedelta(seconds=1)
    assert await container.orders.evaluate_expiry(order.id, now=after_deadline) is True
    assert await container.orders.evaluate_expiry(order.id, now=after_deadline) is False

    snapshot = await container.orders.get_order_status(order.id, user_id)
    assert snapshot.status is OrderStatus.EXPIRED
    assert snapshot.refunded is True
    assert snapshot.outcome.reason is RefundReason.EXPIRED
    assert await balance_of(user_id) == 1000
    assert provider.cancelled == [order.external_id]
    assert len(await transactions_of(user_id, TransactionType.REFUND.value)) == 1
    assert len(notifier.of("ORDER_EXPIRED")) == 1


async def test_order_before_deadline_is_not_expired(container, make_user, set_price, balance_of):
    user_id = await make_user(1000)
    await set_price(300)
    order = await container.orders.create_order(user_id, "whatsapp", "NG")

    assert await container.orders.evaluate_expiry(order.id) is False
    assert await balance_of(user_id) == 700


async def test_order_at_its_deadline_is_still_live(container, make_user, set_price, balance_of):
    user_id = await make_user(1000)
    await set_price(300)
    order = await container.orders.create_order(user_id, "whatsapp", "NG")
    deadline = order.expires_at
    after = deadline + timedelta(seconds=1)

    assert await container.orders.overdue_order_ids(10, now=deadline) == []
    assert await container.orders.evaluate_expiry(order.id, now=deadline) is False
    assert await balance_of(user_id) == 700

    assert await container.orders.overdue_order_ids(10, now=after) == [order.id]
    assert await container.orders.evaluate_expiry(order.id, now=after) is True
    assert await balance_of(user_id) == 1000


async def test_insufficient_balance_creates_nothing(container, provider, make_user, set_price, balance_of, transactions_of):
    user_id = await make_user(50)
    await set_price(300)

    with pytest.raises(InsufficientBalance) as exc_info:
        await container.orders.create_order(user_id, "whatsapp", "NG")

    assert exc_info.value.required_cents == 300
    assert exc_info.value.available_cents == 50
    assert await balance_of(user_id) == 50
    assert await container.orders.list_orders(user_id) == []
    assert await transactions_of(user_id) == []
    assert provider.reserved == []


async def test_provider_failure_refunds_and_fails_order(container, provider, make_user, set_price, balance_of, transactions_of):
    user_id = await make_user(1000)
    await set_price(300)
    provider.reserve_error = ProviderUnavailable("fake-sms", "no numbers")

    with pytest.raises(ProviderUnavailable):
        await container.orders.create_order(user_id, "whatsapp", "NG")

    [order] = await container.orders.list_orders(user_id)
    assert order.status is OrderStatus.FAILED
    assert order.refunded is True
    assert order.terminal_reason == RefundReason.PROVIDER_FAILURE.value
    assert await balance_of(user_id) == 1000
    kinds = [tx.type for tx in await transactions_of(user_id)]
    assert sorted(kinds) == ["ORDER_PAYMENT", "REFUND"]


async def test_unexpected_provider_error_is_wrapped(container, provider, make_user, set_price, balance_of):
    user_id = await make_user(1000)
    await set_price(300)
    provider.reserve_error = RuntimeError("socket closed")

    with pytest.raises(ProviderUnavailable) as exc_info:
        await container.orders.create_order(user_id, "whatsapp", "NG")

    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert await balance_of(user_id) == 1000


async def test_reservation_landing_after_order_ended_is_released(container, provider, make_user, set_price, balance_of):
    user_id = await make_user(1000)
    await set_price(300)

    async def expire_while_reserving():
        [order_id] = await container.orders.active_order_ids()
        await container.orders.evaluate_expiry(order_id, now=utcnow() + timedelta(hours=1))

    provider.on_reserve = expire_while_reserving

    order = await container.orders.create_order(user_id, "whatsapp", "NG")

    assert order.status is OrderStatus.EXPIRED
    assert order.refunded is True
    assert provider.cancelled == ["fake-sms-1"]
    assert await balance_of(user_id) == 1000


async def test_code_completes_order_and_is_cached(container, provider, notifier, make_user, set_price, balance_of):
    user_id = await make_user(1000)
    await set_price(300)
    order = await container.orders.create_order(user_id, "whatsapp", "NG")

    waiting = await container.orders.get_order_status(order.id, user_id)
    assert waiting.status is OrderStatus.WAITING_FOR_SMS

    provider.code = "482913"
    completed = await container.orders.get_order_status(order.id, user_id)
    assert completed.status is OrderStatus.COMPLETED
    assert completed.sms_code == "482913"
    assert completed.completed_at is not None
    assert completed.outcome.refunded is False

    checks = len(provider.checks)
    again = await container.orders.get_order_status(order.id, user_id)
    assert again.sms_code == "482913"
    assert len(provider.checks) == checks

    [event] = notifier.of("SMS_RECEIVED")
    assert event[1] == user_id
    assert event[2]["code"] == "482913"

    assert await container.orders.evaluate_expiry(order.id, now=order.expires_at + timedelta(minutes=5)) is False
    assert await balance_of(user_id) == 700


async def test_code_arriving_at_the_deadline_wins_over_expiry(container, provider, make_user, set_price, make_overdue, balance_of):
    user_id = await make_user(1000)
    await set_price(300)
    order = await container.orders.create_order(user_id, "whatsapp", "NG")
    await make_overdue(order.id)
    provider.code = "771100"

    snapshot = await container.orders.get_order_status(order.id, user_id)

    assert snapshot.status is OrderStatus.COMPLETED
    assert await balance_of(user_id) == 700


async def test_status_refreshes_missing_phone_number(container, provider, make_user, set_price):
    user_id = await make_user(1000)
    await set_price(300)
    provider.phone_number = None
    order = await container.orders.create_order(user_id, "whatsapp", "NG")
    assert order.phone_number is None

    provider.refreshed_phone = "+15550001111"
    snapshot = await container.orders.get_order_status(order.id, user_id)

    assert snapshot.phone_number == "+15550001111"


async def test_cancel_refunds_once(container, provider, make_user, set_price, balance_of, transactions_of):
    user_id = await make_user(1000)
    await set_price(300)
    order = await container.orders.create_order(user_id, "whatsapp", "NG")

    cancelled = await container.orders.cancel_order(order.id, user_id)

    assert cancelled.status is OrderStatus.CANCELLED
    assert cancelled.outcome.reason is RefundReason.USER_CANCELLED
    assert cancelled.refunded is True
    assert provider.cancelled == [order.external_id]
    assert await balance_of(user_id) == 1000

    with pytest.raises(OrderNotCancellable):
        await container.orders.cancel_order(order.id, user_id)
    assert await balance_of(user_id) == 1000
    assert len(await transactions_of(user_id, TransactionType.REFUND.value)) == 1


async def test_completed_order_cannot_be_cancelled(container, provider, make_user, set_price, balance_of):
    user_id = await make_user(1000)
    await set_price(300)
    order = await container.orders.create_order(user_id, "whatsapp", "NG")
    provider.code = "123456"
    await container.orders.get_order_status(order.id, user_id)

    with pytest.raises(OrderNotCancellable):
        await container.orders.cancel_order(order.id, user_id)
    assert await balance_of(user_id) == 700


async def test_other_users_cannot_see_or_cancel(container, make_user, set_price):
    owner = await make_user(1000)
    stranger = await make_user(1000)
    await set_price(300)
    order = await container.orders.create_order(owner, "whatsapp", "NG")

    with pytest.raises(OrderNotFound):
        await container.orders.get_order_status(order.id, stranger)
    with pytest.raises(OrderNotFound):
        await container.orders.cancel_order(order.id, stranger)


async def test_provider_selection_errors(container, provider, make_user, set_price, balance_of):
    user_id = await make_user(1000)
    await set_price(300)

    with pytest.raises(NoProviderAvailable):
        await container.orders.create_order(user_id, "whatsapp", "GB")
    with pytest.raises(NoProviderAvailable):
        await container.orders.create_order(user_id, "whatsapp", "NG", preferred_provider="nobody")

    provider.services = {"telegram"}
    with pytest.raises(ServiceUnsupported):
        await container.orders.create_order(user_id, "whatsapp", "NG")
    assert await balance_of(user_id) == 1000


async def test_missing_price_is_rejected_before_charging(container, make_user, balance_of):
    user_id = await make_user(1000)

    with pytest.raises(PricingUnavailable):
        await container.orders.create_order(user_id, "whatsapp", "NG")
    assert await balance_of(user_id) == 1000


async def test_list_orders_filters_and_searches(container, provider, make_user, set_price):
    user_id = await make_user(5000)
    await set_price(300)
    await set_price(400, service_code="telegram")
    first = await container.orders.create_order(user_id, "whatsapp", "NG")
    second = await container.orders.create_order(user_id, "telegram", "NG")
    await container.orders.cancel_order(first.id, user_id)

    everything = await container.orders.list_orders(user_id)
    assert {order.id for order in everything} == {first.id, second.id}

    cancelled = await container.orders.list_orders(user_id, status=OrderStatus.CANCELLED.value)
    assert [order.id for order in cancelled] == [first.id]

    found = await container.orders.list_orders(user_id, search="telegr")
    assert [order.id for order in found] == [second.id]

    by_number = await container.orders.list_orders(user_id, search=first.order_number)
    assert [order.id for order in by_number] == [first.id]


async def test_archive_completed_orders(container, provider, make_user, set_price):
    user_id = await make_user(1000)
    await set_price(300)
    order = await container.orders.create_order(user_id, "whatsapp", "NG")
    provider.code = "123456"
    completed = await container.orders.get_order_status(order.id, user_id)

    later = completed.completed_at + timedelta(days=91)
    assert await container.orders.archive_completed(90, now=later) == 1
    assert await container.orders.archive_completed(90, now=later) == 0


async def test_failing_notifier_does_not_undo_expiry(container, make_user, set_price, balance_of):
    class BrokenNotifier:
        async def dispatch(self, event, user_id, payload):
            raise RuntimeError("mailer down")

    container.orders.notifier = BrokenNotifier()
    user_id = await make_user(1000)
    await set_price(300)
    order = await container.orders.create_order(user_id, "whatsapp", "NG")

    assert await container.orders.evaluate_expiry(order.id, now=order.expires_at + timedelta(seconds=1)) is True
    assert await balance_of(user_id) == 1000
