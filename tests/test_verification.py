"""Deposit verification against the gateway's verify-by-reference API."""
import hashlib
import hmac
import json

import httpx
import pytest

from conftest import FLUTTERWAVE_SECRET, PAYSTACK_SECRET
from otpmarket.core.config import PaystackSettings
from otpmarket.domain.common import TransactionStatus, TransactionType
from otpmarket.domain.payments import DepositNotFound, PaystackVerifier, VerificationFailed, WebhookOutcome
from otpmarket.infrastructure.http import RetryPolicy


async def test_paid_paystack_deposit_is_credited_once(
    container, gateway_api, notifier, make_user, balance_of, transactions_of
):
    user_id = await make_user(0)
    deposit = await container.payments.initialize_deposit(user_id, 2000, "paystack")
    reference = deposit.external_reference
    gateway_api.payments[reference] = {"reference": reference, "status": "success", "amount": 2000}

    first = await container.payments.verify_deposit(user_id, reference)
    second = await container.payments.verify_deposit(user_id, reference)

    assert first.outcome is WebhookOutcome.CREDITED
    assert first.amount_cents == 2000
    assert second.outcome is WebhookOutcome.DUPLICATE
    assert await balance_of(user_id) == 2000
    [row] = await transactions_of(user_id, TransactionType.DEPOSIT.value)
    assert row.status == TransactionStatus.COMPLETED.value
    assert len(notifier.of("PAYMENT_RECEIVED")) == 1

    [request] = gateway_api.requests
    assert request.url.path == f"/transaction/verify/{reference}"
    assert request.headers["Authorization"] == f"Bearer {PAYSTACK_SECRET}"


async def test_webhook_after_verification_credits_nothing(container, gateway_api, make_user, balance_of):
    user_id = await make_user(0)
    deposit = await container.payments.initialize_deposit(user_id, 2000, "paystack")
    reference = deposit.external_reference
    gateway_api.payments[reference] = {"reference": reference, "status": "success", "amount": 2000}
    await container.payments.verify_deposit(user_id, reference)

    body = json.dumps(
        {"event": "charge.success", "data": {"id": 5, "reference": reference, "amount": 2000, "status": "success"}}
    ).encode()
    signature = hmac.new(PAYSTACK_SECRET.encode(), body, hashlib.sha512).hexdigest()
    result = await container.payments.handle_webhook("paystack", body, signature)

    assert result.outcome is WebhookOutcome.DUPLICATE
    assert await balance_of(user_id) == 2000


async def test_unpaid_deposit_stays_pending(container, gateway_api, make_user, balance_of, transactions_of):
    user_id = await make_user(0)
    deposit = await container.payments.initialize_deposit(user_id, 2000, "paystack")
    reference = deposit.external_reference
    gateway_api.payments[reference] = {"reference": reference, "status": "abandoned", "amount": 2000}

    result = await container.payments.verify_deposit(user_id, reference)

    assert result.outcome is WebhookOutcome.PENDING
    assert await balance_of(user_id) == 0
    [row] = await transactions_of(user_id, TransactionType.DEPOSIT.value)
    assert row.status == TransactionStatus.PENDING.value


async def test_flutterwave_verification_uses_major_units(container, gateway_api, make_user, balance_of):
    user_id = await make_user(0)
    deposit = await container.payments.initialize_deposit(user_id, 2000, "flutterwave")
    reference = deposit.external_reference
    gateway_api.payments[reference] = {"tx_ref": reference, "status": "successful", "amount": "20.00"}

    result = await container.payments.verify_deposit(user_id, reference)

    assert result.outcome is WebhookOutcome.CREDITED
    assert await balance_of(user_id) == 2000
    [request] = gateway_api.requests
    assert request.url.path.endswith("/transactions/verify_by_reference")
    assert request.url.params["tx_ref"] == reference
    assert request.headers["Authorization"] == f"Bearer {FLUTTERWAVE_SECRET}"


async def test_webhook_only_gateway_reports_pending_without_a_lookup(container, gateway_api, make_user, balance_of):
    user_id = await make_user(0)
    deposit = await container.payments.initialize_deposit(user_id, 1550, "etegram")

    result = await container.payments.verify_deposit(user_id, deposit.external_reference)

    assert result.outcome is WebhookOutcome.PENDING
    assert gateway_api.requests == []
    assert await balance_of(user_id) == 0


async def test_only_the_owner_can_verify(container, gateway_api, make_user):
    owner = await make_user(0)
    other = await make_user(0)
    deposit = await container.payments.initialize_deposit(owner, 2000, "paystack")

    with pytest.raises(DepositNotFound):
        await container.payments.verify_deposit(other, deposit.external_reference)
    with pytest.raises(DepositNotFound):
        await container.payments.verify_deposit(owner, "PST-NOPE")
    assert gateway_api.requests == []


@pytest.mark.parametrize("failure", [401, 503])
async def test_gateway_failures_leave_the_deposit_pending(
    container, gateway_api, make_user, balance_of, transactions_of, failure
):
    user_id = await make_user(0)
    deposit = await container.payments.initialize_deposit(user_id, 2000, "paystack")
    gateway_api.failure = failure

    with pytest.raises(VerificationFailed) as exc_info:
        await container.payments.verify_deposit(user_id, deposit.external_reference)

    assert PAYSTACK_SECRET not in str(exc_info.value)
    assert await balance_of(user_id) == 0
    [row] = await transactions_of(user_id, TransactionType.DEPOSIT.value)
    assert row.status == TransactionStatus.PENDING.value


async def test_unknown_reference_at_the_gateway_is_a_failure(container, gateway_api, make_user):
    user_id = await make_user(0)
    deposit = await container.payments.initialize_deposit(user_id, 2000, "paystack")

    with pytest.raises(VerificationFailed, match="reference not found"):
        await container.payments.verify_deposit(user_id, deposit.external_reference)


async def test_unconfigured_verifier_fails_before_any_request():
    requests = []

    def record(request):
        requests.append(request)
        return httpx.Response(200, json={"data": {}})

    verifier = PaystackVerifier(
        PaystackSettings(secret_key=""),
        retry=RetryPolicy(),
        client=httpx.AsyncClient(transport=httpx.MockTransport(record)),
    )

    with pytest.raises(VerificationFailed, match="not configured"):
        await verifier.verify("PST-1")
    assert requests == []
    await verifier.aclose()


async def test_partial_payment_credits_what_the_gateway_collected(container, gateway_api, make_user, balance_of):
    user_id = await make_user(0)
    deposit = await container.payments.initialize_deposit(user_id, 5000, "paystack")
    reference = deposit.external_reference
    gateway_api.payments[reference] = {"reference": reference, "status": "success", "amount": 3000}

    result = await container.payments.verify_deposit(user_id, reference)

    assert (result.outcome, result.amount_cents) == (WebhookOutcome.CREDITED, 3000)
    assert await balance_of(user_id) == 3000
