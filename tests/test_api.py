"""HTTP surface: auth, error mapping and the main flows end to end."""
import hashlib
import hmac
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import PAYSTACK_SECRET
from otpmarket.core.container import ApplicationContainer
from otpmarket.core.security import create_access_token
from otpmarket.infrastructure.database import build_engine
from otpmarket.main import create_app


@pytest.fixture
async def client(container):
    app = create_app(container)
    # ASGITransport does not run the lifespan; the container fixture already started
    app.state.container = container
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http


@pytest.fixture
def auth_headers():
    def _headers(user_id: str, role: str = "user") -> dict:
        return {"Authorization": f"Bearer {create_access_token(user_id, role=role)}"}

    return _headers


def test_health_runs_lifespan(settings, provider):
    container = ApplicationContainer.build(settings, engine=build_engine(settings), providers=[provider])
    app = create_app(container)
    with TestClient(app) as c:
        r = c.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "ok"
        assert app.state.container is container
    assert provider.closed


async def test_requests_without_valid_token_are_rejected(client, auth_headers):
    assert (await client.get("/api/orders")).status_code in (401, 403)
    r = await client.get("/api/orders", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
    r = await client.get("/api/orders", headers=auth_headers("ghost-user"))
    assert r.status_code == 401


async def test_order_flow(client, provider, make_user, set_price, auth_headers):
    user_id = await make_user(1000)
    await set_price(300)
    headers = auth_headers(user_id)

    r = await client.post("/api/orders", json={"service_code": "whatsapp", "country": "ng"}, headers=headers)
    assert r.status_code == 201, r.text
    order = r.json()
    assert order["status"] == "WAITING_FOR_SMS"
    assert order["country"] == "NG"
    assert order["outcome"] is None

    r = await client.get("/api/wallet", headers=headers)
    assert r.json() == {"balance_cents": 700, "currency": "NGN"}

    provider.code = "135790"
    r = await client.get(f"/api/orders/{order['id']}", headers=headers)
    assert r.status_code == 200
    assert r.json()["status"] == "COMPLETED"
    assert r.json()["sms_code"] == "135790"
    assert r.json()["outcome"] == {"status": "COMPLETED", "reason": None, "refunded": False}

    r = await client.post(f"/api/orders/{order['id']}/cancel", headers=headers)
    assert r.status_code == 409

    r = await client.get("/api/orders", params={"status": "COMPLETED"}, headers=headers)
    assert [item["id"] for item in r.json()["orders"]] == [order["id"]]


async def test_cancel_via_api_refunds(client, make_user, set_price, auth_headers):
    user_id = await make_user(1000)
    await set_price(300)
    headers = auth_headers(user_id)
    order = (await client.post("/api/orders", json={"service_code": "whatsapp", "country": "NG"}, headers=headers)).json()

    r = await client.post(f"/api/orders/{order['id']}/cancel", headers=headers)

    assert r.status_code == 200
    assert r.json()["status"] == "CANCELLED"
    assert r.json()["outcome"] == {"status": "CANCELLED", "reason": "USER_CANCELLED", "refunded": True}
    assert (await client.get("/api/wallet", headers=headers)).json()["balance_cents"] == 1000


async def test_domain_errors_map_to_statuses(client, provider, make_user, set_price, auth_headers):
    poor = await make_user(50)
    rich = await make_user(1000)
    await set_price(300)
    body = {"service_code": "whatsapp", "country": "NG"}

    r = await client.post("/api/orders", json=body, headers=auth_headers(poor))
    assert r.status_code == 402

    r = await client.post("/api/orders", json={**body, "country": "GB"}, headers=auth_headers(rich))
    assert r.status_code == 400

    r = await client.get("/api/orders/does-not-exist", headers=auth_headers(rich))
    assert r.status_code == 404

    from otpmarket.domain.providers import ProviderUnavailable

    provider.reserve_error = ProviderUnavailable("fake-sms", "no numbers")
    r = await client.post("/api/orders", json=body, headers=auth_headers(rich))
    assert r.status_code == 502
    assert (await client.get("/api/wallet", headers=auth_headers(rich))).json()["balance_cents"] == 1000


async def test_wallet_deposit_withdrawal_and_history(client, make_user, auth_headers):
    user_id = await make_user(5000)
    headers = auth_headers(user_id)

    r = await client.post("/api/wallet/deposits", json={"amount_cents": 2000, "gateway": "paystack"}, headers=headers)
    assert r.status_code == 201
    deposit = r.json()
    assert deposit["status"] == "PENDING"

    r = await client.post("/api/wallet/deposits", json={"amount_cents": 2000, "gateway": "bitpay"}, headers=headers)
    assert r.status_code == 404

    r = await client.post(
        "/api/wallet/withdrawals",
        json={"amount_cents": 1500, "bank_details": {"account_number": "0123456789"}},
        headers=headers,
    )
    assert r.status_code == 201
    assert r.json()["balance_after_cents"] == 3500

    r = await client.post("/api/wallet/withdrawals", json={"amount_cents": 500}, headers=headers)
    assert r.status_code == 400

    r = await client.get("/api/wallet/transactions", params={"type": "WITHDRAWAL"}, headers=headers)
    assert [tx["amount_cents"] for tx in r.json()["transactions"]] == [1500]
    assert (await client.get("/api/wallet", headers=headers)).json()["balance_cents"] == 3500


async def test_deposit_verification_endpoint(client, container, gateway_api, make_user, balance_of, auth_headers):
    user_id = await make_user(0)
    headers = auth_headers(user_id)
    r = await client.post("/api/wallet/deposits", json={"amount_cents": 2000, "gateway": "paystack"}, headers=headers)
    reference = r.json()["external_reference"]

    gateway_api.payments[reference] = {"reference": reference, "status": "ongoing", "amount": 2000}
    r = await client.post(f"/api/wallet/deposits/{reference}/verify", headers=headers)
    assert r.status_code == 200
    assert r.json()["outcome"] == "PENDING"

    gateway_api.payments[reference] = {"reference": reference, "status": "success", "amount": 2000}
    r = await client.post(f"/api/wallet/deposits/{reference}/verify", headers=headers)
    assert r.status_code == 200
    assert r.json() == {"outcome": "CREDITED", "reference": reference, "amount_cents": 2000}
    assert await balance_of(user_id) == 2000

    r = await client.post("/api/wallet/deposits/PST-UNKNOWN/verify", headers=headers)
    assert r.status_code == 404

    gateway_api.failure = 401
    other = await make_user(0)
    pending = await container.payments.initialize_deposit(other, 1000, "paystack")
    r = await client.post(f"/api/wallet/deposits/{pending.external_reference}/verify", headers=auth_headers(other))
    assert r.status_code == 502


async def test_paystack_webhook_endpoint(client, container, make_user, balance_of):
    user_id = await make_user(0)
    deposit = await container.payments.initialize_deposit(user_id, 2000, "paystack")
    body = json.dumps(
        {"event": "charge.success", "data": {"id": 1, "reference": deposit.external_reference, "amount": 2000, "status": "success"}}
    ).encode()
    signature = hmac.new(PAYSTACK_SECRET.encode(), body, hashlib.sha512).hexdigest()

    r = await client.post("/api/webhooks/paystack", content=body, headers={"x-paystack-signature": "bad"})
    assert r.status_code == 401

    r = await client.post("/api/webhooks/paystack", content=body, headers={"x-paystack-signature": signature})
    assert r.status_code == 200
    assert r.json() == {"ok": True, "outcome": "CREDITED", "reference": deposit.external_reference}

    r = await client.post("/api/webhooks/paystack", content=body, headers={"x-paystack-signature": signature})
    assert r.json()["outcome"] == "DUPLICATE"
    assert await balance_of(user_id) == 2000

    r = await client.post("/api/webhooks/bitpay", content=body)
    assert r.status_code == 404


async def test_admin_endpoints(client, make_user, set_price, make_overdue, auth_headers, container):
    admin_id = await make_user(role="admin")
    user_id = await make_user(1000)
    await set_price(300)
    order = await container.orders.create_order(user_id, "whatsapp", "NG")
    await make_overdue(order.id)

    r = await client.post("/api/admin/orders/sweep", headers=auth_headers(user_id))
    assert r.status_code == 403

    r = await client.post("/api/admin/orders/sweep", headers=auth_headers(admin_id, role="admin"))
    assert r.status_code == 200
    assert r.json() == {"checked": 1, "expired": 1, "failed": 0}

    r = await client.post("/api/admin/orders/archive", params={"older_than_days": 30}, headers=auth_headers(admin_id))
    assert r.json() == {"archived": 0}

    r = await client.get("/api/admin/wallets/audit", headers=auth_headers(admin_id))
    audit = r.json()
    assert audit["checked"] == 2
    assert {item["user_id"] for item in audit["anomalies"]} == {user_id}
