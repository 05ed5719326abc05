"""HTTP 레벨 웹훅 테스트 (ASGITransport)"""
import json

import httpx
import pytest
from sqlalchemy import select

from domain.enums import OrderStatus, PaymentStatus
from infrastructure.payment.registry import build_providers
from infrastructure.persistence.models import WebhookLog
from main import create_app

from conftest import load_state, signed_cryptomus
from test_provider_adapters import iyzico_result


def _iyzico_transport(result: dict):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/payment/iyzipos/checkoutform/auth/ecom/detail"
        assert request.headers["Authorization"].startswith("IYZWSv2 ")
        body = json.loads(request.content)
        return httpx.Response(200, json={**result, "token": body["token"]})
    return httpx.MockTransport(handler)


def _make_client(test_settings, session_factory, delivery, notifier, transport=None):
    app = create_app(
        test_settings,
        session_factory=session_factory,
        providers=build_providers(test_settings, transport),
        delivery=delivery,
        notifier=notifier,
        init_database=False,
    )
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")


@pytest.fixture
async def client(test_settings, session_factory, delivery, notifier):
    async with _make_client(test_settings, session_factory, delivery, notifier) as client:
        yield client


async def test_completed_webhook_returns_ack(client, seed, session_factory):
    seeded = await seed()

    response = await client.post("/api/webhooks/cryptomus", json=signed_cryptomus(seeded.payment_id, "paid"))

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "payment_id": seeded.payment_id,
        "order_id": seeded.order_id,
        "status": "completed",
    }
    state = await load_state(session_factory, seeded)
    assert state["order_status"] == OrderStatus.COMPLETED

    async with session_factory() as session:
        [log] = (await session.execute(select(WebhookLog))).scalars().all()
    assert log.provider == "cryptomus"
    assert log.status_code == 200
    assert log.outcome == "completed"
    assert log.correlation_id == seeded.payment_id
    assert log.payload["sign"] == "[REDACTED]"


async def test_deferred_status_returns_received(client, seed, session_factory):
    seeded = await seed()
    response = await client.post("/api/webhooks/cryptomus", json=signed_cryptomus(seeded.payment_id, "check"))

    assert response.status_code == 200
    assert response.json() == {"received": True}
    assert (await load_state(session_factory, seeded))["payment_status"] == PaymentStatus.PENDING


async def test_bad_signature_returns_401(client, seed, session_factory):
    seeded = await seed()
    payload = signed_cryptomus(seeded.payment_id, "paid")
    payload["sign"] = "0" * 32

    response = await client.post("/api/webhooks/cryptomus", json=payload)

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid signature"}
    assert (await load_state(session_factory, seeded))["payment_status"] == PaymentStatus.PENDING


async def test_unknown_payment_returns_404(client, seed, session_factory):
    await seed()
    response = await client.post("/api/webhooks/cryptomus",
                                 json=signed_cryptomus("ghost", "paid", uuid="ghost-uuid"))

    assert response.status_code == 404
    assert "error" in response.json()
    async with session_factory() as session:
        [log] = (await session.execute(select(WebhookLog))).scalars().all()
    assert log.status_code == 404
    assert log.correlation_id == "ghost"


async def test_malformed_body_returns_400(client):
    response = await client.post("/api/webhooks/weepay", content=b"not json",
                                 headers={"content-type": "application/json"})
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid webhook payload"}


async def test_rate_limited_webhook_returns_429(test_settings, session_factory, delivery, notifier, seed):
    seeded = await seed()
    limited = test_settings.model_copy(update={"WEBHOOK_RATE_LIMIT_MAX": 1})
    payload = signed_cryptomus(seeded.payment_id, "check")

    async with _make_client(limited, session_factory, delivery, notifier) as client:
        first = await client.post("/api/webhooks/cryptomus", json=payload)
        second = await client.post("/api/webhooks/cryptomus", json=payload)

    assert first.status_code == 200
    assert second.status_code == 429
    assert second.json() == {"error": "Too many requests"}


async def test_iyzico_callback_retrieves_result_and_settles(test_settings, session_factory, delivery,
                                                            notifier, seed):
    seeded = await seed(method="iyzico")
    transport = _iyzico_transport(iyzico_result("SUCCESS", conversation_id=seeded.payment_id))

    async with _make_client(test_settings, session_factory, delivery, notifier, transport) as client:
        response = await client.post("/api/payment/iyzico/callback", data={"token": "tok-abc"})

    assert response.status_code == 200
    assert response.json()["status"] == "completed"
    state = await load_state(session_factory, seeded)
    assert state["payment_status"] == PaymentStatus.COMPLETED
    assert state["provider_payment_id"] == "iyz-555"


async def test_iyzico_callback_without_token_returns_400(client):
    response = await client.post("/api/payment/iyzico/callback", json={})
    assert response.status_code == 400


async def test_iyzico_provider_outage_returns_503(test_settings, session_factory, delivery, notifier, seed):
    seeded = await seed(method="iyzico")
    transport = httpx.MockTransport(lambda request: httpx.Response(502, text="bad gateway"))

    async with _make_client(test_settings, session_factory, delivery, notifier, transport) as client:
        response = await client.post("/api/payment/iyzico/callback", data={"token": "tok-abc"})

    assert response.status_code == 503
    assert (await load_state(session_factory, seeded))["payment_status"] == PaymentStatus.PENDING


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
