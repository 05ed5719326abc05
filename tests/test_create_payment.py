"""결제 세션 생성"""
import json

import httpx
import pytest

from domain.enums import OrderStatus, PaymentStatus
from domain.exceptions import OrderNotPayableError, UnknownProviderError
from application.use_cases.create_payment import CreatePaymentInput, CreatePaymentUseCase
from infrastructure.payment.registry import build_providers
from infrastructure.persistence.models import Order, Payment
from main import create_app


def _cryptomus_transport(captured: list, response: dict, status_code: int = 200):
    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(status_code, json=response)
    return httpx.MockTransport(handler)


async def test_creates_payment_with_payment_id_as_correlation(test_settings, session_factory, seed):
    seeded = await seed()
    captured = []
    transport = _cryptomus_transport(captured, {
        "state": 0, "result": {"uuid": "cm-uuid-42", "url": "https://pay.cryptomus.test/cm-uuid-42"},
    })
    creator = CreatePaymentUseCase(session_factory, build_providers(test_settings, transport),
                                   test_settings.APP_BASE_URL)

    output = await creator.execute(CreatePaymentInput(order_id=seeded.order_number, provider="cryptomus"))

    assert output.success
    assert output.payment_url == "https://pay.cryptomus.test/cm-uuid-42"
    assert output.order_id == seeded.order_id

    [request] = captured
    body = json.loads(request.content)
    assert body["order_id"] == output.payment_id
    assert body["url_callback"] == "https://shop.example.com/api/webhooks/cryptomus"
    assert request.headers["merchant"] == "merchant-1"
    assert len(request.headers["sign"]) == 32

    async with session_factory() as session:
        payment = await session.get(Payment, output.payment_id)
        order = await session.get(Order, seeded.order_id)
    assert payment.status == PaymentStatus.PENDING
    assert payment.provider_payment_id == "cm-uuid-42"
    assert payment.provider_data["return_url"] == f"https://shop.example.com/dashboard/orders/{seeded.order_id}"
    assert payment.provider_data["payment_url"] == output.payment_url
    assert order.payment_method == "cryptomus"


async def test_provider_rejection_marks_payment_failed(test_settings, session_factory, seed):
    seeded = await seed()
    transport = _cryptomus_transport([], {"state": 1, "message": "Invalid amount"})
    creator = CreatePaymentUseCase(session_factory, build_providers(test_settings, transport),
                                   test_settings.APP_BASE_URL)

    output = await creator.execute(CreatePaymentInput(order_id=seeded.order_id, provider="cryptomus"))

    assert not output.success
    assert output.error == "Invalid amount"
    async with session_factory() as session:
        payment = await session.get(Payment, output.payment_id)
    assert payment.status == PaymentStatus.FAILED
    assert payment.failure_reason == "Invalid amount"


async def test_unreachable_provider_marks_payment_failed(test_settings, session_factory, seed):
    seeded = await seed()

    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    creator = CreatePaymentUseCase(
        session_factory, build_providers(test_settings, httpx.MockTransport(handler)),
        test_settings.APP_BASE_URL,
    )
    output = await creator.execute(CreatePaymentInput(order_id=seeded.order_id, provider="cryptomus"))

    assert not output.success
    assert "request failed" in output.error


async def test_rejects_orders_that_are_not_pending(test_settings, session_factory, seed):
    seeded = await seed()
    async with session_factory() as session:
        async with session.begin():
            order = await session.get(Order, seeded.order_id)
            order.status = OrderStatus.COMPLETED

    creator = CreatePaymentUseCase(session_factory, build_providers(test_settings), test_settings.APP_BASE_URL)
    with pytest.raises(OrderNotPayableError):
        await creator.execute(CreatePaymentInput(order_id=seeded.order_id, provider="cryptomus"))


async def test_rejects_unknown_provider(test_settings, session_factory, seed):
    seeded = await seed()
    creator = CreatePaymentUseCase(session_factory, build_providers(test_settings), test_settings.APP_BASE_URL)
    with pytest.raises(UnknownProviderError):
        await creator.execute(CreatePaymentInput(order_id=seeded.order_id, provider="paypal"))


async def test_weepay_create_sends_notify_url(test_settings, session_factory, seed):
    seeded = await seed(method="weepay")
    captured = []
    transport = _cryptomus_transport(captured, {
        "status": "success", "paymentId": "wp-1", "paymentPageUrl": "https://weepay.test/pay/wp-1",
    })
    creator = CreatePaymentUseCase(session_factory, build_providers(test_settings, transport),
                                   test_settings.APP_BASE_URL)

    output = await creator.execute(CreatePaymentInput(order_id=seeded.order_id, provider="weepay"))

    assert output.success
    assert output.provider_payment_id == "wp-1"
    body = json.loads(captured[0].content)
    assert captured[0].url.path == "/Payment/PaymentCreate"
    assert body["Data"]["orderId"] == output.payment_id
    assert body["Data"]["notifyUrl"] == "https://shop.example.com/api/webhooks/weepay"


async def test_create_endpoint(test_settings, session_factory, seed):
    seeded = await seed()
    transport = _cryptomus_transport([], {"state": 0, "result": {"uuid": "cm-1", "url": "https://pay.test/cm-1"}})
    app = create_app(test_settings, session_factory=session_factory,
                     providers=build_providers(test_settings, transport), init_database=False)

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as client:
        ok = await client.post("/api/payment/cryptomus/create", json={"order_id": seeded.order_id})
        unknown = await client.post("/api/payment/paypal/create", json={"order_id": seeded.order_id})
        missing = await client.post("/api/payment/cryptomus/create", json={"order_id": "nope"})

    assert ok.status_code == 200
    assert ok.json()["payment_url"] == "https://pay.test/cm-1"
    assert unknown.status_code == 404
    assert missing.status_code == 400
