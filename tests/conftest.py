"""공통 테스트 픽스처: 임시 SQLite DB, 시드 데이터, 기록용 협력 객체"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional, Sequence

import pytest
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import create_async_engine

from config import Settings
from domain.enums import DeliveryType, OrderStatus, PaymentStatus
from application.ports.delivery_service import DeliveryPort, DeliveryResult
from application.ports.notification_service import NotificationPort
from application.use_cases.reconcile_payment import ReconcilePaymentUseCase
from infrastructure.delivery.delivery_service import DeliveryService
from infrastructure.payment.cryptomus_gateway import CryptomusGateway, cryptomus_sign
from infrastructure.persistence.database import init_db, make_session_factory
from infrastructure.persistence.models import (
    Order, OrderItem, Payment, Plan, Product, StockItem, User,
)

CRYPTOMUS_KEY = "cryptomus-test-key"
WEEPAY_SECRET = "weepay-test-secret"
IYZICO_SECRET = "iyzico-test-secret"


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        DB_URL=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        APP_BASE_URL="https://shop.example.com",
        CRYPTOMUS_MERCHANT_ID="merchant-1",
        CRYPTOMUS_PAYMENT_API_KEY=CRYPTOMUS_KEY,
        CRYPTOMUS_API_URL="https://cryptomus.test",
        WEEPAY_MERCHANT_ID="bayi-1",
        WEEPAY_API_KEY="weepay-api-key",
        WEEPAY_SECRET_KEY=WEEPAY_SECRET,
        WEEPAY_SANDBOX_URL="https://weepay.test",
        IYZICO_API_KEY="iyzico-api-key",
        IYZICO_SECRET_KEY=IYZICO_SECRET,
        IYZICO_BASE_URL="https://iyzico.test",
        EMAIL_SEND_ENABLED=False,
        WEBHOOK_RATE_LIMIT_MAX=1000,
        LOG_FILE=str(tmp_path / "app.log"),
        SECURITY_LOG_FILE=str(tmp_path / "security.log"),
    )


@pytest.fixture
async def engine(test_settings):
    engine = create_async_engine(test_settings.DB_URL)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


class RecordingNotifier(NotificationPort):
    def __init__(self, fail: bool = False):
        self.sent: List[dict] = []
        self.fail = fail

    async def send_email(self, to, subject, text, html=None) -> bool:
        self.sent.append({"to": to, "subject": subject, "text": text, "html": html})
        if self.fail:
            raise RuntimeError("smtp down")
        return True


class RecordingDelivery(DeliveryPort):
    """실제 DeliveryService를 감싸 호출을 기록한다"""

    def __init__(self, inner: DeliveryService, fail_items: Sequence[str] = ()):
        self.inner = inner
        self.calls: List[tuple] = []
        self.fail_items = set(fail_items)

    async def process_delivery(self, order_id: str, order_item_id: str) -> DeliveryResult:
        self.calls.append((order_id, order_item_id))
        if order_item_id in self.fail_items:
            raise RuntimeError("delivery backend down")
        return await self.inner.process_delivery(order_id, order_item_id)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def delivery(session_factory):
    return RecordingDelivery(DeliveryService(session_factory))


@pytest.fixture
def reconciler(session_factory, delivery, notifier):
    return ReconcilePaymentUseCase(session_factory, delivery, notifier, commit_timeout=10.0)


@pytest.fixture
def cryptomus(test_settings):
    return CryptomusGateway(test_settings)


@dataclass
class Seeded:
    user_id: str
    order_id: str
    order_number: str
    item_ids: List[str]
    plan_id: str
    payment_id: str


async def seed_order(
    session_factory,
    *,
    stock: int = 3,
    quantity: int = 1,
    delivery_type: DeliveryType = DeliveryType.AUTOMATIC,
    method: str = "cryptomus",
    order_number: str = "ORD-1001",
    email: str = "buyer@example.com",
    plan_id: Optional[str] = None,
    amount: Decimal = Decimal("10.00"),
) -> Seeded:
    """사용자/상품/플랜/재고/주문/결제 한 벌 생성. plan_id를 주면 기존 플랜을 쓴다."""
    async with session_factory() as session:
        async with session.begin():
            user = (await session.execute(select(User).where(User.email == email))).scalar_one_or_none()
            if user is None:
                user = User(email=email, name="Test Buyer")
                session.add(user)
                await session.flush()

            if plan_id is None:
                product = Product(name="Streaming Plus", slug=f"streaming-{order_number.lower()}")
                session.add(product)
                await session.flush()
                plan = Plan(
                    product_id=product.id, name="Monthly", plan_type="MONTHLY",
                    delivery_type=delivery_type, price=amount, currency="USD",
                )
                session.add(plan)
                await session.flush()
                base = datetime.utcnow()
                for n in range(stock):
                    session.add(StockItem(plan_id=plan.id, content=f"account-{n}",
                                          created_at=base + timedelta(seconds=n)))
                plan_id = plan.id

            order = Order(
                order_number=order_number, user_id=user.id, status=OrderStatus.PENDING,
                total=amount * quantity, currency="USD", payment_method=method,
            )
            session.add(order)
            await session.flush()
            item = OrderItem(order_id=order.id, plan_id=plan_id, quantity=quantity,
                             price=amount, currency="USD")
            session.add(item)
            payment = Payment(order_id=order.id, method=method, amount=amount * quantity,
                              currency="USD", status=PaymentStatus.PENDING)
            session.add(payment)
            await session.flush()
            return Seeded(user.id, order.id, order_number, [item.id], plan_id, payment.id)


@pytest.fixture
def seed(session_factory):
    async def _seed(**kwargs) -> Seeded:
        return await seed_order(session_factory, **kwargs)
    return _seed


def signed_cryptomus(order_id: str, status: str, uuid: str = "cm-uuid-1",
                     amount: str = "10.00", key: str = CRYPTOMUS_KEY) -> dict:
    data = {
        "type": "payment",
        "uuid": uuid,
        "order_id": order_id,
        "amount": amount,
        "payment_amount": amount,
        "merchant_amount": amount,
        "network": "tron",
        "currency": "USD",
        "payer_currency": "USDT",
        "status": status,
        "is_final": status in ("paid", "paid_over", "fail", "cancel"),
    }
    data["sign"] = cryptomus_sign(data, key)
    return data


async def load_state(session_factory, seeded: Seeded) -> dict:
    """결제/주문/재고 상태 스냅샷"""
    async with session_factory() as session:
        payment = await session.get(Payment, seeded.payment_id)
        order = await session.get(Order, seeded.order_id)
        used = (await session.execute(
            select(func.count(StockItem.id)).where(StockItem.plan_id == seeded.plan_id,
                                                   StockItem.is_used.is_(True))
        )).scalar_one()
        return {
            "payment_status": payment.status,
            "provider_payment_id": payment.provider_payment_id,
            "webhook_data": payment.webhook_data,
            "failure_reason": payment.failure_reason,
            "payment_completed_at": payment.completed_at,
            "order_status": order.status,
            "order_completed_at": order.completed_at,
            "stock_used": used,
        }
