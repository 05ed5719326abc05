"""결제 세션 생성 유스케이스"""
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from loguru import logger
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import selectinload

from domain.enums import OrderStatus, PaymentMethod, PaymentStatus
from domain.exceptions import OrderNotPayableError
from application.ports.payment_provider import (
    BasketItem, PaymentProvider, PaymentSessionRequest,
)
from infrastructure.payment.registry import get_provider
from infrastructure.persistence.models.order import Order
from infrastructure.persistence.models.payment import Payment

CALLBACK_PATHS = {
    PaymentMethod.CRYPTOMUS.value: "/api/webhooks/cryptomus",
    PaymentMethod.WEEPAY.value: "/api/webhooks/weepay",
    PaymentMethod.IYZICO.value: "/api/payment/iyzico/callback",
}


@dataclass
class CreatePaymentInput:
    order_id: str  # 주문 ID 또는 주문 번호
    provider: str
    return_url: Optional[str] = None
    callback_url: Optional[str] = None
    client_ip: str = "127.0.0.1"


@dataclass
class CreatePaymentOutput:
    success: bool
    payment_id: str
    order_id: str
    payment_url: Optional[str] = None
    provider_payment_id: Optional[str] = None
    error: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


class CreatePaymentUseCase:
    """
    PENDING 주문에 Payment를 만들고 결제사 세션을 연다.
    Payment.id가 결제사에 넘기는 상관 ID가 된다.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        providers: Mapping[str, PaymentProvider],
        app_base_url: str,
    ):
        self._session_factory = session_factory
        self._providers = providers
        self._base_url = app_base_url.rstrip("/")

    async def execute(self, input: CreatePaymentInput) -> CreatePaymentOutput:
        provider = get_provider(self._providers, input.provider)

        # 1. 주문 확인 및 Payment 생성
        async with self._session_factory() as session:
            async with session.begin():
                order = (await session.execute(
                    select(Order)
                    .options(selectinload(Order.items))
                    .where(or_(Order.id == input.order_id, Order.order_number == input.order_id))
                )).scalar_one_or_none()
                if order is None or order.status != OrderStatus.PENDING:
                    raise OrderNotPayableError(input.order_id)

                return_url = input.return_url or f"{self._base_url}/dashboard/orders/{order.id}"
                callback_url = input.callback_url or f"{self._base_url}{CALLBACK_PATHS[provider.name]}"

                payment = Payment(
                    order_id=order.id,
                    method=provider.name,
                    amount=order.total,
                    currency=order.currency,
                    status=PaymentStatus.PENDING,
                    provider_data={"return_url": return_url, "callback_url": callback_url},
                )
                session.add(payment)
                order.payment_method = provider.name
                await session.flush()

                request = PaymentSessionRequest(
                    correlation_id=payment.id,
                    amount=order.total,
                    currency=order.currency,
                    return_url=return_url,
                    callback_url=callback_url,
                    order_number=order.order_number,
                    customer_id=order.user_id,
                    customer_name=order.user.name if order.user else None,
                    customer_email=order.user.email if order.user else None,
                    client_ip=input.client_ip,
                    description=f"Payment for order {order.order_number}",
                    items=[
                        BasketItem(
                            id=item.id,
                            name=f"{item.plan.product.name} - {item.plan.name}",
                            price=item.price * item.quantity,
                        )
                        for item in order.items
                    ],
                )
                payment_id = payment.id
                order_id = order.id

        # 2. 결제사 호출 (트랜잭션 밖)
        result = await provider.create_payment(request)

        # 3. 결과 저장
        async with self._session_factory() as session:
            async with session.begin():
                payment = await session.get(Payment, payment_id)
                if result.success:
                    payment.provider_payment_id = result.payment_id
                    payment.provider_data = {
                        **(payment.provider_data or {}),
                        "payment_url": result.payment_url,
                        **{k: v for k, v in result.extra.items() if k != "checkoutFormContent"},
                    }
                else:
                    payment.status = PaymentStatus.FAILED
                    payment.failure_reason = result.error

        if not result.success:
            logger.warning(f"결제 세션 생성 실패: {provider.name} 주문 {order_id} - {result.error}")
            return CreatePaymentOutput(
                success=False, payment_id=payment_id, order_id=order_id, error=result.error,
            )

        logger.info(f"결제 세션 생성: {provider.name} 결제 {payment_id} (주문 {order_id})")
        return CreatePaymentOutput(
            success=True,
            payment_id=payment_id,
            order_id=order_id,
            payment_url=result.payment_url,
            provider_payment_id=result.payment_id,
            extra=result.extra,
        )
