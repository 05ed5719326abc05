"""
웹훅 → Payment 조회 전략

결제사가 돌려주는 식별자로 대상 Payment를 찾는다. 전략은 정해진 순서대로
평가하며 처음 일치한 결과를 쓴다.

    1. Payment.id == correlation_id          (결제 생성 시 Payment.id를 상관 ID로 발급)
    2. Payment.provider_payment_id == 결제사 결제 ID
    3. Payment.order_id == correlation_id    (구 버전 호환)
    4. Order.id / Order.order_number == correlation_id → 해당 주문의 최근 Payment
"""
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from domain.entities.payment_event import NormalizedEvent
from infrastructure.persistence.models.order import Order
from infrastructure.persistence.models.payment import Payment


class PaymentLookupStrategy(ABC):
    name: str = ""

    @abstractmethod
    async def find(self, session: AsyncSession, event: NormalizedEvent) -> Optional[Payment]: ...


def _latest_first(query):
    return query.order_by(Payment.created_at.desc(), Payment.id.desc()).limit(1)


class ByPaymentId(PaymentLookupStrategy):
    name = "payment_id"

    async def find(self, session, event):
        if not event.correlation_id:
            return None
        result = await session.execute(select(Payment).where(Payment.id == event.correlation_id))
        return result.scalar_one_or_none()


class ByProviderPaymentId(PaymentLookupStrategy):
    name = "provider_payment_id"

    async def find(self, session, event):
        if not event.provider_payment_id:
            return None
        result = await session.execute(
            _latest_first(select(Payment).where(
                Payment.provider_payment_id == event.provider_payment_id,
                Payment.method == event.provider,
            ))
        )
        return result.scalar_one_or_none()


class ByPaymentOrderId(PaymentLookupStrategy):
    name = "payment_order_id"

    async def find(self, session, event):
        if not event.correlation_id:
            return None
        result = await session.execute(
            _latest_first(select(Payment).where(Payment.order_id == event.correlation_id))
        )
        return result.scalar_one_or_none()


class ByOrderReference(PaymentLookupStrategy):
    name = "order_reference"

    async def find(self, session, event):
        if not event.correlation_id:
            return None
        result = await session.execute(
            _latest_first(
                select(Payment)
                .join(Order, Payment.order_id == Order.id)
                .where(or_(Order.id == event.correlation_id,
                           Order.order_number == event.correlation_id))
            )
        )
        return result.scalar_one_or_none()


DEFAULT_LOOKUP_STRATEGIES: Tuple[PaymentLookupStrategy, ...] = (
    ByPaymentId(),
    ByProviderPaymentId(),
    ByPaymentOrderId(),
    ByOrderReference(),
)


async def resolve_payment(
    session: AsyncSession,
    event: NormalizedEvent,
    strategies: Sequence[PaymentLookupStrategy] = DEFAULT_LOOKUP_STRATEGIES,
) -> Tuple[Optional[Payment], Optional[str]]:
    """(Payment, 일치한 전략 이름). 없으면 (None, None)"""
    for strategy in strategies:
        payment = await strategy.find(session, event)
        if payment is not None:
            return payment, strategy.name
    return None, None


def strategy_names(strategies: Sequence[PaymentLookupStrategy]) -> List[str]:
    return [s.name for s in strategies]
