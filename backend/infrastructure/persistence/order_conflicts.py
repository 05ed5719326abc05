"""재고 소진으로 더는 채울 수 없는 대기 주문 정리"""
from datetime import datetime
from typing import Iterable, List

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import selectinload

from domain.enums import DeliveryType, OrderStatus, PaymentStatus
from domain.entities.stock import StockRequest, find_shortfalls
from infrastructure.persistence.models.order import Order, OrderItem
from infrastructure.persistence.models.payment import Payment
from infrastructure.persistence.stock_allocator import count_available

CONFLICT_REASON = "Order cancelled due to stock conflict"


async def cancel_conflicting_orders(
    session_factory: async_sessionmaker,
    completed_order_id: str,
    plan_ids: Iterable[str],
) -> List[str]:
    """
    같은 자동 배송 플랜을 담은 다른 PENDING 주문 중 남은 재고로 채울 수 없는
    주문을 취소한다. 주문의 PENDING 결제에는 취소 사유만 남긴다.
    취소한 주문 ID 목록 반환.
    """
    plan_ids = list(set(plan_ids))
    if not plan_ids:
        return []

    cancelled: List[str] = []
    async with session_factory() as session:
        async with session.begin():
            result = await session.execute(
                select(Order)
                .options(selectinload(Order.items))
                .where(
                    Order.id != completed_order_id,
                    Order.status == OrderStatus.PENDING,
                    Order.items.any(OrderItem.plan_id.in_(plan_ids)),
                )
            )
            orders = result.scalars().all()

            for order in orders:
                requests = [
                    StockRequest(item.id, item.plan_id, item.quantity, item.plan.product.name, item.plan.name)
                    for item in order.items
                    if item.effective_delivery_type == DeliveryType.AUTOMATIC
                ]
                available = await count_available(session, [r.plan_id for r in requests])
                if not find_shortfalls(requests, available):
                    continue

                now = datetime.utcnow()
                updated = await session.execute(
                    update(Order)
                    .where(Order.id == order.id, Order.status == OrderStatus.PENDING)
                    .values(status=OrderStatus.CANCELLED, completed_at=now)
                    .execution_options(synchronize_session=False)
                )
                if updated.rowcount == 0:
                    continue
                # 결제는 PENDING으로 남긴다. 늦게 도착한 결제 완료 웹훅이
                # 환불 필요 건으로 기록되어야 한다.
                await session.execute(
                    update(Payment)
                    .where(Payment.order_id == order.id, Payment.status == PaymentStatus.PENDING)
                    .values(failure_reason=CONFLICT_REASON, updated_at=now)
                    .execution_options(synchronize_session=False)
                )
                cancelled.append(order.id)

    if cancelled:
        logger.info(f"재고 충돌 주문 취소: {len(cancelled)}건 ({', '.join(cancelled)})")
    return cancelled
