"""
주문 항목 배송 처리 (COMPLETED 주문만)

- AUTOMATIC: 결제 반영 트랜잭션에서 선점한 재고를 확인하고 배송 완료 처리.
  선점분이 모자라면 (관리자가 직접 완료 처리한 주문 등) FIFO로 추가 할당한다.
- MANUAL: 사람이 처리하도록 지원 티켓(DELIVERY-000001 형식)을 만든다.

같은 항목에 여러 번 호출해도 재고를 더 쓰거나 티켓을 더 만들지 않는다.
"""
from datetime import datetime

from loguru import logger
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import selectinload

from domain.enums import DeliveryType, OrderStatus, TicketStatus
from domain.exceptions import DeliveryError, StockContentionError
from application.ports.delivery_service import DeliveryPort, DeliveryResult
from infrastructure.persistence import stock_allocator
from infrastructure.persistence.models.order import OrderItem
from infrastructure.persistence.models.support_ticket import SupportTicket


class DeliveryService(DeliveryPort):

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def process_delivery(self, order_id: str, order_item_id: str) -> DeliveryResult:
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    select(OrderItem)
                    .options(selectinload(OrderItem.order))
                    .where(OrderItem.id == order_item_id, OrderItem.order_id == order_id)
                )
                item = result.scalar_one_or_none()
                if item is None:
                    raise DeliveryError(f"Order item not found: {order_item_id}")
                if item.order.status != OrderStatus.COMPLETED:
                    # 미완료 주문에는 재고를 내주지 않는다
                    raise DeliveryError(
                        f"Order {item.order.order_number} is {item.order.status.value}, not completed"
                    )

                if item.delivery_type is None:
                    item.delivery_type = item.plan.delivery_type

                if item.effective_delivery_type == DeliveryType.AUTOMATIC:
                    return await self._process_automatic(session, item)
                return await self._process_manual(session, item)

    async def _process_automatic(self, session, item: OrderItem) -> DeliveryResult:
        allocated = await stock_allocator.allocated_to(session, item.id)
        stock_item_ids = [stock.id for stock in allocated]
        missing = item.quantity - len(stock_item_ids)
        already_delivered = item.delivered_at is not None and missing <= 0

        if missing > 0:
            try:
                stock_item_ids += await stock_allocator.claim(session, item.plan_id, item.id, missing)
            except StockContentionError:
                raise DeliveryError(
                    f"No stock available for automatic delivery of "
                    f"{item.plan.product.name} - {item.plan.plan_type}"
                )

        if item.delivered_at is None:
            item.delivered_at = datetime.utcnow()

        if not already_delivered:
            logger.info(f"자동 배송 완료: 항목 {item.id}, 재고 {len(stock_item_ids)}개")
        return DeliveryResult(
            success=True,
            type=DeliveryType.AUTOMATIC.value,
            order_item_id=item.id,
            stock_item_ids=stock_item_ids,
            already_delivered=already_delivered,
        )

    async def _process_manual(self, session, item: OrderItem) -> DeliveryResult:
        if item.ticket_id:
            return DeliveryResult(
                success=True,
                type=DeliveryType.MANUAL.value,
                order_item_id=item.id,
                ticket_id=item.ticket_id,
                already_delivered=True,
            )

        ticket_count = (await session.execute(select(func.count(SupportTicket.id)))).scalar_one()
        product_name = item.plan.product.name
        ticket = SupportTicket(
            ticket_number=f"DELIVERY-{ticket_count + 1:06d}",
            user_id=item.order.user_id,
            title=f"Delivery Request - {product_name}",
            description=(
                f"Manual delivery request for {product_name} - {item.plan.plan_type} Plan.\n\n"
                f"Order Details:\n"
                f"- Order ID: {item.order_id}\n"
                f"- Product: {product_name}\n"
                f"- Plan: {item.plan.plan_type}\n"
                f"- Quantity: {item.quantity}\n\n"
                f"Please process the delivery for this customer."
            ),
            category="ORDER_ISSUES",
            priority="MEDIUM",
            status=TicketStatus.OPEN,
            is_auto_created=True,
            tags=["delivery", "auto-created"],
        )
        session.add(ticket)
        await session.flush()
        item.ticket_id = ticket.id

        logger.info(f"수동 배송 티켓 생성: {ticket.ticket_number} (항목 {item.id})")
        return DeliveryResult(
            success=True,
            type=DeliveryType.MANUAL.value,
            order_item_id=item.id,
            ticket_id=ticket.id,
        )

    async def is_delivered(self, order_item_id: str) -> bool:
        """자동 배송은 배송 시각, 수동 배송은 티켓 종료 여부로 판단"""
        async with self._session_factory() as session:
            item = await session.get(OrderItem, order_item_id)
            if item is None:
                return False
            if item.effective_delivery_type == DeliveryType.AUTOMATIC:
                return item.delivered_at is not None
            if not item.ticket_id:
                return False
            ticket = await session.get(SupportTicket, item.ticket_id)
            return ticket is not None and ticket.status == TicketStatus.CLOSED
