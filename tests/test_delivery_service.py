"""배송 서비스"""
import pytest
from sqlalchemy import select, update

from domain.enums import DeliveryType, OrderStatus
from domain.exceptions import DeliveryError
from infrastructure.delivery.delivery_service import DeliveryService
from infrastructure.persistence import stock_allocator
from infrastructure.persistence.models import Order, StockItem, SupportTicket


async def _complete(session_factory, *order_ids):
    async with session_factory() as session:
        async with session.begin():
            await session.execute(
                update(Order).where(Order.id.in_(order_ids)).values(status=OrderStatus.COMPLETED)
            )


async def test_automatic_delivery_allocates_fifo_and_is_idempotent(seed, session_factory):
    seeded = await seed(stock=3, quantity=2)
    await _complete(session_factory, seeded.order_id)
    service = DeliveryService(session_factory)

    first = await service.process_delivery(seeded.order_id, seeded.item_ids[0])
    second = await service.process_delivery(seeded.order_id, seeded.item_ids[0])

    assert first.success and first.type == "automatic"
    assert len(first.stock_item_ids) == 2
    assert not first.already_delivered
    assert second.already_delivered
    assert sorted(second.stock_item_ids) == sorted(first.stock_item_ids)

    async with session_factory() as session:
        used = (await session.execute(
            select(StockItem).where(StockItem.is_used.is_(True)).order_by(StockItem.content)
        )).scalars().all()
    assert [s.content for s in used] == ["account-0", "account-1"]
    assert await service.is_delivered(seeded.item_ids[0])


async def test_automatic_delivery_confirms_reserved_stock(seed, session_factory):
    seeded = await seed(stock=2)
    await _complete(session_factory, seeded.order_id)
    async with session_factory() as session:
        async with session.begin():
            reserved = await stock_allocator.claim(session, seeded.plan_id, seeded.item_ids[0], 1)

    result = await DeliveryService(session_factory).process_delivery(seeded.order_id, seeded.item_ids[0])

    assert result.stock_item_ids == reserved
    async with session_factory() as session:
        counts = await stock_allocator.count_available(session, [seeded.plan_id])
    assert counts[seeded.plan_id] == 1


async def test_automatic_delivery_without_stock_fails(seed, session_factory):
    seeded = await seed(stock=0)
    await _complete(session_factory, seeded.order_id)
    with pytest.raises(DeliveryError):
        await DeliveryService(session_factory).process_delivery(seeded.order_id, seeded.item_ids[0])


async def test_unknown_item_fails(seed, session_factory):
    seeded = await seed()
    with pytest.raises(DeliveryError):
        await DeliveryService(session_factory).process_delivery(seeded.order_id, "missing-item")


async def test_manual_delivery_opens_one_ticket(seed, session_factory):
    first = await seed(stock=0, delivery_type=DeliveryType.MANUAL, order_number="ORD-3001")
    second = await seed(stock=0, delivery_type=DeliveryType.MANUAL, order_number="ORD-3002")
    await _complete(session_factory, first.order_id, second.order_id)
    service = DeliveryService(session_factory)

    result = await service.process_delivery(first.order_id, first.item_ids[0])
    again = await service.process_delivery(first.order_id, first.item_ids[0])
    other = await service.process_delivery(second.order_id, second.item_ids[0])

    assert result.type == "manual"
    assert again.already_delivered and again.ticket_id == result.ticket_id
    async with session_factory() as session:
        tickets = (await session.execute(
            select(SupportTicket).order_by(SupportTicket.ticket_number)
        )).scalars().all()
    assert [t.ticket_number for t in tickets] == ["DELIVERY-000001", "DELIVERY-000002"]
    assert tickets[1].id == other.ticket_id
    assert tickets[0].is_auto_created
    assert tickets[0].title == "Delivery Request - Streaming Plus"
    assert not await service.is_delivered(first.item_ids[0])


async def test_claim_skips_already_used_stock(seed, session_factory):
    seeded = await seed(stock=2)
    async with session_factory() as session:
        async with session.begin():
            await session.execute(
                update(StockItem).where(StockItem.content == "account-0").values(is_used=True)
            )

    async with session_factory() as session:
        async with session.begin():
            claimed = await stock_allocator.claim(session, seeded.plan_id, seeded.item_ids[0], 1)
        stock = await session.get(StockItem, claimed[0])
    assert stock.content == "account-1"
    assert stock.order_item_id == seeded.item_ids[0]


async def test_pending_order_is_not_delivered(seed, session_factory):
    seeded = await seed(stock=2)

    with pytest.raises(DeliveryError):
        await DeliveryService(session_factory).process_delivery(seeded.order_id, seeded.item_ids[0])

    async with session_factory() as session:
        counts = await stock_allocator.count_available(session, [seeded.plan_id])
    assert counts[seeded.plan_id] == 2
