"""
재고 선점: 플랜별 재고 풀에 대한 원자적 조건부 갱신

모든 함수는 호출자가 연 트랜잭션 안에서 실행된다.
"""
from datetime import datetime
from typing import Dict, Iterable, List

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from domain.exceptions import StockContentionError
from infrastructure.persistence.models.stock_item import StockItem


async def count_available(session: AsyncSession, plan_ids: Iterable[str]) -> Dict[str, int]:
    """플랜별 미사용 재고 수"""
    plan_ids = list(set(plan_ids))
    if not plan_ids:
        return {}
    result = await session.execute(
        select(StockItem.plan_id, func.count(StockItem.id))
        .where(StockItem.plan_id.in_(plan_ids), StockItem.is_used.is_(False))
        .group_by(StockItem.plan_id)
    )
    counts = {plan_id: 0 for plan_id in plan_ids}
    counts.update({plan_id: count for plan_id, count in result.all()})
    return counts


async def claim(
    session: AsyncSession,
    plan_id: str,
    order_item_id: str,
    quantity: int,
) -> List[str]:
    """
    미사용 재고 quantity개를 주문 항목에 할당 (FIFO)

    후보 선택 뒤 `is_used = false` 조건을 건 UPDATE로 한 번 더 확인한다.
    다른 트랜잭션이 같은 재고를 먼저 가져가면 StockContentionError를 던지며,
    호출자는 트랜잭션 전체를 롤백해야 한다.
    """
    if quantity <= 0:
        return []

    result = await session.execute(
        select(StockItem.id)
        .where(StockItem.plan_id == plan_id, StockItem.is_used.is_(False))
        .order_by(StockItem.created_at, StockItem.id)
        .limit(quantity)
        .with_for_update(skip_locked=True)
    )
    candidate_ids = list(result.scalars().all())
    if len(candidate_ids) < quantity:
        raise StockContentionError(plan_id)

    updated = await session.execute(
        update(StockItem)
        .where(StockItem.id.in_(candidate_ids), StockItem.is_used.is_(False))
        .values(is_used=True, used_at=datetime.utcnow(), order_item_id=order_item_id)
        .execution_options(synchronize_session=False)
    )
    if updated.rowcount != len(candidate_ids):
        raise StockContentionError(plan_id)
    return candidate_ids


async def allocated_to(session: AsyncSession, order_item_id: str) -> List[StockItem]:
    """주문 항목에 이미 할당된 재고"""
    result = await session.execute(
        select(StockItem)
        .where(StockItem.order_item_id == order_item_id)
        .order_by(StockItem.used_at, StockItem.id)
    )
    return list(result.scalars().all())
