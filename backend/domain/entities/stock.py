"""재고 검증 도메인 로직"""
from dataclasses import dataclass
from typing import Iterable, List, Mapping


@dataclass(frozen=True)
class StockRequest:
    """자동 배송 주문 항목 하나가 요구하는 재고"""
    order_item_id: str
    plan_id: str
    quantity: int
    product_name: str = ""
    plan_name: str = ""


@dataclass(frozen=True)
class StockShortfall:
    plan_id: str
    product_name: str
    plan_name: str
    requested: int
    available: int

    def describe(self) -> str:
        return f"{self.product_name} ({self.available}/{self.requested})"


def find_shortfalls(
    requests: Iterable[StockRequest],
    available: Mapping[str, int],
) -> List[StockShortfall]:
    """
    재고 부족 항목 계산 (순수 함수)

    같은 플랜을 여러 항목이 요구하면 요구량을 합산해 비교한다.
    available은 반드시 상태 반영과 같은 트랜잭션에서 읽은 값이어야 한다.
    """
    requests = list(requests)
    demand: dict = {}
    for req in requests:
        demand[req.plan_id] = demand.get(req.plan_id, 0) + req.quantity

    shortfalls: List[StockShortfall] = []
    reported = set()
    for req in requests:
        if req.plan_id in reported:
            continue
        have = available.get(req.plan_id, 0)
        need = demand[req.plan_id]
        if have < need:
            reported.add(req.plan_id)
            shortfalls.append(StockShortfall(
                plan_id=req.plan_id,
                product_name=req.product_name or req.plan_id,
                plan_name=req.plan_name,
                requested=need,
                available=have,
            ))
    return shortfalls


def describe_shortfalls(shortfalls: Iterable[StockShortfall]) -> str:
    return "Stock no longer available: " + ", ".join(s.describe() for s in shortfalls)
