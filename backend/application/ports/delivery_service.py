"""배송 포트 인터페이스"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class DeliveryResult:
    success: bool
    type: str
    order_item_id: str
    stock_item_ids: List[str] = field(default_factory=list)
    ticket_id: Optional[str] = None
    already_delivered: bool = False


class DeliveryPort(ABC):
    @abstractmethod
    async def process_delivery(self, order_id: str, order_item_id: str) -> DeliveryResult: ...
