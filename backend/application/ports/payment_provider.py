"""결제사 어댑터 포트 인터페이스"""
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from domain.entities.payment_event import NormalizedEvent
from domain.exceptions import MalformedPayloadError


@dataclass
class BasketItem:
    id: str
    name: str
    price: Decimal
    category: str = "Subscription"


@dataclass
class PaymentSessionRequest:
    """결제 세션 생성 요청. correlation_id는 Payment.id"""
    correlation_id: str
    amount: Decimal
    currency: str
    return_url: str
    callback_url: str
    order_number: str = ""
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    client_ip: str = "127.0.0.1"
    description: str = "Payment for order"
    items: List[BasketItem] = field(default_factory=list)


@dataclass
class PaymentSession:
    success: bool
    payment_id: Optional[str] = None
    payment_url: Optional[str] = None
    error: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


class PaymentProvider(ABC):
    """결제사별 와이어 포맷과 서명 검증을 감추는 공통 계약"""

    name: str = ""

    @property
    @abstractmethod
    def webhook_secret(self) -> str: ...

    @abstractmethod
    async def create_payment(self, request: PaymentSessionRequest) -> PaymentSession: ...

    @abstractmethod
    def verify_webhook(self, payload: Dict[str, Any], secret: str) -> bool: ...

    @abstractmethod
    def normalize(self, payload: Dict[str, Any]) -> NormalizedEvent: ...

    async def load_payload(self, body: bytes, form: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """요청 본문 → 검증 대상 페이로드"""
        return parse_json_object(body)


def parse_json_object(body: bytes) -> Dict[str, Any]:
    try:
        data = json.loads(body or b"")
    except (ValueError, UnicodeDecodeError) as e:
        raise MalformedPayloadError(f"JSON 파싱 실패: {e}")
    if not isinstance(data, dict):
        raise MalformedPayloadError("웹훅 본문은 JSON 객체여야 합니다.")
    return data
