"""결제사 웹훅 정규화 값 객체"""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional

from domain.enums import (
    OrderStatus, PaymentStatus, WebhookOutcome, TERMINAL_PAYMENT_STATUSES,
)


@dataclass(frozen=True)
class NormalizedEvent:
    """결제사별 웹훅 페이로드를 공통 형태로 정리한 값"""
    provider: str
    correlation_id: str          # 결제 생성 시 발급한 Payment.id (결제사가 그대로 돌려줌)
    provider_payment_id: str
    raw_status: str
    outcome: WebhookOutcome
    amount: Optional[Decimal] = None
    currency: Optional[str] = None

    @property
    def lookup_keys(self) -> Dict[str, str]:
        return {
            "correlation_id": self.correlation_id,
            "provider_payment_id": self.provider_payment_id,
        }


@dataclass
class ReconcileResult:
    """HTTP 레이어로 돌려줄 반영 결과"""
    success: bool
    payment_id: Optional[str] = None
    order_id: Optional[str] = None
    status: Optional[str] = None
    order_status: Optional[str] = None
    deferred: bool = False
    duplicate: bool = False
    stock_conflict: bool = False
    message: Optional[str] = None
    # 웹훅 로그용
    correlation_id: Optional[str] = None
    provider_payment_id: Optional[str] = None
    raw_status: Optional[str] = None
    outcome: Optional[str] = None

    def describe_event(self, event: NormalizedEvent) -> "ReconcileResult":
        self.correlation_id = event.correlation_id
        self.provider_payment_id = event.provider_payment_id
        self.raw_status = event.raw_status
        self.outcome = event.outcome.value
        return self


def map_status(raw_status: Optional[str], table: Mapping[str, WebhookOutcome]) -> WebhookOutcome:
    """결제사 상태 문자열 → 정규화 결과. 모르는 상태는 항상 DEFER."""
    if not raw_status:
        return WebhookOutcome.DEFER
    return table.get(str(raw_status).strip().lower(), WebhookOutcome.DEFER)


def payment_status_for(outcome: WebhookOutcome) -> PaymentStatus:
    if outcome is WebhookOutcome.DEFER:
        raise ValueError("DEFER는 상태 전이를 일으키지 않습니다.")
    return PaymentStatus(outcome.value)


def order_status_for(outcome: WebhookOutcome) -> OrderStatus:
    if outcome is WebhookOutcome.DEFER:
        raise ValueError("DEFER는 상태 전이를 일으키지 않습니다.")
    return OrderStatus(outcome.value)


def is_terminal(status: PaymentStatus) -> bool:
    return status in TERMINAL_PAYMENT_STATUSES


def parse_amount(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
