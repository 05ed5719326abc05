"""도메인 열거형"""
import enum


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PaymentMethod(str, enum.Enum):
    CRYPTOMUS = "cryptomus"
    WEEPAY = "weepay"
    IYZICO = "iyzico"


class DeliveryType(str, enum.Enum):
    AUTOMATIC = "automatic"
    MANUAL = "manual"


class WebhookOutcome(str, enum.Enum):
    """결제사 상태를 정규화한 결과. DEFER는 상태를 바꾸지 않는다."""
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    DEFER = "defer"


class TicketStatus(str, enum.Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    CLOSED = "closed"


TERMINAL_ORDER_STATUSES = frozenset(
    {OrderStatus.COMPLETED, OrderStatus.CANCELLED, OrderStatus.FAILED}
)
TERMINAL_PAYMENT_STATUSES = frozenset(
    {PaymentStatus.COMPLETED, PaymentStatus.FAILED, PaymentStatus.CANCELLED}
)
