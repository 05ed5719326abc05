"""도메인 예외"""


class DomainError(Exception):
    """도메인 레이어 기본 예외"""
    pass


class UnknownProviderError(DomainError):
    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"지원하지 않는 결제사입니다: {provider}")


class ProviderConfigurationError(DomainError):
    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"결제사 설정이 누락되었습니다: {provider}")


class ProviderUnavailableError(DomainError):
    """결제사 API 호출 실패 (재시도 가능)"""
    pass


class InvalidSignatureError(DomainError):
    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"웹훅 서명이 유효하지 않습니다: {provider}")


class MalformedPayloadError(DomainError):
    pass


class PaymentNotFoundError(DomainError):
    def __init__(self, correlation_id: str, provider_payment_id: str = ""):
        self.correlation_id = correlation_id
        self.provider_payment_id = provider_payment_id
        super().__init__(f"결제 기록을 찾을 수 없습니다: {correlation_id or provider_payment_id}")


class OrderNotPayableError(DomainError):
    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"결제할 수 없는 주문입니다: {order_id}")


class ReconciliationTimeoutError(DomainError):
    def __init__(self, payment_id: str, timeout: float):
        self.payment_id = payment_id
        super().__init__(f"결제 반영 시간 초과 ({timeout}s): {payment_id}")


class ConcurrentUpdateError(DomainError):
    """동시 갱신 충돌. 트랜잭션 전체를 롤백하고 다시 시도한다"""
    pass


class StockContentionError(ConcurrentUpdateError):
    """재고 선점 경합"""

    def __init__(self, plan_id: str):
        self.plan_id = plan_id
        super().__init__(f"재고 선점 경합 발생: {plan_id}")


class DeliveryError(DomainError):
    pass
