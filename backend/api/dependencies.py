"""
FastAPI 의존성 주입 (Depends)

협력 객체는 create_app()이 app.state에 올려 두고, 라우터는 여기서 꺼내 쓴다.
"""
from typing import Dict

from fastapi import Request
from sqlalchemy.ext.asyncio import async_sessionmaker

from application.ports.payment_provider import PaymentProvider
from application.use_cases.create_payment import CreatePaymentUseCase
from application.use_cases.reconcile_payment import ReconcilePaymentUseCase
from infrastructure.rate_limit.limiter import RateLimiter


def get_client_ip(request: Request) -> str:
    """프록시 헤더를 우선해 클라이언트 IP 추출"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client:
        return request.client.host
    return "unknown"


def get_webhook_identifier(request: Request) -> str:
    # 결제사 서버는 고정 User-Agent로 들어온다
    return request.headers.get("user-agent") or "unknown"


def get_session_factory(request: Request) -> async_sessionmaker:
    return request.app.state.session_factory


def get_providers(request: Request) -> Dict[str, PaymentProvider]:
    return request.app.state.providers


def get_reconciler(request: Request) -> ReconcilePaymentUseCase:
    return request.app.state.reconciler


def get_payment_creator(request: Request) -> CreatePaymentUseCase:
    return request.app.state.payment_creator


def get_webhook_limiter(request: Request) -> RateLimiter:
    return request.app.state.webhook_limiter
