"""
구독 스토어 결제 웹훅 서비스 - FastAPI 메인 애플리케이션
"""
from contextlib import asynccontextmanager
from typing import Dict, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from sqlalchemy.ext.asyncio import async_sessionmaker

from config import Settings, settings
from application.ports.delivery_service import DeliveryPort
from application.ports.notification_service import NotificationPort
from application.ports.payment_provider import PaymentProvider
from application.ports.rate_limit_store import RateLimitStore
from application.use_cases.create_payment import CreatePaymentUseCase
from application.use_cases.reconcile_payment import ReconcilePaymentUseCase
from infrastructure.delivery.delivery_service import DeliveryService
from infrastructure.logging_config import setup_logging
from infrastructure.notification.email_sender import EmailSender
from infrastructure.payment.registry import build_providers
from infrastructure.persistence.database import async_session_factory, init_db
from infrastructure.rate_limit.limiter import RateLimiter
from infrastructure.rate_limit.memory_store import InMemoryRateLimitStore
from api.routers import health, payment, webhooks


def create_app(
    config: Settings = settings,
    session_factory: Optional[async_sessionmaker] = None,
    providers: Optional[Dict[str, PaymentProvider]] = None,
    delivery: Optional[DeliveryPort] = None,
    notifier: Optional[NotificationPort] = None,
    rate_limit_store: Optional[RateLimitStore] = None,
    init_database: bool = True,
) -> FastAPI:
    """앱 생성 및 협력 객체 연결"""
    session_factory = session_factory or async_session_factory

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """애플리케이션 수명 주기 관리"""
        logger.info("서비스 시작...")
        if init_database:
            await init_db(session_factory.kw["bind"])
            logger.info("데이터베이스 초기화 완료")

        yield

        logger.info("서비스 종료...")

    app = FastAPI(
        title=config.APP_NAME,
        version=config.APP_VERSION,
        description="결제사 웹훅 수신, 결제/주문 상태 반영, 자동 배송",
        lifespan=lifespan,
    )

    # CORS 설정
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    providers = providers if providers is not None else build_providers(config)
    app.state.session_factory = session_factory
    app.state.providers = providers
    app.state.reconciler = ReconcilePaymentUseCase(
        session_factory,
        delivery=delivery or DeliveryService(session_factory),
        notifier=notifier or EmailSender(config),
        commit_timeout=config.WEBHOOK_COMMIT_TIMEOUT,
    )
    app.state.payment_creator = CreatePaymentUseCase(session_factory, providers, config.APP_BASE_URL)
    app.state.webhook_limiter = RateLimiter(
        rate_limit_store or InMemoryRateLimitStore(),
        name="webhook",
        window_seconds=config.WEBHOOK_RATE_LIMIT_WINDOW,
        max_requests=config.WEBHOOK_RATE_LIMIT_MAX,
        suspicious_multiplier=config.RATE_LIMIT_SUSPICIOUS_MULTIPLIER,
        suspicious_ttl=config.RATE_LIMIT_SUSPICIOUS_TTL,
    )

    app.include_router(health.router)
    app.include_router(webhooks.router)
    app.include_router(payment.router)
    return app


setup_logging(settings)
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
