"""결제사 웹훅 라우터"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from domain.entities.payment_event import ReconcileResult
from domain.enums import PaymentMethod
from domain.exceptions import (
    ConcurrentUpdateError, DomainError, InvalidSignatureError, MalformedPayloadError,
    PaymentNotFoundError, ProviderConfigurationError, ProviderUnavailableError,
    ReconciliationTimeoutError, UnknownProviderError,
)
from api.dependencies import (
    get_client_ip, get_providers, get_reconciler, get_session_factory,
    get_webhook_identifier, get_webhook_limiter,
)
from api.schemas.webhook import ErrorResponse, WebhookAck, WebhookReceived
from infrastructure.logging_config import redact
from infrastructure.payment.registry import get_provider
from infrastructure.persistence.models.webhook_log import WebhookLog

router = APIRouter(tags=["웹훅"])

# (예외, 상태 코드, 응답 메시지): 먼저 일치한 항목 사용
ERROR_RESPONSES = (
    (MalformedPayloadError, status.HTTP_400_BAD_REQUEST, "Invalid webhook payload"),
    (InvalidSignatureError, status.HTTP_401_UNAUTHORIZED, "Invalid signature"),
    (PaymentNotFoundError, status.HTTP_404_NOT_FOUND, "Payment not found"),
    (UnknownProviderError, status.HTTP_404_NOT_FOUND, "Unknown payment provider"),
    (ReconciliationTimeoutError, status.HTTP_503_SERVICE_UNAVAILABLE, "Payment processing timed out, please retry"),
    (ConcurrentUpdateError, status.HTTP_503_SERVICE_UNAVAILABLE, "Payment is being processed, please retry"),
    (ProviderUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE, "Payment provider unavailable"),
    (ProviderConfigurationError, status.HTTP_500_INTERNAL_SERVER_ERROR, "Payment provider not configured"),
)


def error_response(status_code: int, message: str, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message).model_dump(),
        headers=headers,
    )


def _map_error(exc: DomainError):
    for exc_type, status_code, message in ERROR_RESPONSES:
        if isinstance(exc, exc_type):
            return status_code, message
    return status.HTTP_500_INTERNAL_SERVER_ERROR, "Webhook processing failed"


async def _record_webhook(
    request: Request,
    provider: str,
    status_code: int,
    payload: Optional[Dict[str, Any]] = None,
    result: Optional[ReconcileResult] = None,
    error: Optional[Exception] = None,
) -> None:
    """수신 웹훅 기록. 실패해도 응답은 바뀌지 않는다."""
    correlation_id = provider_payment_id = raw_status = outcome = None
    if result is not None:
        correlation_id = result.correlation_id
        provider_payment_id = result.provider_payment_id
        raw_status = result.raw_status
        outcome = result.outcome
    elif isinstance(error, PaymentNotFoundError):
        correlation_id = error.correlation_id
        provider_payment_id = error.provider_payment_id

    try:
        async with get_session_factory(request)() as session:
            session.add(WebhookLog(
                provider=provider,
                correlation_id=correlation_id or None,
                provider_payment_id=provider_payment_id or None,
                raw_status=raw_status,
                outcome=outcome,
                status_code=status_code,
                error_message=str(error) if error else None,
                payload=redact(payload) if payload is not None else None,
            ))
            await session.commit()
    except SQLAlchemyError as e:
        logger.error(f"웹훅 로그 저장 실패: {provider} - {e}")


async def handle_webhook(request: Request, provider_name: str) -> JSONResponse:
    """레이트 리밋 → 본문 로드 → 반영 → 응답 매핑"""
    client_ip = get_client_ip(request)
    limit = await get_webhook_limiter(request).check(get_webhook_identifier(request), client_ip)
    if not limit.success:
        logger.warning(f"웹훅 레이트 리밋: {provider_name} {client_ip}")
        return error_response(status.HTTP_429_TOO_MANY_REQUESTS, "Too many requests",
                              headers={"X-RateLimit-Limit": str(limit.limit),
                                       "X-RateLimit-Remaining": "0"})

    payload: Optional[Dict[str, Any]] = None
    try:
        provider = get_provider(get_providers(request), provider_name)
        body = await request.body()
        form = None
        if request.headers.get("content-type", "").startswith(
            ("application/x-www-form-urlencoded", "multipart/form-data")
        ):
            form = await request.form()
        payload = await provider.load_payload(body, form)
        result = await get_reconciler(request).reconcile(provider, payload, provider.webhook_secret)
    except DomainError as e:
        status_code, message = _map_error(e)
        if status_code >= 500:
            logger.error(f"웹훅 처리 실패 ({status_code}): {provider_name} - {e}")
        else:
            logger.info(f"웹훅 거절 ({status_code}): {provider_name} - {e}")
        await _record_webhook(request, provider_name, status_code, payload, error=e)
        return error_response(status_code, message)
    except Exception as e:
        logger.exception(f"웹훅 처리 중 예기치 않은 오류: {provider_name} - {e}")
        await _record_webhook(request, provider_name, status.HTTP_500_INTERNAL_SERVER_ERROR, payload, error=e)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Webhook processing failed")

    await _record_webhook(request, provider_name, status.HTTP_200_OK, payload, result=result)
    if result.deferred:
        return JSONResponse(content=WebhookReceived().model_dump())
    return JSONResponse(content=WebhookAck(
        success=result.success,
        payment_id=result.payment_id,
        order_id=result.order_id,
        status=result.status,
    ).model_dump())


@router.post("/api/webhooks/cryptomus")
async def cryptomus_webhook(request: Request):
    return await handle_webhook(request, PaymentMethod.CRYPTOMUS.value)


@router.post("/api/webhooks/weepay")
async def weepay_webhook(request: Request):
    return await handle_webhook(request, PaymentMethod.WEEPAY.value)


@router.post("/api/payment/iyzico/callback")
async def iyzico_callback(request: Request):
    """Iyzico는 token만 보내므로 어댑터가 결과를 조회해 온다"""
    return await handle_webhook(request, PaymentMethod.IYZICO.value)
