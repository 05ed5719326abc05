"""Cryptomus 결제 어댑터"""
import base64
import hashlib
import hmac
import json
from typing import Any, Dict, Optional

import httpx
from loguru import logger

from config import Settings, settings as default_settings
from domain.enums import PaymentMethod, WebhookOutcome
from domain.entities.payment_event import NormalizedEvent, map_status, parse_amount
from domain.exceptions import MalformedPayloadError, ProviderUnavailableError
from application.ports.payment_provider import (
    PaymentProvider, PaymentSession, PaymentSessionRequest,
)
from infrastructure.payment.http_client import post_json

# 나열되지 않은 상태(check, process, confirm_check, refund_process, ...)는 DEFER
CRYPTOMUS_STATUS_MAP = {
    "paid": WebhookOutcome.COMPLETED,
    "paid_over": WebhookOutcome.COMPLETED,
    "fail": WebhookOutcome.FAILED,
    "wrong_amount": WebhookOutcome.FAILED,
    "cancel": WebhookOutcome.FAILED,
    "system_fail": WebhookOutcome.FAILED,
    "refund_paid": WebhookOutcome.CANCELLED,
}


def _canonical_json(data: Dict[str, Any], escape_slashes: bool) -> str:
    body = json.dumps(data, ensure_ascii=False, separators=(",", ":"))
    if escape_slashes:
        # PHP json_encode 기본 동작과 맞춘다
        body = body.replace("/", "\\/")
    return body


def cryptomus_sign(data: Dict[str, Any], api_key: str, escape_slashes: bool = True) -> str:
    """md5(base64(json) + api_key)"""
    encoded = base64.b64encode(_canonical_json(data, escape_slashes).encode("utf-8"))
    return hashlib.md5(encoded + api_key.encode("utf-8")).hexdigest()


class CryptomusGateway(PaymentProvider):
    name = PaymentMethod.CRYPTOMUS.value

    def __init__(self, config: Settings = default_settings,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.merchant_id = config.CRYPTOMUS_MERCHANT_ID
        self.api_key = config.CRYPTOMUS_PAYMENT_API_KEY
        self.api_url = config.CRYPTOMUS_API_URL.rstrip("/")
        self.lifetime = config.CRYPTOMUS_PAYMENT_LIFETIME
        self.timeout = config.PROVIDER_TIMEOUT
        self._transport = transport

    @property
    def webhook_secret(self) -> str:
        return self.api_key

    def _get_headers(self, body: str) -> Dict[str, str]:
        encoded = base64.b64encode(body.encode("utf-8"))
        return {
            "Content-Type": "application/json",
            "merchant": self.merchant_id,
            "sign": hashlib.md5(encoded + self.api_key.encode("utf-8")).hexdigest(),
        }

    async def create_payment(self, request: PaymentSessionRequest) -> PaymentSession:
        """결제 생성"""
        if not self.merchant_id or not self.api_key:
            return PaymentSession(success=False, error="Payment processing is temporarily unavailable")

        payload = {
            "amount": str(request.amount),
            "currency": request.currency,
            "order_id": request.correlation_id,
            "url_return": request.return_url,
            "url_callback": request.callback_url,
            "is_payment_multiple": False,
            "lifetime": self.lifetime,
            "to_currency": request.currency,
        }
        body = json.dumps(payload, separators=(",", ":"))

        try:
            response = await post_json(
                f"{self.api_url}/v1/payment", "Cryptomus",
                content=body, headers=self._get_headers(body),
                timeout=self.timeout, transport=self._transport,
            )
        except ProviderUnavailableError as e:
            return PaymentSession(success=False, error=str(e))

        result = response.get("result") or {}
        if response.get("state") == 0 and result:
            return PaymentSession(
                success=True,
                payment_id=result.get("uuid"),
                payment_url=result.get("url"),
            )
        logger.warning(f"Cryptomus 결제 생성 거절: {response.get('message')}")
        return PaymentSession(success=False, error=response.get("message") or "Failed to create payment")

    def verify_webhook(self, payload: Dict[str, Any], secret: str) -> bool:
        """웹훅 서명 검증: 본문의 sign 필드를 제외한 나머지로 재계산"""
        try:
            received = payload.get("sign")
            if not secret or not isinstance(received, str) or not received:
                return False
            data = {k: v for k, v in payload.items() if k != "sign"}
            received = received.lower()
            return any(
                hmac.compare_digest(received, cryptomus_sign(data, secret, escape_slashes))
                for escape_slashes in (True, False)
            )
        except Exception as e:
            logger.warning(f"Cryptomus 서명 검증 중 오류: {e}")
            return False

    def normalize(self, payload: Dict[str, Any]) -> NormalizedEvent:
        order_id = str(payload.get("order_id") or "")
        uuid = str(payload.get("uuid") or "")
        status = payload.get("status")
        if not status or not (order_id or uuid):
            raise MalformedPayloadError("Missing required fields")
        return NormalizedEvent(
            provider=self.name,
            correlation_id=order_id,
            provider_payment_id=uuid,
            raw_status=str(status),
            outcome=map_status(status, CRYPTOMUS_STATUS_MAP),
            amount=parse_amount(payload.get("amount")),
            currency=payload.get("currency"),
        )
