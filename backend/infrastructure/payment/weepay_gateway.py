"""Weepay 결제 어댑터"""
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

WEEPAY_STATUS_MAP = {
    "success": WebhookOutcome.COMPLETED,
    "completed": WebhookOutcome.COMPLETED,
    "paid": WebhookOutcome.COMPLETED,
    "failed": WebhookOutcome.FAILED,
    "error": WebhookOutcome.FAILED,
    "declined": WebhookOutcome.FAILED,
    "cancelled": WebhookOutcome.CANCELLED,
    "canceled": WebhookOutcome.CANCELLED,
    "refunded": WebhookOutcome.CANCELLED,
}


def _stringify(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def weepay_sign(data: Dict[str, Any], secret_key: str) -> str:
    """키 정렬 후 key=value&...&secret=... 의 md5"""
    fields = {k: v for k, v in data.items() if k != "signature"}
    signature_string = "&".join(
        f"{key}={_stringify(fields[key])}" for key in sorted(fields)
    ) + f"&secret={secret_key}"
    return hashlib.md5(signature_string.encode("utf-8")).hexdigest()


class WeepayGateway(PaymentProvider):
    name = PaymentMethod.WEEPAY.value

    def __init__(self, config: Settings = default_settings,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.merchant_id = config.WEEPAY_MERCHANT_ID
        self.api_key = config.WEEPAY_API_KEY
        self.secret_key = config.WEEPAY_SECRET_KEY
        self.api_url = config.weepay_url.rstrip("/")
        self.timeout = config.PROVIDER_TIMEOUT
        self._transport = transport

    @property
    def webhook_secret(self) -> str:
        return self.secret_key

    def _auth(self) -> Dict[str, str]:
        return {"bayiId": self.merchant_id, "apiKey": self.api_key, "secretKey": self.secret_key}

    async def create_payment(self, request: PaymentSessionRequest) -> PaymentSession:
        """결제 세션 생성"""
        if not self.merchant_id or not self.api_key or not self.secret_key:
            return PaymentSession(success=False, error="Weepay payment processing is not configured")

        full_name = (request.customer_name or "Customer").split(" ")
        contact_name = request.customer_name or "Customer"
        address = {
            "contactName": contact_name,
            "address": "Default Address",
            "city": "Istanbul",
            "country": "Turkey",
            "zipCode": 34000,
        }
        payload = {
            "Auth": self._auth(),
            "Data": {
                "orderId": request.correlation_id,
                "currency": request.currency,
                "locale": "tr",
                "paidPrice": str(request.amount),
                "ipAddress": request.client_ip,
                "description": request.description,
                "callBackUrl": request.return_url,
                "notifyUrl": request.callback_url,
            },
            "Customer": {
                "customerId": request.customer_id or "1",
                "customerName": full_name[0] or "Customer",
                "customerSurname": " ".join(full_name[1:]) or "Customer",
                "gsmNumber": "5555555555",
                "email": request.customer_email or "customer@example.com",
                "identityNumber": "11111111111",
                "city": "Istanbul",
                "country": "Turkey",
            },
            "BillingAddress": address,
            "ShippingAddress": address,
            "Products": [
                {
                    "productId": item.id,
                    "name": item.name,
                    "productPrice": str(item.price),
                    "itemType": "VIRTUAL",
                }
                for item in request.items
            ] or [{
                "productId": request.order_number or request.correlation_id,
                "name": request.description,
                "productPrice": str(request.amount),
                "itemType": "VIRTUAL",
            }],
        }

        try:
            result = await post_json(
                f"{self.api_url}/Payment/PaymentCreate", "Weepay",
                content=json.dumps(payload, ensure_ascii=False),
                headers={"Content-Type": "application/json", "Accept": "application/json"},
                timeout=self.timeout, transport=self._transport,
            )
        except ProviderUnavailableError as e:
            return PaymentSession(success=False, error=str(e))

        if result.get("status") == "success" and result.get("paymentPageUrl"):
            return PaymentSession(
                success=True,
                payment_id=result.get("paymentId"),
                payment_url=result.get("paymentPageUrl"),
            )
        error = result.get("message") or result.get("error") or "Payment creation failed"
        logger.warning(f"Weepay 결제 생성 거절: {error}")
        return PaymentSession(success=False, error=error)

    def verify_webhook(self, payload: Dict[str, Any], secret: str) -> bool:
        try:
            received = payload.get("signature")
            if not secret or not isinstance(received, str) or not received:
                return False
            return hmac.compare_digest(received.lower(), weepay_sign(payload, secret))
        except Exception as e:
            logger.warning(f"Weepay 서명 검증 중 오류: {e}")
            return False

    def normalize(self, payload: Dict[str, Any]) -> NormalizedEvent:
        order_id = str(payload.get("order_id") or "")
        payment_id = str(payload.get("payment_id") or "")
        status = payload.get("status")
        if not order_id or not payment_id or not status:
            raise MalformedPayloadError("Missing required fields")
        return NormalizedEvent(
            provider=self.name,
            correlation_id=order_id,
            provider_payment_id=payment_id,
            raw_status=str(status),
            outcome=map_status(status, WEEPAY_STATUS_MAP),
            amount=parse_amount(payload.get("amount")),
            currency=payload.get("currency"),
        )
