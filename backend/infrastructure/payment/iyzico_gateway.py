"""
Iyzico 결제 어댑터 (Checkout Form)

Iyzico는 콜백으로 token만 보내므로, 결과 조회 API를 비동기 요청/응답으로 호출해
받은 응답을 웹훅 페이로드처럼 취급한다. 응답의 signature 필드로 진위를 확인한다.
"""
import base64
import hashlib
import hmac
import json
import secrets
import time
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

import httpx
from loguru import logger

from config import Settings, settings as default_settings
from domain.enums import PaymentMethod, WebhookOutcome
from domain.entities.payment_event import NormalizedEvent, map_status, parse_amount
from domain.exceptions import MalformedPayloadError, ProviderConfigurationError, ProviderUnavailableError
from application.ports.payment_provider import (
    PaymentProvider, PaymentSession, PaymentSessionRequest, parse_json_object,
)
from infrastructure.payment.http_client import post_json

INITIALIZE_PATH = "/payment/iyzipos/checkoutform/initialize/auth/ecom"
RETRIEVE_PATH = "/payment/iyzipos/checkoutform/auth/ecom/detail"

# INIT_THREEDS, CALLBACK_THREEDS 등 진행 중 상태는 DEFER
IYZICO_STATUS_MAP = {
    "success": WebhookOutcome.COMPLETED,
    "failure": WebhookOutcome.FAILED,
}

SIGNATURE_FIELDS = (
    "paymentStatus", "paymentId", "currency", "basketId",
    "conversationId", "paidPrice", "price", "token",
)


def format_price(value: Any) -> str:
    """Iyzico 가격 표기: 뒤쪽 0 제거, 소수점 한 자리는 유지"""
    price = str(value)
    if "." not in price:
        return price + ".0"
    price = price.rstrip("0")
    if price.endswith("."):
        price += "0"
    return price


def iyzico_response_signature(payload: Dict[str, Any], secret_key: str) -> str:
    parts = []
    for field in SIGNATURE_FIELDS:
        value = payload.get(field, "")
        if field in ("paidPrice", "price") and value not in ("", None):
            value = format_price(value)
        parts.append("" if value is None else str(value))
    return hmac.new(
        secret_key.encode("utf-8"), ":".join(parts).encode("utf-8"), hashlib.sha256
    ).hexdigest()


class IyzicoGateway(PaymentProvider):
    name = PaymentMethod.IYZICO.value

    def __init__(self, config: Settings = default_settings,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = config.IYZICO_API_KEY
        self.secret_key = config.IYZICO_SECRET_KEY
        self.api_url = config.IYZICO_BASE_URL.rstrip("/")
        self.timeout = config.PROVIDER_TIMEOUT
        self._transport = transport

    @property
    def webhook_secret(self) -> str:
        return self.secret_key

    def _get_headers(self, uri_path: str, body: str) -> Dict[str, str]:
        """IYZWSv2 인증 헤더"""
        random_key = f"{int(time.time() * 1000)}{secrets.token_hex(4)}"
        signature = hmac.new(
            self.secret_key.encode("utf-8"),
            (random_key + uri_path + body).encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()
        auth = f"apiKey:{self.api_key}&randomKey:{random_key}&signature:{signature}"
        return {
            "Authorization": "IYZWSv2 " + base64.b64encode(auth.encode("utf-8")).decode(),
            "x-iyzi-rnd": random_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _call(self, uri_path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        body = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
        return await post_json(
            f"{self.api_url}{uri_path}", "Iyzico",
            content=body, headers=self._get_headers(uri_path, body),
            timeout=self.timeout, transport=self._transport,
        )

    async def create_payment(self, request: PaymentSessionRequest) -> PaymentSession:
        """체크아웃 폼(호스팅 결제 페이지) 생성"""
        if not self.api_key or not self.secret_key:
            return PaymentSession(success=False, error="Payment configuration error")

        amount = format_price(request.amount)
        items = request.items
        if not items or sum((Decimal(str(i.price)) for i in items), Decimal("0")) != Decimal(str(request.amount)):
            basket = [{
                "id": request.order_number or request.correlation_id,
                "name": request.description,
                "category1": "Subscription",
                "itemType": "VIRTUAL",
                "price": amount,
            }]
        else:
            basket = [
                {"id": i.id, "name": i.name, "category1": i.category,
                 "itemType": "VIRTUAL", "price": format_price(i.price)}
                for i in items
            ]

        names = (request.customer_name or "Customer").split(" ")
        address = {
            "contactName": request.customer_name or "Customer",
            "city": "Istanbul",
            "country": "Turkey",
            "address": "Default Address",
            "zipCode": "34000",
        }
        payload = {
            "locale": "tr",
            "conversationId": request.correlation_id,
            "price": amount,
            "paidPrice": amount,
            "currency": request.currency,
            "basketId": request.order_number or request.correlation_id,
            "paymentGroup": "PRODUCT",
            "callbackUrl": request.callback_url,
            "enabledInstallments": [1],
            "buyer": {
                "id": request.customer_id or "guest",
                "name": names[0] or "Customer",
                "surname": " ".join(names[1:]) or "Customer",
                "gsmNumber": "+905555555555",
                "email": request.customer_email or "customer@example.com",
                "identityNumber": "11111111111",
                "registrationAddress": "Default Address",
                "ip": request.client_ip,
                "city": "Istanbul",
                "country": "Turkey",
                "zipCode": "34000",
            },
            "shippingAddress": address,
            "billingAddress": address,
            "basketItems": basket,
        }

        try:
            result = await self._call(INITIALIZE_PATH, payload)
        except ProviderUnavailableError as e:
            return PaymentSession(success=False, error=str(e))

        if result.get("status") == "success":
            return PaymentSession(
                success=True,
                payment_url=result.get("paymentPageUrl"),
                extra={
                    "token": result.get("token"),
                    "checkoutFormContent": result.get("checkoutFormContent"),
                },
            )
        error = result.get("errorMessage") or "Checkout form creation failed"
        logger.warning(f"Iyzico 체크아웃 생성 거절: {result.get('errorCode')} {error}")
        return PaymentSession(success=False, error=error)

    async def retrieve_checkout_form(self, token: str) -> Dict[str, Any]:
        """콜백 token으로 결제 결과 조회"""
        if not self.api_key or not self.secret_key:
            raise ProviderConfigurationError(self.name)
        result = await self._call(RETRIEVE_PATH, {"locale": "tr", "token": token})
        result.setdefault("token", token)
        return result

    async def load_payload(self, body: bytes, form: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        token = (form or {}).get("token")
        if not token:
            token = parse_json_object(body).get("token")
        if not token or not isinstance(token, str):
            raise MalformedPayloadError("Missing payment token")
        return await self.retrieve_checkout_form(token)

    def verify_webhook(self, payload: Dict[str, Any], secret: str) -> bool:
        try:
            received = payload.get("signature")
            if not secret or payload.get("status") != "success":
                return False
            if not isinstance(received, str) or not received:
                return False
            return hmac.compare_digest(received.lower(), iyzico_response_signature(payload, secret))
        except Exception as e:
            logger.warning(f"Iyzico 서명 검증 중 오류: {e}")
            return False

    def normalize(self, payload: Dict[str, Any]) -> NormalizedEvent:
        conversation_id = str(payload.get("conversationId") or "")
        payment_id = str(payload.get("paymentId") or "")
        status = payload.get("paymentStatus")
        if not conversation_id and not payment_id:
            raise MalformedPayloadError("Missing required fields")
        return NormalizedEvent(
            provider=self.name,
            correlation_id=conversation_id,
            provider_payment_id=payment_id,
            raw_status=str(status or ""),
            outcome=map_status(status, IYZICO_STATUS_MAP),
            amount=parse_amount(payload.get("paidPrice")),
            currency=payload.get("currency"),
        )
