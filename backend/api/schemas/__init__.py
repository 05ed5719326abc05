"""
API 스키마 re-export

사용법:
  from api.schemas import WebhookAck, CreatePaymentRequest
"""
from api.schemas.common import ResponseBase
from api.schemas.payment import CreatePaymentRequest, CreatePaymentResponse
from api.schemas.webhook import WebhookReceived, WebhookAck, ErrorResponse
