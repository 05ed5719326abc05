"""웹훅 응답 스키마"""
from typing import Optional
from pydantic import BaseModel


class WebhookReceived(BaseModel):
    """반영하지 않은 상태(DEFER) 수신 확인"""
    received: bool = True


class WebhookAck(BaseModel):
    success: bool = True
    payment_id: Optional[str] = None
    order_id: Optional[str] = None
    status: Optional[str] = None


class ErrorResponse(BaseModel):
    error: str
