"""결제 관련 스키마"""
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field
from api.schemas.common import ResponseBase


class CreatePaymentRequest(BaseModel):
    order_id: str = Field(..., min_length=1, description="주문 ID 또는 주문 번호")
    return_url: Optional[str] = None
    callback_url: Optional[str] = None


class CreatePaymentResponse(ResponseBase):
    payment_id: str
    order_id: str
    payment_url: Optional[str] = None
    provider_payment_id: Optional[str] = None
    extra: Dict[str, Any] = {}
