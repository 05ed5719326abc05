"""결제 세션 생성 라우터"""
from fastapi import APIRouter, Depends, HTTPException, Request, status

from domain.exceptions import OrderNotPayableError, UnknownProviderError
from api.schemas.payment import CreatePaymentRequest, CreatePaymentResponse
from api.dependencies import get_client_ip, get_payment_creator
from application.use_cases.create_payment import CreatePaymentInput, CreatePaymentUseCase

router = APIRouter(tags=["결제"])


@router.post("/api/payment/{provider}/create", response_model=CreatePaymentResponse)
async def create_payment(provider: str,
                         body: CreatePaymentRequest,
                         request: Request,
                         creator: CreatePaymentUseCase = Depends(get_payment_creator)):
    try:
        output = await creator.execute(CreatePaymentInput(
            order_id=body.order_id,
            provider=provider,
            return_url=body.return_url,
            callback_url=body.callback_url,
            client_ip=get_client_ip(request),
        ))
    except UnknownProviderError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="지원하지 않는 결제사입니다.")
    except OrderNotPayableError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="결제할 수 없는 주문입니다.")

    if not output.success:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY,
                            detail=output.error or "결제 생성에 실패했습니다.")

    return CreatePaymentResponse(
        success=True,
        payment_id=output.payment_id,
        order_id=output.order_id,
        payment_url=output.payment_url,
        provider_payment_id=output.provider_payment_id,
        extra=output.extra,
    )
