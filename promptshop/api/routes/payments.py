from fastapi import APIRouter, Depends, status

from promptshop.api.deps import get_current_user, get_payment_service
from promptshop.api.schemas import (
    PaymentCreateRequest,
    PaymentListResponse,
    PaymentResponse,
)
from promptshop.components.payments import PaymentService, PaymentTarget
from promptshop.domain.entities import User

router = APIRouter()


@router.post("", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
def submit_payment(
    body: PaymentCreateRequest,
    user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
) -> PaymentResponse:
    """Submit a receipt. The amount is taken from the catalog, never the client."""
    if body.plan_id:
        target = PaymentTarget("plan", body.plan_id)
    elif body.course_id:
        target = PaymentTarget("course", body.course_id)
    else:
        assert body.prompt_id is not None
        target = PaymentTarget("prompt", body.prompt_id)

    payment = service.submit_payment(
        user.id,
        target,
        receipt_url=body.receipt_url,
        payment_method=body.payment_method,
    )
    return PaymentResponse.model_validate(payment)


@router.get("", response_model=PaymentListResponse)
def list_my_payments(
    limit: int = 50,
    offset: int = 0,
    user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
) -> PaymentListResponse:
    page = service.list_payments(user_id=user.id, limit=limit, offset=offset)
    return PaymentListResponse(
        items=[PaymentResponse.model_validate(p) for p in page.items],
        total=page.total,
        limit=page.limit,
        offset=page.offset,
    )
