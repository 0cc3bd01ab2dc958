from uuid import UUID

from fastapi import APIRouter, Depends

from promptshop.api.deps import get_payment_service, require_permission
from promptshop.api.schemas import (
    ApprovalResponse,
    DecisionRequest,
    PaymentListResponse,
    PaymentResponse,
)
from promptshop.components.payments import PaymentService
from promptshop.domain.entities import PaymentStatus, User

router = APIRouter()


@router.get("", response_model=PaymentListResponse)
def list_payments(
    status: PaymentStatus | None = None,
    limit: int = 50,
    offset: int = 0,
    _user: User = Depends(require_permission("payments:read")),
    service: PaymentService = Depends(get_payment_service),
) -> PaymentListResponse:
    page = service.list_payments(status=status, limit=limit, offset=offset)
    return PaymentListResponse(
        items=[PaymentResponse.model_validate(p) for p in page.items],
        total=page.total,
        limit=page.limit,
        offset=page.offset,
    )


@router.post("/{payment_id}/approve", response_model=ApprovalResponse)
def approve_payment(
    payment_id: UUID,
    body: DecisionRequest | None = None,
    admin: User = Depends(require_permission("payments:approve")),
    service: PaymentService = Depends(get_payment_service),
) -> ApprovalResponse:
    """Grant the entitlement and post commission. Repeats are no-ops."""
    result = service.approve_payment(payment_id, admin.id, body.notes if body else None)
    return ApprovalResponse.model_validate(result)


@router.post("/{payment_id}/reject", response_model=ApprovalResponse)
def reject_payment(
    payment_id: UUID,
    body: DecisionRequest | None = None,
    admin: User = Depends(require_permission("payments:approve")),
    service: PaymentService = Depends(get_payment_service),
) -> ApprovalResponse:
    result = service.reject_payment(payment_id, admin.id, body.notes if body else None)
    return ApprovalResponse.model_validate(result)
