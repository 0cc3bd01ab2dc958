from fastapi import APIRouter, Depends, status

from promptshop.api.deps import get_current_user, get_referral_service
from promptshop.api.schemas import (
    ReferralSummaryResponse,
    ReferralTransactionResponse,
    WithdrawalCreateRequest,
    WithdrawalResponse,
)
from promptshop.components.referrals import ReferralService
from promptshop.domain.entities import User

router = APIRouter()


@router.get("/summary", response_model=ReferralSummaryResponse)
def referral_summary(
    user: User = Depends(get_current_user),
    service: ReferralService = Depends(get_referral_service),
) -> ReferralSummaryResponse:
    summary = service.summary(user.id)
    return ReferralSummaryResponse(
        referral_code=summary.referral_code,
        balance=summary.balance,
        referred_count=summary.referred_count,
        transactions=[ReferralTransactionResponse.model_validate(t) for t in summary.transactions],
        withdrawals=[WithdrawalResponse.model_validate(w) for w in summary.withdrawals],
    )


@router.post(
    "/withdrawals",
    response_model=WithdrawalResponse,
    status_code=status.HTTP_201_CREATED,
)
def request_withdrawal(
    body: WithdrawalCreateRequest,
    user: User = Depends(get_current_user),
    service: ReferralService = Depends(get_referral_service),
) -> WithdrawalResponse:
    request = service.request_withdrawal(
        user.id,
        amount=body.amount,
        type=body.type,
        plan_id=body.plan_id,
        card_number=body.card_number,
        card_holder=body.card_holder,
    )
    return WithdrawalResponse.model_validate(request)
