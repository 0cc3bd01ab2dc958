from uuid import UUID

from fastapi import APIRouter, Depends

from promptshop.api.deps import get_referral_service, require_permission
from promptshop.api.schemas import (
    DecisionRequest,
    LedgerResponse,
    WithdrawalDecisionResponse,
    WithdrawalResponse,
)
from promptshop.components.referrals import ReferralService
from promptshop.domain.entities import User, WithdrawalStatus

router = APIRouter()


@router.get("", response_model=list[WithdrawalResponse])
def list_withdrawals(
    status: WithdrawalStatus | None = None,
    _user: User = Depends(require_permission("withdrawals:read")),
    service: ReferralService = Depends(get_referral_service),
) -> list[WithdrawalResponse]:
    return [WithdrawalResponse.model_validate(w) for w in service.list_withdrawals(status)]


@router.post("/{withdrawal_id}/approve", response_model=WithdrawalDecisionResponse)
def approve_withdrawal(
    withdrawal_id: UUID,
    body: DecisionRequest | None = None,
    admin: User = Depends(require_permission("withdrawals:approve")),
    service: ReferralService = Depends(get_referral_service),
) -> WithdrawalDecisionResponse:
    outcome = service.approve_withdrawal(withdrawal_id, admin.id, body.notes if body else None)
    return WithdrawalDecisionResponse.model_validate(outcome)


@router.post("/{withdrawal_id}/reject", response_model=WithdrawalDecisionResponse)
def reject_withdrawal(
    withdrawal_id: UUID,
    body: DecisionRequest | None = None,
    admin: User = Depends(require_permission("withdrawals:approve")),
    service: ReferralService = Depends(get_referral_service),
) -> WithdrawalDecisionResponse:
    outcome = service.reject_withdrawal(withdrawal_id, admin.id, body.notes if body else None)
    return WithdrawalDecisionResponse.model_validate(outcome)


@router.get("/ledger/{profile_id}", response_model=LedgerResponse)
def ledger(
    profile_id: UUID,
    _user: User = Depends(require_permission("withdrawals:read")),
    service: ReferralService = Depends(get_referral_service),
) -> LedgerResponse:
    report = service.ledger_report(profile_id)
    return LedgerResponse(
        profile_id=report.profile_id,
        balance=report.balance,
        total_earned=report.total_earned,
        total_withdrawn=report.total_withdrawn,
        expected_balance=report.expected_balance,
        is_consistent=report.is_consistent,
    )
