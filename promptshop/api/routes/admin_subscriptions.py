from fastapi import APIRouter, Depends

from promptshop.api.deps import get_subscription_service, require_permission
from promptshop.api.schemas import ExpirySweepResponse, ReminderRunResponse
from promptshop.components.subscription import SubscriptionService
from promptshop.domain.entities import User

router = APIRouter()


@router.post("/expire", response_model=ExpirySweepResponse)
def expire_subscriptions(
    _user: User = Depends(require_permission("subscriptions:run")),
    service: SubscriptionService = Depends(get_subscription_service),
) -> ExpirySweepResponse:
    result = service.expire_lapsed()
    return ExpirySweepResponse(downgraded=result.downgraded, agency_revoked=result.agency_revoked)


@router.post("/reminders", response_model=ReminderRunResponse)
def send_reminders(
    _user: User = Depends(require_permission("subscriptions:run")),
    service: SubscriptionService = Depends(get_subscription_service),
) -> ReminderRunResponse:
    result = service.send_reminders()
    return ReminderRunResponse(sent=result.sent, skipped=result.skipped, failed=result.failed)
