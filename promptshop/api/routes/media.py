from fastapi import APIRouter, Depends

from promptshop.api.deps import get_access_service, get_current_user
from promptshop.api.schemas import SignedUrlRequest, SignedUrlResponse
from promptshop.components.access import AccessService
from promptshop.domain.entities import User

router = APIRouter()


@router.post("/signed-url", response_model=SignedUrlResponse)
def create_signed_url(
    body: SignedUrlRequest,
    user: User = Depends(get_current_user),
    access: AccessService = Depends(get_access_service),
) -> SignedUrlResponse:
    """Time-limited URL for a private object, issued only to entitled callers."""
    signed = access.authorize_media(user, body.bucket, body.path)
    return SignedUrlResponse(url=signed.url, expires_at=signed.expires_at)
