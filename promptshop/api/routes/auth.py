from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.security import OAuth2PasswordRequestForm

from promptshop.adapters.auth.crypto import JWTAuthAdapter
from promptshop.adapters.sqlite.repos import SQLiteStore, SQLiteUserRepo
from promptshop.api.deps import (
    get_auth_adapter,
    get_clock,
    get_current_user,
    get_rules,
    get_store,
    get_user_repo,
)
from promptshop.api.schemas import MeResponse, RegisterRequest, Token
from promptshop.components.accounts import (
    TOKEN_TTL_MINUTES,
    LoginInput,
    RegisterInput,
    run_login,
    run_register,
)
from promptshop.components.subscription import is_agency_access_active, is_subscription_active
from promptshop.core.ports.clock import ClockPort
from promptshop.domain.entities import User
from promptshop.rules.models import Rules

router = APIRouter()


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    body: RegisterRequest,
    store: SQLiteStore = Depends(get_store),
    auth_adapter: JWTAuthAdapter = Depends(get_auth_adapter),
    rules: Rules = Depends(get_rules),
    clock: ClockPort = Depends(get_clock),
) -> dict[str, str]:
    """Create an account. An unknown referral code is ignored."""
    out = run_register(
        RegisterInput(
            email=body.email,
            password=body.password,
            full_name=body.full_name,
            referral_code=body.referral_code,
        ),
        store,
        auth_adapter,
        rules,
        clock,
    )
    if not out.success or out.user is None or out.profile is None:
        raise HTTPException(status_code=400, detail=out.error or "Registration failed")
    return {
        "id": str(out.user.id),
        "email": out.user.email,
        "referral_code": out.profile.referral_code,
    }


@router.post("/login", response_model=Token)
def login_for_access_token(
    response: Response,
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    user_repo: SQLiteUserRepo = Depends(get_user_repo),
    auth_adapter: JWTAuthAdapter = Depends(get_auth_adapter),
) -> Token:
    """Authenticate user and return access token."""
    out = run_login(LoginInput(email=form_data.username, password=form_data.password), user_repo, auth_adapter)
    if not out.success or out.token_raw is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Set HttpOnly Cookie
    response.set_cookie(
        key="access_token",
        value=f"Bearer {out.token_raw}",
        httponly=True,
        max_age=TOKEN_TTL_MINUTES * 60,
        expires=TOKEN_TTL_MINUTES * 60,
        samesite="lax",
        secure=False,  # Set to True for HTTPS prod
    )
    return Token(access_token=out.token_raw, token_type="bearer")


@router.post("/logout")
def logout(response: Response) -> dict[str, str]:
    """Log out user by clearing cookie."""
    response.delete_cookie(key="access_token")
    return {"status": "success"}


@router.get("/me", response_model=MeResponse)
def read_users_me(
    current_user: User = Depends(get_current_user),
    store: SQLiteStore = Depends(get_store),
    clock: ClockPort = Depends(get_clock),
) -> MeResponse:
    """Current user with evaluated subscription status."""
    profile = store.repos.profiles.get_by_user_id(current_user.id)
    me = MeResponse(
        id=current_user.id,
        email=current_user.email,
        display_name=current_user.display_name,
        roles=list(current_user.roles),
    )
    if profile is None:
        return me

    now = clock.now_utc()
    me.subscription_type = profile.subscription_type
    me.subscription_expires_at = profile.subscription_expires_at
    me.subscription_active = is_subscription_active(
        profile.subscription_type, profile.subscription_expires_at, now
    )
    me.has_agency_access = is_agency_access_active(
        profile.has_agency_access, profile.agency_access_expires_at, now
    )
    me.referral_code = profile.referral_code
    return me
