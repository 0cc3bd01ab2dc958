import os
from collections.abc import Callable
from functools import lru_cache
from pathlib import Path
from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from promptshop.adapters.auth.crypto import JWTAuthAdapter
from promptshop.adapters.clock import SystemClock
from promptshop.adapters.dev_email import DevEmailAdapter
from promptshop.adapters.media_signer import SignedUrlAdapter
from promptshop.adapters.resend_email import ResendEmailAdapter
from promptshop.adapters.sqlite.repos import SQLiteStore, SQLiteUserRepo
from promptshop.components.access import AccessService
from promptshop.components.payments import PaymentService
from promptshop.components.referrals import ReferralService
from promptshop.components.subscription import SubscriptionService
from promptshop.core.ports.clock import ClockPort
from promptshop.core.ports.email import EmailPort
from promptshop.domain.entities import User
from promptshop.domain.policy import PolicyEngine
from promptshop.rules.loader import load_rules
from promptshop.rules.models import Rules


# --- Settings ---
class Settings:
    def __init__(self) -> None:
        self.base_dir = Path(os.getcwd())
        self.data_dir = Path(os.environ.get("PROMPTSHOP_DATA_DIR", "./data"))
        self.db_path = str(self.data_dir / "promptshop.db")
        self.rules_path = Path(
            os.environ.get("PROMPTSHOP_RULES_PATH", str(self.base_dir / "rules.yaml"))
        )
        self.migrations_dir = self.base_dir / "migrations"
        self.secret_key = os.environ.get("PROMPTSHOP_SECRET_KEY", "dev-secret-unsafe")
        self.resend_api_key = os.environ.get("RESEND_API_KEY", "")


@lru_cache
def get_settings() -> Settings:
    return Settings()


# --- Rules ---
@lru_cache
def get_rules(settings: Settings = Depends(get_settings)) -> Rules:
    return load_rules(settings.rules_path)


# --- Store ---
def get_store(settings: Settings = Depends(get_settings)) -> SQLiteStore:
    return SQLiteStore(settings.db_path)


def get_user_repo(settings: Settings = Depends(get_settings)) -> SQLiteUserRepo:
    return SQLiteUserRepo(settings.db_path)


# --- Adapters ---
_clock_instance: SystemClock | None = None


def get_clock() -> ClockPort:
    """Get clock singleton."""
    global _clock_instance
    if _clock_instance is None:
        _clock_instance = SystemClock()
    return _clock_instance


_email_instance: EmailPort | None = None


def get_email_adapter(
    settings: Settings = Depends(get_settings),
    rules: Rules = Depends(get_rules),
) -> EmailPort:
    """Resend when RESEND_API_KEY is set, otherwise the logging dev adapter."""
    global _email_instance
    if _email_instance is None:
        if settings.resend_api_key:
            _email_instance = ResendEmailAdapter(
                api_key=settings.resend_api_key,
                default_sender=rules.reminders.sender,
            )
        else:
            _email_instance = DevEmailAdapter()
    return _email_instance


def get_media_signer(
    settings: Settings = Depends(get_settings),
    rules: Rules = Depends(get_rules),
    clock: ClockPort = Depends(get_clock),
) -> SignedUrlAdapter:
    return SignedUrlAdapter(settings.secret_key, rules.media.base_url, clock=clock)


def get_auth_adapter(settings: Settings = Depends(get_settings)) -> JWTAuthAdapter:
    return JWTAuthAdapter(settings.secret_key)


def get_policy(rules: Rules = Depends(get_rules)) -> PolicyEngine:
    return PolicyEngine(rules)


# --- Component Services ---
def get_access_service(
    store: SQLiteStore = Depends(get_store),
    rules: Rules = Depends(get_rules),
    signer: SignedUrlAdapter = Depends(get_media_signer),
    clock: ClockPort = Depends(get_clock),
) -> AccessService:
    return AccessService(store, rules, signer=signer, clock=clock)


def get_payment_service(
    store: SQLiteStore = Depends(get_store),
    email: EmailPort = Depends(get_email_adapter),
    rules: Rules = Depends(get_rules),
    clock: ClockPort = Depends(get_clock),
) -> PaymentService:
    return PaymentService(store, email, rules, clock=clock)


def get_referral_service(
    store: SQLiteStore = Depends(get_store),
    rules: Rules = Depends(get_rules),
    clock: ClockPort = Depends(get_clock),
) -> ReferralService:
    return ReferralService(store, rules, clock=clock)


def get_subscription_service(
    store: SQLiteStore = Depends(get_store),
    email: EmailPort = Depends(get_email_adapter),
    rules: Rules = Depends(get_rules),
    clock: ClockPort = Depends(get_clock),
) -> SubscriptionService:
    return SubscriptionService(store, email, rules, clock=clock)


# --- Auth ---
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def _token_from_request(request: Request, token: str | None) -> str | None:
    # Cookie (HttpOnly) wins over the Authorization header
    cookie_token = request.cookies.get("access_token")
    if cookie_token and cookie_token.startswith("Bearer "):
        return cookie_token.split(" ")[1]
    return token


async def get_current_user(
    request: Request,
    token: Annotated[str | None, Depends(oauth2_scheme)],
    user_repo: SQLiteUserRepo = Depends(get_user_repo),
    auth_adapter: JWTAuthAdapter = Depends(get_auth_adapter),
) -> User:
    token = _token_from_request(request, token)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = auth_adapter.validate_token(token)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user = user_repo.get_by_id(UUID(user_id))
    except ValueError:
        user = None
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    if user.status != "active":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Inactive user",
        )

    return user


async def get_optional_user(
    request: Request,
    token: Annotated[str | None, Depends(oauth2_scheme)],
    user_repo: SQLiteUserRepo = Depends(get_user_repo),
    auth_adapter: JWTAuthAdapter = Depends(get_auth_adapter),
) -> User | None:
    """Like get_current_user, but anonymous callers get None instead of 401."""
    if not _token_from_request(request, token):
        return None
    try:
        return await get_current_user(request, token, user_repo, auth_adapter)
    except HTTPException:
        return None


def require_permission(action: str) -> Callable[..., User]:
    """Dependency factory: the current user must hold `action` under rules.rbac."""

    def _check(
        user: User = Depends(get_current_user),
        policy: PolicyEngine = Depends(get_policy),
    ) -> User:
        if not policy.check_permission(user, action):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Forbidden",
            )
        return user

    return _check
