import logging
import secrets
from collections.abc import Callable

from promptshop.domain.entities import Profile, RoleType, User
from promptshop.rules.models import Rules

from .models import AuthOutput, GrantRoleInput, LoginInput, RegisterInput
from .ports import AuthAdapterPort, ClockPort, StorePort, UserRepoPort

logger = logging.getLogger(__name__)

# No 0/O or 1/I, so codes survive being read aloud
REFERRAL_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
MIN_PASSWORD_LENGTH = 8
TOKEN_TTL_MINUTES = 24 * 60
VALID_ROLES: tuple[RoleType, ...] = ("admin", "moderator", "user")


def generate_referral_code(
    length: int,
    exists: Callable[[str], bool],
    max_attempts: int = 10,
) -> str:
    for _ in range(max_attempts):
        code = "".join(secrets.choice(REFERRAL_ALPHABET) for _ in range(length))
        if not exists(code):
            return code
    raise RuntimeError(f"Could not generate a unique referral code in {max_attempts} attempts")


def run_register(
    inp: RegisterInput,
    store: StorePort,
    auth_adapter: AuthAdapterPort,
    rules: Rules,
    time: ClockPort,
) -> AuthOutput:
    email = inp.email.strip().lower()
    if "@" not in email or email.startswith("@") or email.endswith("@"):
        return AuthOutput(success=False, error="Invalid email address")
    if len(inp.password) < MIN_PASSWORD_LENGTH:
        return AuthOutput(
            success=False,
            error=f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
        )

    now = time.now_utc()
    with store.transaction() as uow:
        if uow.users.get_by_email(email):
            return AuthOutput(success=False, error="Email already in use")

        referrer = None
        if inp.referral_code:
            referrer = uow.profiles.get_by_referral_code(inp.referral_code)
            if referrer is None:
                logger.warning("Unknown referral code %r at registration; ignored", inp.referral_code)

        user = User(
            email=email,
            display_name=inp.full_name or email.split("@")[0],
            password_hash=auth_adapter.hash_password(inp.password),
            roles=["user"],
            created_at=now,
            updated_at=now,
        )
        uow.users.save(user)

        profile = Profile(
            user_id=user.id,
            email=email,
            full_name=inp.full_name,
            referral_code=generate_referral_code(
                rules.referrals.code_length, uow.profiles.referral_code_exists
            ),
            referred_by=referrer.id if referrer else None,
            created_at=now,
            updated_at=now,
        )
        uow.profiles.create(profile)

    logger.info(
        "Registered user %s%s",
        user.id,
        f" referred by profile {referrer.id}" if referrer else "",
    )
    return AuthOutput(user=user, profile=profile, success=True)


def run_login(
    inp: LoginInput, user_repo: UserRepoPort, auth_adapter: AuthAdapterPort
) -> AuthOutput:
    user = user_repo.get_by_email(inp.email.strip().lower())
    if not user:
        return AuthOutput(success=False, error="Invalid credentials")

    if not auth_adapter.verify_password(inp.password, user.password_hash):
        return AuthOutput(success=False, error="Invalid credentials")

    if user.status != "active":
        return AuthOutput(success=False, error="User account is disabled")

    token = auth_adapter.create_token(user.id, TOKEN_TTL_MINUTES)
    return AuthOutput(user=user, token_raw=token, success=True)


def run_grant_role(inp: GrantRoleInput, user_repo: UserRepoPort) -> AuthOutput:
    if inp.role not in VALID_ROLES:
        return AuthOutput(success=False, error=f"Unknown role: {inp.role}")
    user = user_repo.get_by_email(inp.email.strip().lower())
    if not user:
        return AuthOutput(success=False, error="User not found")
    user_repo.add_role(user.id, inp.role)
    logger.info("Granted role %s to user %s", inp.role, user.id)
    return AuthOutput(user=user_repo.get_by_id(user.id), success=True)
