from dataclasses import dataclass

from promptshop.domain.entities import Profile, User


@dataclass
class RegisterInput:
    email: str
    password: str
    full_name: str | None = None
    referral_code: str | None = None


@dataclass
class LoginInput:
    email: str
    password: str


@dataclass
class GrantRoleInput:
    email: str
    role: str


@dataclass
class AuthOutput:
    user: User | None = None
    profile: Profile | None = None
    token_raw: str | None = None
    success: bool = False
    error: str | None = None
