"""
Accounts component.

Registration (with referral attribution), login and role grants.
"""

from .component import (
    TOKEN_TTL_MINUTES,
    generate_referral_code,
    run_grant_role,
    run_login,
    run_register,
)
from .models import AuthOutput, GrantRoleInput, LoginInput, RegisterInput
from .ports import AuthAdapterPort

__all__ = [
    "TOKEN_TTL_MINUTES",
    "generate_referral_code",
    "run_grant_role",
    "run_login",
    "run_register",
    "AuthOutput",
    "GrantRoleInput",
    "LoginInput",
    "RegisterInput",
    "AuthAdapterPort",
]
