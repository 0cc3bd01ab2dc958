from typing import Protocol

from promptshop.core.ports.clock import ClockPort
from promptshop.core.ports.db import StorePort, UserRepoPort


class AuthAdapterPort(Protocol):
    def verify_password(self, plain: str, hashed: str) -> bool: ...
    def hash_password(self, plain: str) -> str: ...
    def create_token(self, user_id: object, ttl_minutes: int) -> str: ...
    def validate_token(self, token: str) -> str | None: ...

__all__ = [
    "AuthAdapterPort",
    "ClockPort",
    "StorePort",
    "UserRepoPort",
]
