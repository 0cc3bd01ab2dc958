"""
Password hashing and bearer tokens.

Passwords are argon2 hashes (passlib). Tokens are HS256 JWTs signed with the
application secret, carrying the user id in `sub`.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
TOKEN_AUDIENCE = "promptshop"

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


class JWTAuthAdapter:
    def __init__(self, secret_key: str):
        self.secret_key = secret_key

    def hash_password(self, password: str) -> str:
        result: str = pwd_context.hash(password)
        return result

    def verify_password(self, plain: str, hashed: str) -> bool:
        try:
            result: bool = pwd_context.verify(plain, hashed)
        except ValueError:
            # Unrecognised hash format, e.g. an account created without a password
            logger.warning("Stored password hash could not be identified")
            return False
        return result

    def create_token(self, user_id: Any, ttl_minutes: int) -> str:
        # Wall-clock time: jose validates `exp` against it on decode
        issued_at = datetime.now(UTC)
        claims = {
            "sub": str(user_id),
            "aud": TOKEN_AUDIENCE,
            "iat": issued_at,
            "exp": issued_at + timedelta(minutes=ttl_minutes),
        }
        token: str = jwt.encode(claims, self.secret_key, algorithm=ALGORITHM)
        return token

    def decode_token(self, token: str) -> dict[str, Any] | None:
        try:
            payload: dict[str, Any] = jwt.decode(
                token, self.secret_key, algorithms=[ALGORITHM], audience=TOKEN_AUDIENCE
            )
        except JWTError:
            return None
        return payload

    def validate_token(self, token: str) -> str | None:
        """User id from a valid token, or None."""
        payload = self.decode_token(token)
        subject = payload.get("sub") if payload else None
        return subject if isinstance(subject, str) else None
