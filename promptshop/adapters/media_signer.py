"""
Signed URL adapter for private media buckets.

Tokens are HS256 JWTs carrying `{bucket, key, exp}`; the media endpoint that
serves the bytes calls `verify` before streaming.
"""

from __future__ import annotations

from datetime import timedelta
from urllib.parse import quote

from jose import JWTError, jwt

from promptshop.adapters.clock import SystemClock
from promptshop.core.ports.clock import ClockPort
from promptshop.core.ports.media import SignedUrl

ALGORITHM = "HS256"


class SignedUrlAdapter:
    def __init__(self, secret_key: str, base_url: str, clock: ClockPort | None = None):
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.clock = clock or SystemClock()

    def sign(self, bucket: str, path: str, ttl_seconds: int) -> SignedUrl:
        expires_at = self.clock.now_utc() + timedelta(seconds=ttl_seconds)
        token = jwt.encode(
            {"bucket": bucket, "key": path, "exp": expires_at},
            self.secret_key,
            algorithm=ALGORITHM,
        )
        url = f"{self.base_url}/{bucket}/{quote(path)}?token={token}"
        return SignedUrl(url=url, bucket=bucket, path=path, expires_at=expires_at)

    def verify(self, token: str) -> tuple[str, str] | None:
        """Signature and `exp` are checked against wall-clock time by jose."""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[ALGORITHM])
        except JWTError:
            return None
        bucket = payload.get("bucket")
        key = payload.get("key")
        if not isinstance(bucket, str) or not isinstance(key, str):
            return None
        return bucket, key
