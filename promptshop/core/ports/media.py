"""
Object storage signing interface.

Premium files (lesson videos, course materials, prompt files) live in private
buckets. Clients only ever receive a time-limited signed URL, issued after the
access check has passed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol


@dataclass(frozen=True)
class SignedUrl:
    url: str
    bucket: str
    path: str
    expires_at: datetime


class MediaSignerPort(Protocol):
    def sign(self, bucket: str, path: str, ttl_seconds: int) -> SignedUrl:
        """Issue a signed URL for `bucket/path` valid for `ttl_seconds`."""
        ...

    def verify(self, token: str) -> tuple[str, str] | None:
        """
        Validate a token produced by `sign`.

        Returns:
            (bucket, path) when the token is authentic and unexpired, else None.
        """
        ...
