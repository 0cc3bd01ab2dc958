"""
Clock interface.

All timestamps are timezone-aware UTC. Services take a clock so tests can pin
"now" around expiry boundaries.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol


class ClockPort(Protocol):
    def now_utc(self) -> datetime:
        """Get current UTC time."""
        ...
