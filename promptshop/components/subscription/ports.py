"""
Subscription component ports.

The service works against the store and email ports from `promptshop.core`.
"""

from __future__ import annotations

from promptshop.core.ports.clock import ClockPort
from promptshop.core.ports.db import ProfileRepoPort, ReminderRepoPort, StorePort
from promptshop.core.ports.email import EmailPort

__all__ = [
    "ClockPort",
    "EmailPort",
    "ProfileRepoPort",
    "ReminderRepoPort",
    "StorePort",
]
