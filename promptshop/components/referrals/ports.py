"""
Referrals component ports.
"""

from __future__ import annotations

from promptshop.core.ports.clock import ClockPort
from promptshop.core.ports.db import StorePort, UnitOfWorkPort

__all__ = [
    "ClockPort",
    "StorePort",
    "UnitOfWorkPort",
]
