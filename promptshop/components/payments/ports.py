"""
Payments component ports.
"""

from __future__ import annotations

from promptshop.core.ports.clock import ClockPort
from promptshop.core.ports.db import StorePort, UnitOfWorkPort
from promptshop.core.ports.email import EmailPort

__all__ = [
    "ClockPort",
    "EmailPort",
    "StorePort",
    "UnitOfWorkPort",
]
