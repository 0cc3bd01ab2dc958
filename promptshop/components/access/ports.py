"""
Access component ports.
"""

from __future__ import annotations

from promptshop.core.ports.clock import ClockPort
from promptshop.core.ports.db import CatalogRepoPort, PurchaseRepoPort, StorePort
from promptshop.core.ports.media import MediaSignerPort, SignedUrl

__all__ = [
    "CatalogRepoPort",
    "ClockPort",
    "MediaSignerPort",
    "PurchaseRepoPort",
    "SignedUrl",
    "StorePort",
]
