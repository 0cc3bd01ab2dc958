# promptshop ports (Protocol interfaces)
# Abstract interfaces for adapters; no implementations here

from promptshop.core.ports.clock import ClockPort
from promptshop.core.ports.email import (
    EmailError,
    EmailMessage,
    EmailPort,
    EmailResult,
    EmailStatus,
)
from promptshop.core.ports.media import MediaSignerPort, SignedUrl

__all__ = [
    # Clock
    "ClockPort",
    # Email
    "EmailError",
    "EmailMessage",
    "EmailPort",
    "EmailResult",
    "EmailStatus",
    # Media
    "MediaSignerPort",
    "SignedUrl",
]
