"""
Email Adapter Interface.

Protocol-based interface for sending transactional emails.
Used for payment notifications and subscription expiry reminders.

Implementation strategies:
1. DevEmailAdapter: Logs emails to console (dev/test)
2. ResendEmailAdapter: Sends via the Resend HTTP API

Both implement the same EmailPort interface.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Protocol


class EmailStatus(Enum):
    """Email send result status."""

    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"  # Dev adapter or dry-run


@dataclass(frozen=True)
class EmailMessage:
    """Email message to be sent."""

    recipient: str
    subject: str
    body_html: str
    body_text: str = ""
    sender: str | None = None  # None = use default sender

    def __post_init__(self) -> None:
        """Validate email message."""
        if not self.recipient:
            raise ValueError("Recipient email is required")
        if not self.subject:
            raise ValueError("Subject is required")
        if not self.body_html and not self.body_text:
            raise ValueError("At least one of body_html or body_text is required")


@dataclass
class EmailResult:
    """Result of an email send attempt."""

    status: EmailStatus
    message_id: str | None = None  # Provider's message ID
    error: str | None = None
    sent_at: datetime | None = None
    recipient: str = ""

    @property
    def delivered(self) -> bool:
        """True for SENT and SKIPPED (dev adapter counts as handled)."""
        return self.status != EmailStatus.FAILED

    @classmethod
    def success(cls, recipient: str, message_id: str | None = None) -> EmailResult:
        """Create a successful send result."""
        return cls(
            status=EmailStatus.SENT,
            message_id=message_id,
            recipient=recipient,
            sent_at=datetime.now(UTC),
        )

    @classmethod
    def skipped(cls, recipient: str, reason: str = "Dev mode") -> EmailResult:
        """Create a skipped result (dev adapter)."""
        return cls(
            status=EmailStatus.SKIPPED,
            recipient=recipient,
            error=reason,
        )

    @classmethod
    def failed(cls, recipient: str, error: str) -> EmailResult:
        """Create a failed result."""
        return cls(
            status=EmailStatus.FAILED,
            recipient=recipient,
            error=error,
        )


class EmailPort(Protocol):
    """
    Email sending interface.

    Implementations:
    - DevEmailAdapter: Logs to console (dev/test)
    - ResendEmailAdapter: Resend HTTP API
    """

    def send(self, message: EmailMessage) -> EmailResult:
        """
        Send an email message.

        Notes:
            - Must not raise for delivery problems; return failed status instead
        """
        ...


class EmailError(Exception):
    """Base exception for email-related errors."""

    pass
