"""
Dev Email Adapter.

Logs emails to console instead of sending.
Used for local development and testing, and whenever RESEND_API_KEY is unset.

Key behaviors:
- Logs email details to console
- Returns SKIPPED status (not SENT)
- Stores emails in memory for test assertions
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import uuid4

from promptshop.core.ports.email import (
    EmailMessage,
    EmailResult,
    EmailStatus,
)

logger = logging.getLogger(__name__)


@dataclass
class SentEmail:
    """Record of a logged email for test assertions."""

    id: str
    recipient: str
    subject: str
    body_html: str
    sender: str | None
    logged_at: datetime


@dataclass
class DevEmailAdapter:
    """
    Dev email adapter that logs instead of sending.

    Implements EmailPort protocol.
    """

    # In-memory storage for test assertions
    sent_emails: list[SentEmail] = field(default_factory=list)

    log_level: int = logging.INFO
    body_preview_length: int = 100  # Max chars of body to log

    # Recipients for which send() reports FAILED. Lets tests exercise retry paths.
    fail_for: set[str] = field(default_factory=set)

    def send(self, message: EmailMessage) -> EmailResult:
        if message.recipient in self.fail_for:
            logger.warning("EMAIL (dev): simulated failure for %s", message.recipient)
            return EmailResult.failed(message.recipient, "Simulated failure")

        message_id = f"dev-{uuid4().hex[:12]}"

        self.sent_emails.append(
            SentEmail(
                id=message_id,
                recipient=message.recipient,
                subject=message.subject,
                body_html=message.body_html,
                sender=message.sender,
                logged_at=datetime.now(UTC),
            )
        )

        preview = message.body_html[: self.body_preview_length]
        if len(message.body_html) > self.body_preview_length:
            preview += "..."
        logger.log(
            self.log_level,
            "EMAIL (dev): To=%s, Subject=%s, Body=%s, MessageID=%s",
            message.recipient,
            message.subject,
            preview,
            message_id,
        )

        return EmailResult(
            status=EmailStatus.SKIPPED,
            message_id=message_id,
            recipient=message.recipient,
            error="Dev mode - email logged, not sent",
        )

    # --- Test Helper Methods ---

    def get_last_email(self) -> SentEmail | None:
        """Get the most recently logged email."""
        return self.sent_emails[-1] if self.sent_emails else None

    def get_emails_to(self, recipient: str) -> list[SentEmail]:
        """Get all emails logged to a specific recipient."""
        return [e for e in self.sent_emails if e.recipient == recipient]
