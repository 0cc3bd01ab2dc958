"""Reminder email content, keyed by reminder type."""

from __future__ import annotations

from datetime import datetime
from html import escape

from promptshop.domain.entities import ReminderType

_CONTENT: dict[str, tuple[str, str, str]] = {
    # reminder_type: (subject, heading, message)
    "7_days": (
        "Your subscription ends in 7 days",
        "7 days left",
        "Your {tier} subscription ends on {date}. Renew now to keep access.",
    ),
    "3_days": (
        "Your subscription ends in 3 days",
        "3 days left",
        "Your {tier} subscription ends on {date}. Don't lose access to premium content.",
    ),
    "1_day": (
        "Your subscription ends tomorrow",
        "Ends tomorrow",
        "Your {tier} subscription ends on {date}. Renew today.",
    ),
    "expired": (
        "Your subscription has expired",
        "Subscription expired",
        "Your {tier} subscription expired on {date}. Renew to restore premium access.",
    ),
}


def build_reminder(
    reminder_type: ReminderType,
    tier: str,
    expires_at: datetime,
    user_name: str,
    site_name: str,
    site_url: str,
) -> tuple[str, str]:
    """Returns (subject, html)."""
    subject, heading, message = _CONTENT[reminder_type]
    text = message.format(tier=escape(tier), date=expires_at.strftime("%Y-%m-%d"))
    html = (
        f"<div><h1>{escape(heading)}</h1>"
        f"<p>Hello <strong>{escape(user_name)}</strong>,</p>"
        f"<p>{text}</p>"
        f'<p><a href="{escape(site_url)}/pricing">Renew subscription</a></p>'
        f"<hr><p>{escape(site_name)}</p></div>"
    )
    return f"{subject} | {site_name}", html
