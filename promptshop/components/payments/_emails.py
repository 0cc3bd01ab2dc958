"""Payment decision email content."""

from __future__ import annotations

from decimal import Decimal
from html import escape


def build_payment_email(
    approved: bool,
    user_name: str,
    item_name: str,
    amount: Decimal,
    currency: str,
    site_name: str,
    site_url: str,
) -> tuple[str, str]:
    """Returns (subject, html)."""
    if approved:
        subject = f"Your payment was approved | {site_name}"
        heading = "Payment approved"
        message = "Your payment has been approved. Premium access is now open."
        cta = (f"{site_url}/dashboard", "Go to dashboard")
    else:
        subject = f"Your payment was rejected | {site_name}"
        heading = "Payment rejected"
        message = "Unfortunately your payment was rejected. Contact us or pay again."
        cta = (f"{site_url}/payment", "Pay again")

    html = (
        f"<div><h1>{heading}</h1>"
        f"<p>Hello <strong>{escape(user_name)}</strong>,</p>"
        f"<p>{message}</p>"
        f"<p>Item: <strong>{escape(item_name)}</strong><br>"
        f"Amount: <strong>{amount:,.2f} {escape(currency)}</strong></p>"
        f'<p><a href="{escape(cta[0])}">{cta[1]}</a></p>'
        f"<hr><p>{escape(site_name)}</p></div>"
    )
    return subject, html
