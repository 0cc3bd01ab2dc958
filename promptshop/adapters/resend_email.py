"""
Resend Email Adapter.

Sends transactional email through the Resend HTTP API
(`POST https://api.resend.com/emails`). Selected when RESEND_API_KEY is set.
"""

from __future__ import annotations

import logging

import httpx

from promptshop.core.ports.email import EmailMessage, EmailResult

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class ResendEmailAdapter:
    def __init__(
        self,
        api_key: str,
        default_sender: str,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ):
        if not api_key:
            raise ValueError("Resend API key is required")
        self.api_key = api_key
        self.default_sender = default_sender
        self._client = client or httpx.Client(timeout=timeout)

    def send(self, message: EmailMessage) -> EmailResult:
        payload: dict[str, object] = {
            "from": message.sender or self.default_sender,
            "to": [message.recipient],
            "subject": message.subject,
            "html": message.body_html,
        }
        if message.body_text:
            payload["text"] = message.body_text

        try:
            response = self._client.post(
                RESEND_API_URL,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
        except httpx.HTTPError as e:
            logger.warning("Resend request failed for %s: %s", message.recipient, e)
            return EmailResult.failed(message.recipient, str(e))

        if response.is_error:
            logger.warning(
                "Resend rejected email to %s: %s %s",
                message.recipient,
                response.status_code,
                response.text,
            )
            return EmailResult.failed(
                message.recipient, f"HTTP {response.status_code}: {response.text}"
            )

        message_id = response.json().get("id")
        logger.info("Email sent to %s (id=%s)", message.recipient, message_id)
        return EmailResult.success(message.recipient, message_id=message_id)

    def close(self) -> None:
        self._client.close()
