import json

import httpx
import pytest

from promptshop.adapters.dev_email import DevEmailAdapter
from promptshop.adapters.resend_email import RESEND_API_URL, ResendEmailAdapter
from promptshop.core.ports.email import EmailMessage, EmailStatus

MESSAGE = EmailMessage(recipient="a@example.com", subject="Hi", body_html="<p>Hello</p>")


class TestEmailMessage:
    def test_requires_recipient(self):
        with pytest.raises(ValueError):
            EmailMessage(recipient="", subject="s", body_html="b")

    def test_requires_a_body(self):
        with pytest.raises(ValueError):
            EmailMessage(recipient="a@example.com", subject="s", body_html="")


class TestDevEmailAdapter:
    def test_logs_and_records(self):
        adapter = DevEmailAdapter()
        result = adapter.send(MESSAGE)
        assert result.status == EmailStatus.SKIPPED
        assert result.delivered is True
        assert adapter.get_last_email().subject == "Hi"
        assert len(adapter.get_emails_to("a@example.com")) == 1

    def test_simulated_failure(self):
        adapter = DevEmailAdapter(fail_for={"a@example.com"})
        result = adapter.send(MESSAGE)
        assert result.delivered is False
        assert adapter.sent_emails == []


def _resend(handler) -> ResendEmailAdapter:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return ResendEmailAdapter(api_key="re_test", default_sender="Shop <noreply@example.com>", client=client)


class TestResendEmailAdapter:
    def test_posts_payload(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "msg_123"})

        result = _resend(handler).send(MESSAGE)

        assert result.status == EmailStatus.SENT
        assert result.message_id == "msg_123"
        assert seen["url"] == RESEND_API_URL
        assert seen["auth"] == "Bearer re_test"
        assert seen["body"]["to"] == ["a@example.com"]
        assert seen["body"]["from"] == "Shop <noreply@example.com>"
        assert "text" not in seen["body"]

    def test_http_error_is_a_failed_result(self):
        result = _resend(lambda request: httpx.Response(422, json={"message": "bad"})).send(MESSAGE)
        assert result.status == EmailStatus.FAILED
        assert "422" in result.error

    def test_transport_error_is_a_failed_result(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("down", request=request)

        result = _resend(handler).send(MESSAGE)
        assert result.delivered is False

    def test_requires_api_key(self):
        with pytest.raises(ValueError):
            ResendEmailAdapter(api_key="", default_sender="x@example.com")
