import json

import httpx
import pytest

from mocks import RecordingEmailProvider

from app.core.config import Settings
from app.services.email import (
    EmailDeliveryError,
    EmailService,
    LogEmailProvider,
    ResendEmailProvider,
    get_email_service,
)


class TestEmailService:
    def test_sends_rendered_reminder(self) -> None:
        provider = RecordingEmailProvider()
        ok = EmailService(provider).send_compliance_reminder(
            "alice@example.com", "Your license expires soon.", first_name="Alice", organization_name="Acme Corp"
        )
        assert ok is True
        sent = provider.sent[0]
        assert sent.to == "alice@example.com"
        assert sent.subject == "[Compliance] Document reminder from Acme Corp"
        assert "Hello Alice," in sent.text
        assert "<p>Your license expires soon.</p>" in sent.html

    def test_html_is_escaped(self) -> None:
        provider = RecordingEmailProvider()
        EmailService(provider).send_compliance_reminder("a@example.com", 'Policy "<b>" & co')
        assert "&lt;b&gt;" in provider.sent[0].html

    def test_provider_error_returns_false(self) -> None:
        provider = RecordingEmailProvider(fail_for={"bob@example.com"})
        assert EmailService(provider).send_compliance_reminder("bob@example.com", "hi") is False

    def test_missing_address_returns_false(self) -> None:
        provider = RecordingEmailProvider()
        assert EmailService(provider).send_compliance_reminder("", "hi") is False
        assert provider.sent == []

    def test_log_provider_accepts(self) -> None:
        assert EmailService(LogEmailProvider()).send_compliance_reminder("a@example.com", "hi") is True


def resend(handler, **kwargs):
    return ResendEmailProvider(
        api_key="re_test",
        sender="hr@acme.test",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestResendProvider:
    def test_posts_message(self) -> None:
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"id": "msg_1"})

        provider = resend(handler, sender_name="Acme HR")
        ok = EmailService(provider).send_compliance_reminder(
            "alice@example.com", "Your license expires soon.", first_name="Alice", organization_name="Acme Corp"
        )

        assert ok is True
        request = seen[0]
        assert str(request.url) == "https://api.resend.com/emails"
        assert request.headers["Authorization"] == "Bearer re_test"
        body = json.loads(request.content)
        assert body["from"] == "Acme HR <hr@acme.test>"
        assert body["to"] == ["alice@example.com"]
        assert body["subject"] == "[Compliance] Document reminder from Acme Corp"
        assert body["text"].startswith("Hello Alice,")
        assert "<p>Your license expires soon.</p>" in body["html"]

    def test_error_status_raises(self) -> None:
        provider = resend(lambda request: httpx.Response(422, json={"message": "invalid to"}))
        with pytest.raises(EmailDeliveryError, match="422"):
            provider.send(to_address="x@example.com", subject="s", text="t", html_body="<p>t</p>")

    def test_error_status_is_a_failed_reminder(self) -> None:
        provider = resend(lambda request: httpx.Response(500, text="upstream down"))
        assert EmailService(provider).send_compliance_reminder("x@example.com", "hi") is False

    def test_transport_error_is_a_failed_reminder(self) -> None:
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        assert EmailService(resend(handler)).send_compliance_reminder("x@example.com", "hi") is False


class TestProviderSelection:
    def test_default_is_log(self) -> None:
        assert isinstance(get_email_service(Settings()).provider, LogEmailProvider)

    def test_resend(self) -> None:
        service = get_email_service(
            Settings(
                email_provider="resend",
                resend_api_key="re_live",
                email_from="hr@acme.test",
                email_timeout_seconds=5.0,
            )
        )
        assert isinstance(service.provider, ResendEmailProvider)
        assert service.provider.api_key == "re_live"
        assert service.provider.from_address == "hr@acme.test"
        assert service.provider.timeout == 5.0

    def test_resend_requires_api_key(self) -> None:
        with pytest.raises(ValueError):
            Settings(email_provider="resend")
