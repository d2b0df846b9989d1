# app/services/email.py
"""Email sink for compliance reminders + provider selection."""
from __future__ import annotations

import html
import logging
from typing import Any, Dict, Optional, Protocol

import httpx

from app.core.config import Settings, get_settings
from app.services.notifications import render_message

log = logging.getLogger("app.services.email")

RESEND_SEND_URL = "https://api.resend.com/emails"
RESEND_TIMEOUT_SECONDS = 20.0


class EmailDeliveryError(RuntimeError):
    """The provider refused or could not take the message."""


class EmailProvider(Protocol):
    key: str

    def send(self, *, to_address: str, subject: str, text: str, html_body: str) -> None:
        """Deliver one message; raise on failure."""


class LogEmailProvider:
    """Writes the message to the log instead of delivering it (dev / tests)."""

    key = "log"

    def send(self, *, to_address: str, subject: str, text: str, html_body: str) -> None:
        log.info("email (log provider) to=%s subject=%r\n%s", to_address, subject, text)


class ResendEmailProvider:
    """Delivers through the Resend HTTP API; any non-2xx response is a failure."""

    key = "resend"

    def __init__(
        self,
        *,
        api_key: str,
        sender: str,
        sender_name: Optional[str] = None,
        api_url: str = RESEND_SEND_URL,
        timeout: float = RESEND_TIMEOUT_SECONDS,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = api_key
        self.sender = sender
        self.sender_name = sender_name
        self.api_url = api_url
        self.timeout = timeout
        self._transport = transport

    @property
    def from_address(self) -> str:
        if self.sender_name:
            return f"{self.sender_name} <{self.sender}>"
        return self.sender

    def _payload(self, to_address: str, subject: str, text: str, html_body: str) -> Dict[str, Any]:
        return {
            "from": self.from_address,
            "to": [to_address],
            "subject": subject,
            "html": html_body,
            "text": text,
        }

    def send(self, *, to_address: str, subject: str, text: str, html_body: str) -> None:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
            response = client.post(
                self.api_url,
                headers=headers,
                json=self._payload(to_address, subject, text, html_body),
            )

        if not 200 <= response.status_code < 300:
            detail = None
            try:
                data = response.json()
                if isinstance(data, dict):
                    detail = data.get("message") or data.get("error")
            except ValueError:
                pass
            msg = f"Resend API error: {response.status_code}"
            if detail:
                msg = f"{msg} ({detail})"
            raise EmailDeliveryError(msg)

        message_id = None
        try:
            message_id = response.json().get("id")
        except (ValueError, AttributeError):
            pass
        log.info("email sent provider=resend to=%s message_id=%s", to_address, message_id)


def _to_html(text: str) -> str:
    paragraphs = [p for p in text.split("\n\n") if p.strip()]
    return "".join(
        f"<p>{html.escape(p).replace(chr(10), '<br>')}</p>" for p in paragraphs
    )


class EmailService:
    def __init__(self, provider: EmailProvider):
        self.provider = provider

    def send_compliance_reminder(
        self,
        to_address: str,
        message: str,
        *,
        first_name: Optional[str] = None,
        organization_name: Optional[str] = None,
    ) -> bool:
        """True when the provider accepted the message; failures are logged, not raised."""
        if not to_address:
            log.warning("compliance reminder skipped: no recipient address")
            return False

        rendered = render_message(
            "compliance_reminder",
            {
                "message": message,
                "first_name": first_name,
                "organization_name": organization_name,
            },
        )
        try:
            self.provider.send(
                to_address=to_address,
                subject=rendered["subject"],
                text=rendered["body"],
                html_body=_to_html(rendered["body"]),
            )
        except Exception:
            log.exception(
                "compliance reminder failed provider=%s to=%s",
                self.provider.key,
                to_address,
            )
            return False
        return True


def get_email_service(settings: Optional[Settings] = None) -> EmailService:
    settings = settings or get_settings()
    if settings.email_provider == "resend":
        provider: EmailProvider = ResendEmailProvider(
            api_key=settings.resend_api_key or "",
            sender=settings.email_from,
            sender_name=settings.email_from_name,
            api_url=settings.resend_api_url,
            timeout=settings.email_timeout_seconds,
        )
    else:
        provider = LogEmailProvider()
    return EmailService(provider)
