"""
Email providers used by the email step.

    Office365Sender — Microsoft Graph ``sendMail`` with a client-credentials token
    GmailSender     — Gmail API ``messages/send`` with a refresh-token grant

Both obtain an access token per send and raise EmailDeliveryError when the
provider rejects the token request or the message.
"""

from __future__ import annotations

import base64
from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Any

import httpx

from app.core.config import settings
from app.core.constants import EmailProvider
from app.core.logging import get_logger
from app.workflow.config_store import EmailConfig
from app.workflow.errors import ConfigurationError, EmailDeliveryError

logger = get_logger(__name__)


@dataclass
class OutgoingEmail:
    to: str
    subject: str
    body: str                       # HTML
    from_address: str | None = None
    cc: str | None = None


@dataclass
class PdfAttachment:
    filename: str
    content_base64: str


class EmailSender(ABC):
    provider: str

    def __init__(self, config: EmailConfig) -> None:
        self.config = config

    @abstractmethod
    async def send(
        self,
        http: httpx.AsyncClient,
        email: OutgoingEmail,
        attachment: PdfAttachment | None = None,
    ) -> dict[str, Any]:
        """Send one message; returns a small provider receipt."""
        ...

    async def _request_token(self, http: httpx.AsyncClient, url: str, form: dict[str, str]) -> str:
        try:
            response = await http.post(url, data=form)
        except httpx.HTTPError as exc:
            raise EmailDeliveryError(f"Failed to get {self.provider} access token: {exc}") from exc
        if not response.is_success:
            raise EmailDeliveryError(f"Failed to get {self.provider} access token: {response.text}")
        token = response.json().get("access_token")
        if not token:
            raise EmailDeliveryError(f"{self.provider} token response has no access_token")
        return token

    async def _post_message(self, http: httpx.AsyncClient, url: str, token: str, payload: dict) -> httpx.Response:
        try:
            response = await http.post(url, json=payload, headers={"Authorization": f"Bearer {token}"})
        except httpx.HTTPError as exc:
            raise EmailDeliveryError(f"Email sending failed: {exc}") from exc
        if not response.is_success:
            raise EmailDeliveryError(
                f"Email sending failed: {response.text}",
                details={"provider": self.provider, "status_code": response.status_code},
            )
        return response


# ═══════════════════════════════════════════════════════════
#  Office 365 (Microsoft Graph)
# ═══════════════════════════════════════════════════════════

class Office365Sender(EmailSender):
    provider = EmailProvider.OFFICE365.value

    async def send(self, http, email, attachment=None):
        cfg = self.config
        if not (cfg.tenant_id and cfg.client_id and cfg.client_secret):
            raise ConfigurationError("Office 365 email configuration is incomplete")

        sender = email.from_address or cfg.default_send_from_email
        if not sender:
            raise ConfigurationError("No sender address configured for Office 365")

        token = await self._request_token(
            http,
            settings.OFFICE365_TOKEN_URL_TEMPLATE.format(tenant_id=cfg.tenant_id),
            {
                "client_id": cfg.client_id,
                "client_secret": cfg.client_secret,
                "scope": "https://graph.microsoft.com/.default",
                "grant_type": "client_credentials",
            },
        )

        message: dict[str, Any] = {
            "subject": email.subject,
            "body": {"contentType": "HTML", "content": email.body},
            "toRecipients": [{"emailAddress": {"address": email.to}}],
            "from": {"emailAddress": {"address": sender}},
        }
        if email.cc:
            message["ccRecipients"] = [{"emailAddress": {"address": email.cc}}]
        if attachment:
            message["attachments"] = [{
                "@odata.type": "#microsoft.graph.fileAttachment",
                "name": attachment.filename,
                "contentType": "application/pdf",
                "contentBytes": attachment.content_base64,
            }]

        url = f"{settings.OFFICE365_GRAPH_URL}/users/{sender}/sendMail"
        await self._post_message(http, url, token, {"message": message, "saveToSentItems": "true"})
        logger.info("Email sent via Office 365", to=email.to, cc=email.cc, attachment=bool(attachment))
        return {"provider": self.provider, "from": sender}


# ═══════════════════════════════════════════════════════════
#  Gmail
# ═══════════════════════════════════════════════════════════

class GmailSender(EmailSender):
    provider = EmailProvider.GMAIL.value

    async def send(self, http, email, attachment=None):
        cfg = self.config
        if not (cfg.gmail_client_id and cfg.gmail_client_secret and cfg.gmail_refresh_token):
            raise ConfigurationError("Gmail email configuration is incomplete")

        sender = email.from_address or cfg.default_send_from_email

        token = await self._request_token(
            http,
            settings.GMAIL_TOKEN_URL,
            {
                "client_id": cfg.gmail_client_id,
                "client_secret": cfg.gmail_client_secret,
                "refresh_token": cfg.gmail_refresh_token,
                "grant_type": "refresh_token",
            },
        )

        raw = build_mime_message(email, sender, attachment)
        response = await self._post_message(http, settings.GMAIL_SEND_URL, token, {"raw": raw})
        message_id = response.json().get("id") if response.content else None
        logger.info("Email sent via Gmail", to=email.to, cc=email.cc, attachment=bool(attachment))
        return {"provider": self.provider, "from": sender, "messageId": message_id}


def build_mime_message(
    email: OutgoingEmail,
    sender: str | None,
    attachment: PdfAttachment | None = None,
) -> str:
    """RFC 822 message, base64url-encoded without padding (Gmail ``raw``)."""
    msg = EmailMessage()
    msg["To"] = email.to
    if email.cc:
        msg["Cc"] = email.cc
    if sender:
        msg["From"] = sender
    msg["Subject"] = email.subject
    msg.set_content(email.body or "", subtype="html")

    if attachment:
        msg.add_attachment(
            base64.b64decode(attachment.content_base64),
            maintype="application",
            subtype="pdf",
            filename=attachment.filename,
        )

    return base64.urlsafe_b64encode(msg.as_bytes()).decode("ascii").rstrip("=")


SENDERS: dict[str, type[EmailSender]] = {
    EmailProvider.OFFICE365.value: Office365Sender,
    EmailProvider.GMAIL.value: GmailSender,
}


def get_email_sender(config: EmailConfig) -> EmailSender:
    """Sender for the configured provider (unknown providers fall back to Gmail)."""
    sender_cls = SENDERS.get(config.provider, GmailSender)
    return sender_cls(config)
