"""
Execution notifications — the success / failure email sent after a run.

The extraction type decides whether a notification of a kind is sent and
which template to use (falling back to the global default template of that
kind).  Every attempt writes a ``notification_logs`` row; a sent
notification also flags the execution log.

Notification problems never change the outcome of an execution:
``ExecutionNotifier.notify`` logs and returns, it does not raise.
"""

from __future__ import annotations

import re
from typing import Any, Callable

import httpx

from app.core.constants import NotificationSendStatus, NotificationType
from app.core.logging import get_logger
from app.workflow.config_store import ConfigStore, NotificationTemplateConfig
from app.workflow.email_providers import OutgoingEmail, PdfAttachment, get_email_sender
from app.workflow.errors import WorkflowError
from app.workflow.step import utc_now
from app.workflow.templates import render

logger = get_logger(__name__)

UNKNOWN_PDF_FILENAME = "unknown.pdf"
UNKNOWN_SENDER = "unknown"

_NEWLINE_RE = re.compile(r"\r?\n|\\n")


def newlines_to_br(text: str) -> str:
    """Real and escaped (``\\n``) newlines become ``<br>``."""
    return _NEWLINE_RE.sub("<br>", text or "")


def format_html_body(text: str) -> str:
    return f'<html><body style="font-family: Arial, sans-serif;">{newlines_to_br(text)}</body></html>'


def notification_context(
    data: dict[str, Any],
    *,
    extraction_type_name: str = "",
    error_message: str | None = None,
) -> dict[str, Any]:
    """Context tree plus the variables notification templates rely on."""
    context = dict(data)
    if error_message is not None:
        context["error_message"] = error_message
    context["pdf_filename"] = data.get("originalPdfFilename") or data.get("pdfFilename") or UNKNOWN_PDF_FILENAME
    context["extraction_type_name"] = extraction_type_name
    context["sender_email"] = data.get("senderEmail") or UNKNOWN_SENDER
    context["submitter_email"] = data.get("submitterEmail") or UNKNOWN_SENDER
    return context


class ExecutionNotifier:
    """
    Sends success / failure notifications for finished executions.

    Usage::

        notifier = ExecutionNotifier(config_store=store, http=client, log_writer=writer)
        await notifier.notify("failure", extraction_type_id=..., data=ctx.data,
                              execution_log_id=log_id, error_message="...")
    """

    def __init__(
        self,
        *,
        config_store: ConfigStore,
        http: httpx.AsyncClient,
        log_writer=None,
        clock: Callable = utc_now,
    ) -> None:
        self.config_store = config_store
        self.http = http
        self.log_writer = log_writer
        self.clock = clock

    async def notify(
        self,
        notification_type: str,
        *,
        extraction_type_id: str,
        data: dict[str, Any],
        execution_log_id: str | None = None,
        error_message: str | None = None,
    ) -> dict[str, Any] | None:
        """
        Send one notification.

        Returns:
            ``{type, sent, recipient, templateId, error}`` when a send was
            attempted, None when notifications of this kind are off or no
            template / recipient is available.
        """
        log = logger.bind(notification_type=notification_type, extraction_type_id=extraction_type_id)

        settings = await self.config_store.notification_settings(extraction_type_id)
        if settings is None:
            log.warning("Extraction type not found, notification skipped")
            return None
        enabled, template_id, recipient_override = settings.for_type(notification_type)
        if not enabled:
            log.debug("Notifications disabled for extraction type")
            return None

        template = await self._template(notification_type, template_id)
        if template is None:
            log.warning("No notification template configured, notification skipped")
            return None

        context = notification_context(
            data,
            extraction_type_name=settings.extraction_type_name,
            error_message=error_message,
        )

        recipient = recipient_override or template.recipient_email
        if not recipient and notification_type == NotificationType.SUCCESS:
            recipient = data.get("senderEmail") or data.get("submitterEmail")
        if not recipient:
            log.warning("No recipient for notification, notification skipped", template_id=template.id)
            return None

        email = OutgoingEmail(
            to=render(recipient, context),
            subject=render(template.subject_template, context),
            body=format_html_body(render(template.body_template, context)),
            cc=template.cc_emails or None,
        )
        attachment = None
        if template.attach_pdf and data.get("pdfBase64"):
            attachment = PdfAttachment(filename=context["pdf_filename"], content_base64=data["pdfBase64"])

        error = await self._send(email, attachment, log)
        sent = error is None

        await self._record(
            notification_type,
            extraction_type_id=extraction_type_id,
            execution_log_id=execution_log_id,
            template=template,
            email=email,
            attachment=attachment,
            error=error,
        )
        if sent and self.log_writer is not None:
            await self.log_writer.update(
                execution_log_id,
                **{f"{notification_type}_notification_sent": True, "notification_sent_at": self.clock()},
            )

        return {
            "type": notification_type,
            "sent": sent,
            "recipient": email.to,
            "templateId": template.id,
            "error": error,
        }

    async def _template(self, notification_type: str, template_id: str | None) -> NotificationTemplateConfig | None:
        if template_id:
            template = await self.config_store.notification_template(template_id)
            if template is not None:
                return template
            logger.warning("Notification template not found, using global default", template_id=template_id)
        return await self.config_store.default_notification_template(notification_type)

    async def _send(self, email: OutgoingEmail, attachment: PdfAttachment | None, log) -> str | None:
        """Send; returns the error text on failure."""
        email_config = await self.config_store.email_config()
        if email_config is None:
            log.error("Email configuration not found, notification not sent")
            return "Email configuration not found"
        email.from_address = email_config.default_send_from_email
        try:
            await get_email_sender(email_config).send(self.http, email, attachment)
        except WorkflowError as exc:
            log.error("Notification send failed", to=email.to, error=str(exc))
            return str(exc)
        log.info("Notification sent", to=email.to, attachment=attachment is not None)
        return None

    async def _record(
        self,
        notification_type: str,
        *,
        extraction_type_id: str,
        execution_log_id: str | None,
        template: NotificationTemplateConfig,
        email: OutgoingEmail,
        attachment: PdfAttachment | None,
        error: str | None,
    ) -> None:
        if self.log_writer is None:
            return
        await self.log_writer.record_notification(
            workflow_execution_log_id=execution_log_id,
            extraction_type_id=extraction_type_id,
            template_id=template.id,
            notification_type=notification_type,
            recipient_email=email.to,
            subject=email.subject,
            body=email.body,
            cc_emails=template.cc_emails,
            bcc_emails=template.bcc_emails,
            pdf_attached=attachment is not None,
            send_status=(NotificationSendStatus.FAILED if error else NotificationSendStatus.SENT).value,
            error_message=error,
            sent_at=self.clock(),
        )
