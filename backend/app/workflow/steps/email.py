"""
EmailStep — send a templated email, optionally with the PDF attached.

Config::

    to, subject, body, from   templates rendered against the context
    ccUser                    CC the execution's user (looked up by userId)
    includeAttachment         attach the in-flight PDF (pdfBase64)
    attachmentSource          renamed_pdf_step | transform_setup_pdf |
                              original_pdf | extraction_type_filename |
                              anything else → legacy fallback chain
    pdfEmailStrategy          all_pages_in_group | specific_page_in_group
    specificPageToEmail       1-based page for specific_page_in_group

Notification mode (``isNotificationEmail`` with ``notificationTemplateId``)
renders a stored notification template instead::

    customFieldMappings       {name: template} extra template variables
    recipientEmailOverride    recipient instead of the template's
    includeAttachment         overrides the template's attach_pdf

The provider (Office 365 or Gmail) comes from the system email config.
"""

from __future__ import annotations

from typing import Any

from app.core.constants import (
    DEFAULT_ATTACHMENT_FILENAME,
    AttachmentSource,
    PdfEmailStrategy,
    StepType,
)
from app.core.logging import get_logger
from app.workflow.email_providers import OutgoingEmail, PdfAttachment, get_email_sender
from app.workflow.errors import ConfigurationError, PdfPageError
from app.workflow.notifications import UNKNOWN_PDF_FILENAME, newlines_to_br
from app.workflow.pdf_pages import extract_page
from app.workflow.step import StepExecutor, StepOutcome
from app.workflow.templates import render

logger = get_logger(__name__)


def select_attachment_filename(source: str, ctx, mappings: dict[str, Any]) -> str:
    """Pick the attachment filename for an attachment source."""
    data = ctx.data
    fallback = data.get("originalPdfFilename") or DEFAULT_ATTACHMENT_FILENAME

    def from_extraction_type() -> str | None:
        template = data.get("extractionTypeFilename")
        return ctx.render(template, mappings=mappings) if template else None

    if source == AttachmentSource.RENAMED_PDF_STEP:
        return data.get("renamedFilename") or fallback
    if source == AttachmentSource.TRANSFORM_SETUP_PDF:
        return data.get("transformSetupFilename") or data.get("pdfFilename") or fallback
    if source == AttachmentSource.ORIGINAL_PDF:
        return fallback
    if source == AttachmentSource.EXTRACTION_TYPE_FILENAME:
        return from_extraction_type() or fallback
    return data.get("renamedFilename") or from_extraction_type() or fallback


class EmailStep(StepExecutor):
    step_type = StepType.EMAIL
    description = "Send an email through the configured provider"

    async def execute(self, step, ctx, env) -> StepOutcome:
        config = self._config(step)
        if config.get("isNotificationEmail") and config.get("notificationTemplateId"):
            return await self._send_notification(step, config, ctx, env)
        field_mappings: dict[str, Any] = {}

        processed: dict[str, Any] = {
            "to": ctx.render(config.get("to"), mappings=field_mappings),
            "subject": ctx.render(config.get("subject"), mappings=field_mappings),
            "body": ctx.render(config.get("body"), mappings=field_mappings),
        }
        if config.get("from"):
            processed["from"] = ctx.render(config.get("from"), mappings=field_mappings)

        if not processed["to"]:
            raise ConfigurationError("Email step has no recipient", step_id=step.id)

        attachment = None
        if config.get("includeAttachment") and ctx.data.get("pdfBase64"):
            attachment = self._build_attachment(config, ctx, field_mappings)

        cc = await self._cc_address(config, ctx, env)

        email_config = await env.config_store.email_config()
        if email_config is None:
            raise ConfigurationError("Email configuration not found", step_id=step.id)

        sender = get_email_sender(email_config)
        logger.info(
            "Sending email",
            step_id=step.id,
            provider=sender.provider,
            to=processed["to"],
            cc=cc,
            attachment=attachment.filename if attachment else None,
        )
        receipt = await sender.send(
            env.http,
            OutgoingEmail(
                to=processed["to"],
                subject=processed["subject"],
                body=processed["body"],
                from_address=processed.get("from"),
                cc=cc,
            ),
            attachment,
        )

        return StepOutcome(output={
            "success": True,
            "message": "Email sent successfully",
            "emailResult": receipt,
            "processedConfig": processed,
            "fieldMappings": field_mappings,
            "attachmentIncluded": attachment is not None,
            "attachmentFilename": attachment.filename if attachment else None,
        })

    async def _send_notification(self, step, config, ctx, env) -> StepOutcome:
        template_id = config["notificationTemplateId"]
        template = await env.config_store.notification_template(template_id)
        if template is None:
            raise ConfigurationError("Notification template not found", step_id=step.id)

        data = ctx.data
        context = dict(data)
        context["timestamp"] = env.clock().isoformat()
        context["pdf_filename"] = data.get("originalPdfFilename") or data.get("pdfFilename") or UNKNOWN_PDF_FILENAME
        context["sender_email"] = data.get("senderEmail") or data.get("sender_email")
        for name, value_template in (config.get("customFieldMappings") or {}).items():
            context[name] = ctx.render(str(value_template))

        recipient = config.get("recipientEmailOverride") or template.recipient_email
        if not recipient:
            raise ConfigurationError("Notification email has no recipient", step_id=step.id)

        processed = {
            "to": render(recipient, context),
            "subject": render(template.subject_template, context),
            "body": newlines_to_br(render(template.body_template, context)),
        }

        include = config["includeAttachment"] if "includeAttachment" in config else template.attach_pdf
        attachment = None
        if include and data.get("pdfBase64"):
            filename = data.get("pdfFilename") or data.get("originalPdfFilename") or DEFAULT_ATTACHMENT_FILENAME
            attachment = PdfAttachment(filename=filename, content_base64=data["pdfBase64"])

        email_config = await env.config_store.email_config()
        if email_config is None:
            raise ConfigurationError("Email configuration not found", step_id=step.id)

        sender = get_email_sender(email_config)
        logger.info(
            "Sending notification email",
            step_id=step.id,
            template_id=template_id,
            provider=sender.provider,
            to=processed["to"],
        )
        receipt = await sender.send(
            env.http,
            OutgoingEmail(
                to=processed["to"],
                subject=processed["subject"],
                body=processed["body"],
                cc=template.cc_emails or None,
            ),
            attachment,
        )

        return StepOutcome(output={
            "success": True,
            "message": "Notification email sent successfully",
            "notificationTemplateId": template_id,
            "emailResult": receipt,
            "processedConfig": processed,
            "attachmentIncluded": attachment is not None,
            "attachmentFilename": attachment.filename if attachment else None,
        })

    def _build_attachment(self, config, ctx, field_mappings) -> PdfAttachment:
        source = config.get("attachmentSource") or AttachmentSource.TRANSFORM_SETUP_PDF.value
        filename = select_attachment_filename(source, ctx, field_mappings)
        content = ctx.data["pdfBase64"]

        strategy = config.get("pdfEmailStrategy") or PdfEmailStrategy.ALL_PAGES_IN_GROUP.value
        page = config.get("specificPageToEmail")
        if strategy == PdfEmailStrategy.SPECIFIC_PAGE_IN_GROUP and page:
            try:
                page_number = int(page)
            except (TypeError, ValueError) as exc:
                raise PdfPageError(f"Invalid page number {page!r}") from exc
            content = extract_page(content, page_number)

        return PdfAttachment(filename=filename, content_base64=content)

    async def _cc_address(self, config, ctx, env) -> str | None:
        user_id = ctx.data.get("userId")
        if not config.get("ccUser") or not user_id:
            return None
        try:
            email = await env.config_store.user_email(str(user_id))
        except Exception as exc:
            logger.warning("User email lookup failed, sending without CC", user_id=user_id, error=str(exc))
            return None
        if not email:
            logger.warning("User email not found, sending without CC", user_id=user_id)
        return email
