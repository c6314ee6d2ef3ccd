"""
Notification tables.

    notification_templates — subject/body templates for success and failure
                             notifications (and notification email steps)
    notification_logs      — one row per notification attempt, sent or not
"""

from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, String, Text

from app.db.models.base import Base, generate_uuid, utcnow


class NotificationTemplate(Base):
    __tablename__ = "notification_templates"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    template_name = Column(String(255), nullable=False, default="")
    template_type = Column(String(20), nullable=False, index=True)      # success | failure
    is_global_default = Column(Boolean, nullable=False, default=False)

    recipient_email = Column(String(1000), nullable=True)
    subject_template = Column(Text, nullable=False, default="")
    body_template = Column(Text, nullable=False, default="")
    cc_emails = Column(String(1000), nullable=True)
    bcc_emails = Column(String(1000), nullable=True)
    attach_pdf = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class NotificationLog(Base):
    __tablename__ = "notification_logs"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    workflow_execution_log_id = Column(String(36), nullable=True, index=True)
    extraction_type_id = Column(String(36), nullable=True)
    template_id = Column(String(36), nullable=True)
    notification_type = Column(String(20), nullable=False)

    recipient_email = Column(String(1000), nullable=False)
    subject = Column(Text, nullable=True)
    body = Column(Text, nullable=True)
    cc_emails = Column(String(1000), nullable=True)
    bcc_emails = Column(String(1000), nullable=True)
    pdf_attached = Column(Boolean, nullable=False, default=False)

    send_status = Column(String(20), nullable=False)
    error_message = Column(Text, nullable=True)
    sent_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
