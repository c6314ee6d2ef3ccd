"""
Document type and multi-group session tables consulted when an execution
is seeded.

    extraction_types       — declared output format, filename template and
                             execution notification settings
    extraction_group_data  — fields extracted from earlier page groups of
                             the same upload session
"""

from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from app.db.models.base import Base, JSONType, generate_uuid, utcnow


class ExtractionType(Base):
    __tablename__ = "extraction_types"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    format_type = Column(String(10), nullable=False, default="JSON")
    filename_template = Column(String(1000), nullable=True)

    # ── Execution notifications ───────────────
    enable_success_notifications = Column(Boolean, nullable=False, default=False)
    success_notification_template_id = Column(String(36), nullable=True)
    success_recipient_email_override = Column(String(1000), nullable=True)
    enable_failure_notifications = Column(Boolean, nullable=False, default=False)
    failure_notification_template_id = Column(String(36), nullable=True)
    failure_recipient_email_override = Column(String(1000), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class ExtractionGroupData(Base):
    __tablename__ = "extraction_group_data"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    session_id = Column(String(255), nullable=False, index=True)
    group_order = Column(Integer, nullable=False)
    extracted_fields = Column(JSONType, default=dict)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
