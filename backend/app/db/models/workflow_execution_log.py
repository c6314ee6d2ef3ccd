"""
WorkflowExecutionLog — one row per workflow execution, updated in place.

Created as ``running`` when the execution starts, updated before every
step (current step + context snapshot) and terminal once the status is
``completed`` or ``failed``.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, String, Text
from sqlalchemy.orm import relationship

from app.db.models.base import Base, JSONType, generate_uuid, utcnow


class WorkflowExecutionLog(Base):
    """One row per workflow execution."""

    __tablename__ = "workflow_execution_logs"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    workflow_id = Column(String(36), nullable=False, index=True)

    # ── Caller context ────────────────────────
    user_id = Column(String(36), nullable=True)
    extraction_type_id = Column(String(36), nullable=True)

    # ── Status / progress ────────────────────
    status = Column(String(20), nullable=False, default="pending", index=True)
    current_step_id = Column(String(36), nullable=True)
    current_step_name = Column(String(255), nullable=True)

    # ── Error ─────────────────────────────────
    error_message = Column(Text, nullable=True)

    # ── Context snapshot ──────────────────────
    context_data = Column(JSONType, default=dict)

    # ── Notifications ─────────────────────────
    success_notification_sent = Column(Boolean, nullable=False, default=False)
    failure_notification_sent = Column(Boolean, nullable=False, default=False)
    notification_sent_at = Column(DateTime(timezone=True), nullable=True)

    # ── Timing (UTC) ─────────────────────────
    started_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    step_logs = relationship(
        "WorkflowStepLog",
        back_populates="execution_log",
        cascade="all, delete-orphan",
        order_by="WorkflowStepLog.created_at",
    )

    def __repr__(self) -> str:
        return f"<WorkflowExecutionLog {self.id} workflow={self.workflow_id} status={self.status}>"
