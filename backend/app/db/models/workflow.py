"""
Workflow + WorkflowStep — workflow configuration.

Rows are authored by the settings UI and are read-only to the engine.
Steps run in ``step_order``; ``next_step_on_success_id`` /
``next_step_on_failure_id`` optionally point at another step of the same
workflow.
"""

from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from app.db.models.base import Base, JSONType, generate_uuid, utcnow


class Workflow(Base):
    """A named, ordered collection of steps."""

    __tablename__ = "workflows"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    steps = relationship(
        "WorkflowStep",
        back_populates="workflow",
        cascade="all, delete-orphan",
        order_by="WorkflowStep.step_order",
    )

    def __repr__(self) -> str:
        return f"<Workflow {self.id} name={self.name!r}>"


class WorkflowStep(Base):
    """One configured step of a workflow."""

    __tablename__ = "workflow_steps"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    workflow_id = Column(String(36), ForeignKey("workflows.id", ondelete="CASCADE"), nullable=False, index=True)

    # ── Identity / ordering ───────────────────
    step_order = Column(Integer, nullable=False)
    step_name = Column(String(255), nullable=True)
    step_type = Column(String(50), nullable=False)

    # ── Type-specific configuration ───────────
    config_json = Column(JSONType, default=dict)

    # ── Branch targets (same workflow) ────────
    next_step_on_success_id = Column(String(36), nullable=True)
    next_step_on_failure_id = Column(String(36), nullable=True)

    workflow = relationship("Workflow", back_populates="steps")

    def __repr__(self) -> str:
        return f"<WorkflowStep {self.step_order} {self.step_type} workflow={self.workflow_id}>"
