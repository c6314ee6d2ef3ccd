"""
Workflow repository — workflow configuration and the lookups made when an
execution is seeded (extraction types, earlier page groups).
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.extraction import ExtractionGroupData, ExtractionType
from app.db.models.workflow import Workflow, WorkflowStep


async def get_workflow(db: AsyncSession, workflow_id: str) -> Workflow | None:
    return await db.get(Workflow, workflow_id)


async def list_steps(db: AsyncSession, workflow_id: str) -> list[WorkflowStep]:
    """Steps of a workflow ordered by ``step_order``."""
    stmt = (
        select(WorkflowStep)
        .where(WorkflowStep.workflow_id == workflow_id)
        .order_by(WorkflowStep.step_order.asc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def create_workflow(
    db: AsyncSession,
    *,
    name: str,
    steps: list[dict[str, Any]] | None = None,
    description: str | None = None,
    workflow_id: str | None = None,
) -> Workflow:
    """
    Create a workflow with its steps.

    Each step dict uses the column names (``step_order``, ``step_type``,
    ``config_json`` ...); an explicit ``id`` is kept so branch targets can
    reference sibling steps.
    """
    workflow = Workflow(name=name, description=description)
    if workflow_id:
        workflow.id = workflow_id
    db.add(workflow)
    await db.flush()

    for step in steps or []:
        db.add(WorkflowStep(workflow_id=workflow.id, **step))
    await db.flush()
    return workflow


async def get_extraction_type(db: AsyncSession, extraction_type_id: str) -> ExtractionType | None:
    return await db.get(ExtractionType, extraction_type_id)


async def list_previous_groups(
    db: AsyncSession,
    session_id: str,
    group_order: int,
) -> list[ExtractionGroupData]:
    """Groups of the same upload session that precede ``group_order``."""
    stmt = (
        select(ExtractionGroupData)
        .where(
            ExtractionGroupData.session_id == session_id,
            ExtractionGroupData.group_order < group_order,
        )
        .order_by(ExtractionGroupData.group_order.asc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())
