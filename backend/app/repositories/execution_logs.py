"""
Execution log repository — ``workflow_execution_logs`` (updated in place)
and ``workflow_step_logs`` (insert only).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.constants import ExecutionStatus
from app.db.models.workflow_execution_log import WorkflowExecutionLog
from app.db.models.workflow_step_log import WorkflowStepLog

# Columns an execution log may change after creation
_MUTABLE_FIELDS = frozenset({
    "status",
    "current_step_id",
    "current_step_name",
    "error_message",
    "context_data",
    "completed_at",
    "success_notification_sent",
    "failure_notification_sent",
    "notification_sent_at",
})


async def create_execution_log(
    db: AsyncSession,
    *,
    workflow_id: str,
    user_id: str | None = None,
    extraction_type_id: str | None = None,
    status: str = ExecutionStatus.RUNNING.value,
    context_data: dict[str, Any] | None = None,
) -> WorkflowExecutionLog:
    log = WorkflowExecutionLog(
        workflow_id=workflow_id,
        user_id=user_id,
        extraction_type_id=extraction_type_id,
        status=status,
        context_data=context_data or {},
    )
    db.add(log)
    await db.flush()
    return log


async def update_execution_log(
    db: AsyncSession,
    log_id: str,
    **fields: Any,
) -> WorkflowExecutionLog | None:
    """Update mutable execution log fields; unknown keys are ignored."""
    log = await db.get(WorkflowExecutionLog, log_id)
    if log is None:
        return None
    for key, value in fields.items():
        if key in _MUTABLE_FIELDS:
            setattr(log, key, value)
    await db.flush()
    return log


async def create_step_log(
    db: AsyncSession,
    *,
    workflow_execution_log_id: str,
    workflow_id: str,
    step_id: str,
    step_name: str | None,
    step_type: str,
    step_order: int,
    status: str,
    started_at: datetime | None = None,
    completed_at: datetime | None = None,
    duration_ms: int | None = None,
    error_message: str | None = None,
    input_data: Any = None,
    output_data: Any = None,
) -> WorkflowStepLog:
    step_log = WorkflowStepLog(
        workflow_execution_log_id=workflow_execution_log_id,
        workflow_id=workflow_id,
        step_id=step_id,
        step_name=step_name,
        step_type=step_type,
        step_order=step_order,
        status=status,
        started_at=started_at,
        completed_at=completed_at,
        duration_ms=duration_ms,
        error_message=error_message,
        input_data=input_data,
        output_data=output_data,
    )
    db.add(step_log)
    await db.flush()
    return step_log


async def get_execution_log(
    db: AsyncSession,
    log_id: str,
    *,
    with_steps: bool = False,
) -> WorkflowExecutionLog | None:
    stmt = select(WorkflowExecutionLog).where(WorkflowExecutionLog.id == log_id)
    if with_steps:
        stmt = stmt.options(selectinload(WorkflowExecutionLog.step_logs))
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def list_executions(
    db: AsyncSession,
    workflow_id: str,
    *,
    status: str | None = None,
    offset: int = 0,
    limit: int = 50,
) -> tuple[list[WorkflowExecutionLog], int]:
    """Executions of a workflow, newest first, plus the unpaged total."""
    base = select(WorkflowExecutionLog).where(WorkflowExecutionLog.workflow_id == workflow_id)
    if status:
        base = base.where(WorkflowExecutionLog.status == status)

    total = await db.scalar(select(func.count()).select_from(base.subquery()))
    result = await db.execute(
        base.order_by(WorkflowExecutionLog.started_at.desc()).offset(offset).limit(limit)
    )
    return list(result.scalars().all()), int(total or 0)


async def list_step_logs(db: AsyncSession, log_id: str) -> list[WorkflowStepLog]:
    stmt = (
        select(WorkflowStepLog)
        .where(WorkflowStepLog.workflow_execution_log_id == log_id)
        .order_by(WorkflowStepLog.created_at.asc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())
