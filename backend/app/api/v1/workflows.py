"""
Workflow execution endpoints — run, queue, and inspect executions.
"""

from __future__ import annotations

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.api.deps import get_db, get_http_client, get_session_factory
from app.api.schemas.workflows import (
    AsyncExecutionResponse,
    ExecutionListResponse,
    ExecutionLogResponse,
    ExecutionRequest,
    ExecutionResponse,
    StepLogResponse,
)
from app.core.logging import get_logger
from app.repositories import execution_logs as execution_log_repository
from app.workflow.errors import WorkflowNotFoundError
from app.workflow.service import execute_workflow

logger = get_logger(__name__)

router = APIRouter(prefix="/workflows", tags=["Workflows"])


def _log_response(log, *, steps=None) -> ExecutionLogResponse:
    response = ExecutionLogResponse.model_validate(log)
    if steps is not None:
        response.steps = [StepLogResponse.model_validate(step) for step in steps]
    return response


# ─── Execute ──────────────────────────────────────────────
@router.post("/{workflow_id}/execute", response_model=ExecutionResponse)
async def execute(
    workflow_id: str,
    request: ExecutionRequest,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    http: httpx.AsyncClient = Depends(get_http_client),
):
    """
    Run a workflow synchronously.

    Returns the final context on success.  A failed execution answers 500
    with the error and the execution log id so the step logs can be read.
    """
    try:
        result = await execute_workflow(workflow_id, request, http=http, session_factory=session_factory)
    except WorkflowNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    if not result.success:
        return JSONResponse(
            status_code=500,
            content={
                "error": "Workflow execution failed",
                "details": result.error,
                "workflowExecutionLogId": result.execution_log_id,
                "actualFilename": result.actual_filename,
            },
        )

    return ExecutionResponse(
        success=True,
        workflow_execution_log_id=result.execution_log_id,
        status=result.status,
        actual_filename=result.actual_filename,
        final_data=result.final_data,
        last_api_response=result.last_api_response,
    )


@router.post("/{workflow_id}/execute/async", response_model=AsyncExecutionResponse, status_code=202)
async def execute_async(workflow_id: str, request: ExecutionRequest):
    """Queue a workflow execution on the Celery ``workflows`` queue."""
    from app.tasks.workflow_tasks import execute_workflow_task

    task = execute_workflow_task.delay(workflow_id, request.model_dump(mode="json"))
    logger.info("Workflow execution queued", workflow_id=workflow_id, task_id=task.id)
    return AsyncExecutionResponse(task_id=task.id, workflow_id=workflow_id)


# ─── Inspect ──────────────────────────────────────────────
@router.get("/executions/{log_id}", response_model=ExecutionLogResponse)
async def get_execution(log_id: str, db: AsyncSession = Depends(get_db)):
    """One execution with its step logs in the order they were written."""
    log = await execution_log_repository.get_execution_log(db, log_id, with_steps=True)
    if log is None:
        raise HTTPException(status_code=404, detail="Execution not found")
    return _log_response(log, steps=log.step_logs)


@router.get("/{workflow_id}/executions", response_model=ExecutionListResponse)
async def list_executions(
    workflow_id: str,
    status: str | None = None,
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    """Executions of one workflow, newest first."""
    rows, total = await execution_log_repository.list_executions(
        db, workflow_id, status=status, offset=offset, limit=limit
    )
    return ExecutionListResponse(
        data=[_log_response(row) for row in rows],
        total=total,
        offset=offset,
        limit=limit,
    )
