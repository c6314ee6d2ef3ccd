"""
Celery tasks — background workflow execution.

Each task runs one workflow through the same service the HTTP route uses.
Workers run ``asyncio.run`` per task, so every task gets a fresh engine
bound to its own event loop.
"""

import asyncio

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.api.schemas.workflows import ExecutionRequest
from app.core.config import settings
from app.tasks import celery_app
from app.workflow.service import execute_workflow, make_http_client

logger = structlog.get_logger("tasks.workflows")


async def _run(workflow_id: str, payload: dict) -> dict:
    request = ExecutionRequest.model_validate(payload)
    engine = create_async_engine(settings.DATABASE_URL, echo=False)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        async with make_http_client() as http:
            result = await execute_workflow(workflow_id, request, http=http, session_factory=factory)
    finally:
        await engine.dispose()

    return {
        "success": result.success,
        "workflowExecutionLogId": result.execution_log_id,
        "status": result.status,
        "actualFilename": result.actual_filename,
        "error": result.error,
    }


@celery_app.task(bind=True, name="app.tasks.workflow_tasks.execute_workflow")
def execute_workflow_task(self, workflow_id: str, payload: dict):
    """Execute a workflow in the background; the execution log records the details."""
    task_log = logger.bind(task_id=self.request.id, workflow_id=workflow_id)
    task_log.info("Workflow task started")

    try:
        summary = asyncio.run(_run(workflow_id, payload))
    except Exception as exc:
        task_log.exception("Workflow task crashed", error=str(exc))
        raise

    task_log.info(
        "Workflow task finished",
        status=summary["status"],
        execution_log_id=summary["workflowExecutionLogId"],
    )
    return summary
