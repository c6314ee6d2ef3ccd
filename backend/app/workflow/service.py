"""
Workflow execution service — seeds a context from a request and runs it.

This is the single entry point shared by the HTTP route and the Celery
task::

    async with make_http_client() as http:
        result = await execute_workflow(workflow_id, request, http=http)
"""

from __future__ import annotations

from typing import Any, Callable

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.api.schemas.workflows import ExecutionRequest
from app.core.config import settings
from app.core.constants import FormatType
from app.core.logging import get_logger
from app.db.session import async_session
from app.repositories import workflows as workflow_repository
from app.workflow.config_store import ConfigStore, SqlConfigStore
from app.workflow.context import (
    WorkflowContext,
    add_previous_group_fields,
    build_initial_context,
    parse_extracted_data,
)
from app.workflow.engine import ExecutionResult, WorkflowEngine
from app.workflow.errors import WorkflowNotFoundError
from app.workflow.log_writer import ExecutionLogWriter
from app.workflow.notifications import ExecutionNotifier
from app.workflow.plan import StepDefinition, StepPlan
from app.workflow.step import utc_now
from app.workflow.storage import delete_object, fetch_extracted_data

logger = get_logger(__name__)


def make_http_client() -> httpx.AsyncClient:
    """Outbound client shared by every step of one execution."""
    return httpx.AsyncClient(
        timeout=settings.HTTP_TIMEOUT_SECONDS or None,
        verify=settings.HTTP_VERIFY_SSL,
    )


async def load_plan(session_factory: async_sessionmaker[AsyncSession], workflow_id: str) -> StepPlan:
    async with session_factory() as session:
        rows = await workflow_repository.list_steps(session, workflow_id)
    if not rows:
        raise WorkflowNotFoundError("No steps found for this workflow", details={"workflow_id": workflow_id})
    return StepPlan(StepDefinition.from_row(row) for row in rows)


async def _extraction_type(
    session_factory: async_sessionmaker[AsyncSession],
    extraction_type_id: str | None,
) -> tuple[str | None, str | None]:
    """(format_type, filename_template) of the extraction type, if any."""
    if not extraction_type_id:
        return None, None
    try:
        async with session_factory() as session:
            row = await workflow_repository.get_extraction_type(session, extraction_type_id)
    except Exception as exc:
        logger.error("Failed to load extraction type", extraction_type_id=extraction_type_id, error=str(exc))
        return None, None
    if row is None:
        logger.warning("Extraction type not found", extraction_type_id=extraction_type_id)
        return None, None
    return row.format_type, row.filename_template


async def _previous_groups(
    session_factory: async_sessionmaker[AsyncSession],
    session_id: str,
    group_order: int,
) -> list[dict[str, Any]]:
    try:
        async with session_factory() as session:
            rows = await workflow_repository.list_previous_groups(session, session_id, group_order)
    except Exception as exc:
        logger.error("Failed to load previous page groups", session_id=session_id, error=str(exc))
        return []
    return [{"group_order": row.group_order, "extracted_fields": row.extracted_fields} for row in rows]


async def build_context(
    workflow_id: str,
    request: ExecutionRequest,
    *,
    http: httpx.AsyncClient,
    session_factory: async_sessionmaker[AsyncSession],
) -> WorkflowContext:
    """Seed the context tree from the request, the extraction type and earlier page groups."""
    type_format, type_template = await _extraction_type(session_factory, request.extraction_type_id)
    format_type = type_format or request.format_type or FormatType.JSON.value

    if request.extracted_data_storage_path:
        path = request.extracted_data_storage_path
        logger.info("Loading extracted data from storage", path=path)
        raw = await fetch_extracted_data(http, path)
        await delete_object(http, path)
        extracted = raw
    else:
        raw = request.extracted_data
        extracted = parse_extracted_data(raw, format_type)

    data = build_initial_context(
        extracted_data=extracted,
        original_extracted_data=raw,
        format_type=format_type,
        pdf_filename=request.pdf_filename,
        original_pdf_filename=request.original_pdf_filename,
        extraction_type_filename=request.extraction_type_filename,
        page_group_filename_template=request.page_group_filename_template,
        type_filename_template=type_template,
        pdf_storage_path=request.pdf_storage_path,
        pdf_base64=request.pdf_base64,
        user_id=request.user_id,
        sender_email=request.sender_email,
    )

    if request.session_id and request.group_order and request.group_order > 1:
        groups = await _previous_groups(session_factory, request.session_id, request.group_order)
        added = add_previous_group_fields(data, groups)
        logger.info("Previous page group fields added", session_id=request.session_id, fields=added)

    return WorkflowContext(workflow_id=workflow_id, data=data)


async def execute_workflow(
    workflow_id: str,
    request: ExecutionRequest,
    *,
    http: httpx.AsyncClient,
    session_factory: async_sessionmaker[AsyncSession] = async_session,
    config_store: ConfigStore | None = None,
    log_writer: ExecutionLogWriter | None = None,
    clock: Callable = utc_now,
) -> ExecutionResult:
    """
    Run one workflow to completion.

    Raises:
        WorkflowNotFoundError: The workflow has no steps.
    """
    plan = await load_plan(session_factory, workflow_id)
    ctx = await build_context(workflow_id, request, http=http, session_factory=session_factory)

    config_store = config_store or SqlConfigStore(session_factory)
    log_writer = log_writer or ExecutionLogWriter(session_factory)
    engine = WorkflowEngine(
        http=http,
        config_store=config_store,
        log_writer=log_writer,
        notifier=ExecutionNotifier(config_store=config_store, http=http, log_writer=log_writer, clock=clock),
        clock=clock,
    )
    return await engine.run(
        plan,
        ctx,
        user_id=request.user_id,
        extraction_type_id=request.extraction_type_id,
        trigger_source=request.trigger_source,
    )
