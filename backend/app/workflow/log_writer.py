"""
ExecutionLogWriter — persists the execution log of a run and the rows hanging off it.

Every write opens its own session and commits immediately, so the rows are
visible while the execution is still in flight and one failed write never
poisons the next.  Persistence failures are logged and swallowed: they
never change the outcome of an execution.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.logging import get_logger
from app.repositories import execution_logs as execution_log_repository
from app.repositories import notifications as notification_repository
from app.workflow.context import StepResult

logger = get_logger(__name__)


class ExecutionLogWriter:

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def start(
        self,
        *,
        workflow_id: str,
        user_id: str | None = None,
        extraction_type_id: str | None = None,
        context_data: dict[str, Any] | None = None,
    ) -> str | None:
        """Create the ``running`` execution log; returns its id (None on failure)."""
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    log = await execution_log_repository.create_execution_log(
                        session,
                        workflow_id=workflow_id,
                        user_id=user_id,
                        extraction_type_id=extraction_type_id,
                        context_data=context_data,
                    )
                    log_id = log.id
            return log_id
        except Exception as exc:
            logger.error(
                "Failed to create workflow execution log (non-fatal)",
                workflow_id=workflow_id,
                error=str(exc),
            )
            return None

    async def update(self, log_id: str | None, **fields: Any) -> None:
        if not log_id:
            return
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await execution_log_repository.update_execution_log(session, log_id, **fields)
        except Exception as exc:
            logger.error(
                "Failed to update workflow execution log (non-fatal)",
                log_id=log_id,
                fields=sorted(fields),
                error=str(exc),
            )

    async def finish(
        self,
        log_id: str | None,
        *,
        status: str,
        completed_at: datetime,
        context_data: dict[str, Any] | None = None,
        error_message: str | None = None,
        current_step_id: str | None = None,
    ) -> None:
        fields: dict[str, Any] = {"status": status, "completed_at": completed_at}
        if context_data is not None:
            fields["context_data"] = context_data
        if error_message is not None:
            fields["error_message"] = error_message
        if current_step_id is not None:
            fields["current_step_id"] = current_step_id
        await self.update(log_id, **fields)

    async def record_step(self, log_id: str | None, workflow_id: str, result: StepResult) -> None:
        """Insert one step log row."""
        if not log_id:
            return
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await execution_log_repository.create_step_log(
                        session,
                        workflow_execution_log_id=log_id,
                        workflow_id=workflow_id,
                        step_id=result.step_id,
                        step_name=result.step_name,
                        step_type=result.step_type,
                        step_order=result.step_order,
                        status=result.status,
                        started_at=result.started_at,
                        completed_at=result.completed_at,
                        duration_ms=result.duration_ms,
                        error_message=result.error,
                        input_data=_json_safe(result.input_data),
                        output_data=_json_safe(result.output_data),
                    )
        except Exception as exc:
            logger.error(
                "Failed to write workflow step log (non-fatal)",
                log_id=log_id,
                step_id=result.step_id,
                error=str(exc),
            )

    async def record_notification(self, **fields: Any) -> None:
        """Insert one notification log row."""
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await notification_repository.create_notification_log(session, **fields)
        except Exception as exc:
            logger.error(
                "Failed to write notification log (non-fatal)",
                log_id=fields.get("workflow_execution_log_id"),
                notification_type=fields.get("notification_type"),
                error=str(exc),
            )


def _json_safe(value: Any) -> Any:
    """Round-trip through JSON so datetimes and other objects are storable."""
    if value is None:
        return None
    return json.loads(json.dumps(value, default=str))
