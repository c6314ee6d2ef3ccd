"""
WorkflowEngine — the state machine that runs a workflow's steps.

Responsibilities:
    - Create the execution log and keep it current (step, context snapshot)
    - Skip steps whose ``skipIf`` / ``runIf`` say so
    - Dispatch each step to its executor with timing and logging
    - Synchronise ``extractedData`` after steps that mutate the context
    - Follow success / failure / conditional branch targets, never falling
      through into the target of a rejected conditional branch
    - Write one step log per attempt and the terminal execution status
    - Hand the finished execution to the notifier (success / failure email)
    - Return a complete ExecutionResult

Steps run strictly one after another; nothing is retried.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

import httpx

from app.core.config import settings
from app.core.constants import (
    MANUAL_TRIGGER,
    MAX_STEP_VISITS,
    ExecutionStatus,
    NotificationType,
    StepStatus,
    StepType,
)
from app.core.logging import get_logger
from app.workflow.config_store import ConfigStore
from app.workflow.context import StepResult, WorkflowContext
from app.workflow.errors import WorkflowError
from app.workflow.log_writer import ExecutionLogWriter
from app.workflow.notifications import ExecutionNotifier
from app.workflow.paths import get_value_by_path
from app.workflow.plan import StepDefinition, StepPlan
from app.workflow.registry import build_registry
from app.workflow.step import StepEnvironment, StepExecutor, utc_now
from app.workflow.sync import synchronize_extracted_data

logger = get_logger(__name__)

NOT_IMPLEMENTED_REASON = "Step type not implemented"
MANUAL_NOTIFICATION_REASON = "Notification email steps only run when triggered by email monitoring"


@dataclass
class ExecutionResult:
    """Final outcome of a workflow execution."""

    workflow_id: str
    execution_log_id: str | None
    status: str                     # ExecutionStatus value
    started_at: datetime | None = None
    completed_at: datetime | None = None
    total_duration_ms: int = 0
    steps_run: int = 0
    actual_filename: str | None = None
    final_data: dict[str, Any] = field(default_factory=dict)
    last_api_response: Any = None
    error: str | None = None
    failed_step_id: str | None = None
    step_results: list[dict[str, Any]] = field(default_factory=list)
    notification: dict[str, Any] | None = None

    @property
    def success(self) -> bool:
        return self.status == ExecutionStatus.COMPLETED


def skip_reason(step: StepDefinition, ctx: WorkflowContext, trigger_source: str | None = None) -> str | None:
    """Why this step is skipped (manual notification email, ``skipIf``, ``runIf``), or None to run it."""
    config = step.config or {}
    if (
        trigger_source == MANUAL_TRIGGER
        and step.resolved_type == StepType.EMAIL
        and config.get("isNotificationEmail") is True
    ):
        return MANUAL_NOTIFICATION_REASON
    skip_if = config.get("skipIf")
    if skip_if and get_value_by_path(ctx.data, skip_if) is True:
        return f"skipIf condition met: {skip_if} = true"
    run_if = config.get("runIf")
    if run_if:
        value = get_value_by_path(ctx.data, run_if)
        if value is not True:
            return f"runIf condition not met: {run_if} = {value}"
    return None


class WorkflowEngine:
    """
    Runs a StepPlan against a WorkflowContext.

    Usage::

        engine = WorkflowEngine(http=client, config_store=store, log_writer=writer)
        result = await engine.run(plan, ctx)
    """

    def __init__(
        self,
        *,
        http: httpx.AsyncClient,
        config_store: ConfigStore,
        log_writer: ExecutionLogWriter | None = None,
        notifier: ExecutionNotifier | None = None,
        executors: dict[str, StepExecutor] | None = None,
        clock: Callable[[], datetime] = utc_now,
        snapshot_context: bool | None = None,
        max_step_visits: int = MAX_STEP_VISITS,
    ) -> None:
        self.http = http
        self.config_store = config_store
        self.log_writer = log_writer
        self.notifier = notifier
        self.executors = executors if executors is not None else build_registry()
        self.clock = clock
        self.snapshot_context = settings.LOG_CONTEXT_SNAPSHOTS if snapshot_context is None else snapshot_context
        self.max_step_visits = max_step_visits

    async def run(
        self,
        plan: StepPlan,
        ctx: WorkflowContext,
        *,
        user_id: str | None = None,
        extraction_type_id: str | None = None,
        trigger_source: str = MANUAL_TRIGGER,
    ) -> ExecutionResult:
        started_at = self.clock()
        env = StepEnvironment(http=self.http, config_store=self.config_store, plan=plan, clock=self.clock)

        ctx.execution_id = await self._start_log(ctx, user_id, extraction_type_id)
        log = logger.bind(execution_id=ctx.execution_id, workflow_id=ctx.workflow_id, total_steps=len(plan))
        log.info("Workflow started")

        status = ExecutionStatus.RUNNING
        error: str | None = None
        failed_step: StepDefinition | None = None
        visits = 0
        index = 0
        # Steps on a rejected conditional branch; reachable again only as an explicit target
        rejected: set[str] = set()

        while index < len(plan):
            visits += 1
            if visits > self.max_step_visits:
                error = f"Step visit limit ({self.max_step_visits}) exceeded; check branch targets for a cycle"
                log.error("Workflow aborted", error=error)
                status = ExecutionStatus.FAILED
                failed_step = plan[index]
                break

            step = plan[index]
            if step.id in rejected:
                log.debug("Step on rejected branch passed over", step_id=step.id)
                index += 1
                continue

            step_log = log.bind(step_id=step.id, step_order=step.step_order, step_type=step.step_type)
            await self._mark_current(ctx, step)

            # ── Skip checks ───────────────────────────
            executor = self._executor_for(step)
            reason = skip_reason(step, ctx, trigger_source)
            if reason is None and executor is None:
                reason = NOT_IMPLEMENTED_REASON
            if reason is not None:
                step_log.info("Step skipped", reason=reason)
                await self._record(ctx, self._skipped_result(step, reason))
                index += 1
                continue

            # ── Execute ───────────────────────────────
            step_log.info(f"Step {step.step_order}: {step.label}")
            step_started = self.clock()
            try:
                outcome = await executor.execute(step, ctx, env)
            except Exception as exc:
                if not isinstance(exc, WorkflowError):
                    step_log.exception("Unexpected error in step", error=str(exc))
                result = self._result(step, StepStatus.FAILED, step_started)
                result.error = str(exc)
                result.output_data = getattr(exc, "output_data", None)
                await self._record(ctx, result)
                ctx.add_error(f"Step '{step.label}' failed: {exc}")

                failure_index = plan.index_of(step.next_step_on_failure_id)
                if failure_index is not None:
                    rejected.discard(step.next_step_on_failure_id)
                    step_log.warning(
                        "Step failed, continuing at failure branch",
                        error=str(exc),
                        next_step_id=step.next_step_on_failure_id,
                    )
                    index = failure_index
                    continue

                step_log.error("Step failed, workflow stopping", error=str(exc), duration_ms=result.duration_ms)
                status = ExecutionStatus.FAILED
                error = str(exc)
                failed_step = step
                break

            # ── Post-step phase ───────────────────────
            if executor.mutates_context:
                synced = synchronize_extracted_data(ctx.data)
                if synced:
                    step_log.debug("Context synchronised", keys=synced)
            if outcome.response_data is not None:
                ctx.last_api_response = outcome.response_data

            target = outcome.next_step_id if executor.advises_next_step else step.next_step_on_success_id
            # Only a jump to a known target rejects the other arm
            if executor.advises_next_step and outcome.rejected_step_id and plan.index_of(target) is not None:
                rejected.add(outcome.rejected_step_id)
            if target:
                rejected.discard(target)
            result = self._result(step, StepStatus.COMPLETED, step_started)
            result.output_data = outcome.output
            result.next_step_id = target
            await self._record(ctx, result)
            step_log.info("Step completed", duration_ms=result.duration_ms, next_step_id=target)

            index = plan.next_index(index, target)

        # ── Finalise ──────────────────────────────────
        if status != ExecutionStatus.FAILED:
            status = ExecutionStatus.COMPLETED
        completed_at = self.clock()

        if self.log_writer is not None:
            await self.log_writer.finish(
                ctx.execution_id,
                status=status.value,
                completed_at=completed_at,
                context_data=ctx.snapshot(),
                error_message=error,
                current_step_id=failed_step.id if failed_step else None,
            )

        notification = None
        if self.notifier is not None and extraction_type_id:
            notification = await self._notify(ctx, status, extraction_type_id, error, log)

        result = ExecutionResult(
            workflow_id=ctx.workflow_id,
            execution_log_id=ctx.execution_id,
            status=status.value,
            started_at=started_at,
            completed_at=completed_at,
            total_duration_ms=_elapsed_ms(started_at, completed_at),
            steps_run=len(ctx.step_results),
            actual_filename=ctx.actual_filename,
            final_data=ctx.data,
            last_api_response=ctx.last_api_response,
            error=error,
            failed_step_id=failed_step.id if failed_step else None,
            step_results=[sr.to_dict() for sr in ctx.step_results],
            notification=notification,
        )
        log.info(
            "Workflow finished",
            status=result.status,
            steps_run=result.steps_run,
            duration_ms=result.total_duration_ms,
            actual_filename=result.actual_filename,
        )
        return result

    # ─── Internals ─────────────────────────────────────

    def _executor_for(self, step: StepDefinition) -> StepExecutor | None:
        step_type = step.resolved_type
        return self.executors.get(step_type) if step_type else None

    async def _start_log(self, ctx: WorkflowContext, user_id, extraction_type_id) -> str | None:
        if self.log_writer is None:
            return None
        return await self.log_writer.start(
            workflow_id=ctx.workflow_id,
            user_id=user_id,
            extraction_type_id=extraction_type_id,
        )

    async def _notify(self, ctx: WorkflowContext, status: ExecutionStatus, extraction_type_id: str, error, log):
        notification_type = NotificationType.FAILURE if status == ExecutionStatus.FAILED else NotificationType.SUCCESS
        try:
            return await self.notifier.notify(
                notification_type.value,
                extraction_type_id=extraction_type_id,
                data=ctx.data,
                execution_log_id=ctx.execution_id,
                error_message=error,
            )
        except Exception as exc:
            log.error("Execution notification failed (non-fatal)", notification_type=notification_type.value, error=str(exc))
            return None

    async def _mark_current(self, ctx: WorkflowContext, step: StepDefinition) -> None:
        if self.log_writer is None:
            return
        fields: dict[str, Any] = {"current_step_id": step.id, "current_step_name": step.step_name}
        if self.snapshot_context:
            fields["context_data"] = ctx.snapshot()
        await self.log_writer.update(ctx.execution_id, **fields)

    async def _record(self, ctx: WorkflowContext, result: StepResult) -> None:
        ctx.step_results.append(result)
        if self.log_writer is not None:
            await self.log_writer.record_step(ctx.execution_id, ctx.workflow_id, result)

    def _result(self, step: StepDefinition, status: StepStatus, started_at: datetime) -> StepResult:
        completed_at = self.clock()
        return StepResult(
            step_id=step.id,
            step_name=step.step_name,
            step_type=step.step_type,
            step_order=step.step_order,
            status=status.value,
            started_at=started_at,
            completed_at=completed_at,
            duration_ms=_elapsed_ms(started_at, completed_at),
            input_data={"config": step.config},
        )

    def _skipped_result(self, step: StepDefinition, reason: str) -> StepResult:
        result = self._result(step, StepStatus.SKIPPED, self.clock())
        result.error = reason
        result.output_data = {"skipped": True, "reason": reason}
        if reason != NOT_IMPLEMENTED_REASON:
            result.output_data["conditionalSkip"] = True
        return result


def _elapsed_ms(started_at: datetime, completed_at: datetime) -> int:
    return max(0, int((completed_at - started_at).total_seconds() * 1000))
