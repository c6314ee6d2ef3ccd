from datetime import datetime, timezone

from app.repositories import execution_logs as execution_log_repository
from app.repositories import workflows as workflow_repository
from app.workflow.context import StepResult
from app.workflow.log_writer import ExecutionLogWriter


async def test_steps_are_listed_in_order(session_factory):
    async with session_factory() as session:
        async with session.begin():
            await workflow_repository.create_workflow(session, name="wf", workflow_id="wf-1", steps=[
                {"id": "b", "step_order": 2, "step_type": "email"},
                {"id": "a", "step_order": 1, "step_type": "api_call", "next_step_on_success_id": "b"},
            ])
        steps = await workflow_repository.list_steps(session, "wf-1")
    assert [s.id for s in steps] == ["a", "b"]
    assert steps[0].next_step_on_success_id == "b"


async def test_update_ignores_immutable_fields(session_factory):
    async with session_factory() as session:
        async with session.begin():
            log = await execution_log_repository.create_execution_log(session, workflow_id="wf-1")
            await execution_log_repository.update_execution_log(
                session, log.id, status="completed", workflow_id="other", current_step_name="Rename"
            )
        stored = await execution_log_repository.get_execution_log(session, log.id)
    assert stored.status == "completed"
    assert stored.workflow_id == "wf-1"
    assert stored.current_step_name == "Rename"


async def test_list_executions_filters_and_pages(session_factory):
    async with session_factory() as session:
        async with session.begin():
            for status in ("completed", "failed", "completed"):
                await execution_log_repository.create_execution_log(session, workflow_id="wf-1", status=status)
            await execution_log_repository.create_execution_log(session, workflow_id="wf-2")

        rows, total = await execution_log_repository.list_executions(session, "wf-1", status="completed", limit=1)
        all_rows, all_total = await execution_log_repository.list_executions(session, "wf-1")

    assert total == 2
    assert len(rows) == 1
    assert all_total == 3
    assert len(all_rows) == 3


async def test_log_writer_records_steps_and_finish(session_factory):
    writer = ExecutionLogWriter(session_factory)
    log_id = await writer.start(workflow_id="wf-1", user_id="u-1")
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    await writer.record_step(log_id, "wf-1", StepResult(
        step_id="s1", step_name="Call", step_type="api_call", step_order=1, status="failed",
        started_at=now, completed_at=now, error="boom", input_data={"config": {}},
        output_data={"at": now},
    ))
    await writer.finish(log_id, status="failed", completed_at=now, error_message="boom", context_data={"a": 1})

    async with session_factory() as session:
        log = await execution_log_repository.get_execution_log(session, log_id)
        steps = await execution_log_repository.list_step_logs(session, log_id)
    assert log.status == "failed"
    assert log.error_message == "boom"
    assert log.context_data == {"a": 1}
    assert steps[0].error_message == "boom"
    assert steps[0].output_data == {"at": "2024-01-01 00:00:00+00:00"}


async def test_log_writer_without_id_is_a_no_op(session_factory):
    writer = ExecutionLogWriter(session_factory)
    await writer.update(None, status="completed")
    await writer.finish(None, status="completed", completed_at=datetime.now(timezone.utc))
