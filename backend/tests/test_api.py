from types import SimpleNamespace

import httpx
import pytest

from app.api.deps import get_db, get_http_client, get_session_factory
from app.main import app
from app.repositories import workflows as workflow_repository

from conftest import RecordingTransport, json_response


@pytest.fixture
async def client(session_factory):
    outbound = httpx.AsyncClient(transport=RecordingTransport(lambda request: json_response({"id": 1})))

    async def override_db():
        async with session_factory() as session:
            yield session
            await session.commit()

    async def override_http():
        yield outbound

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_http_client] = override_http

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as api:
        yield api

    app.dependency_overrides.clear()
    await outbound.aclose()


async def seed(session_factory, steps):
    async with session_factory() as session:
        async with session.begin():
            await workflow_repository.create_workflow(session, name="wf", steps=steps, workflow_id="wf-1")


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


async def test_execute_returns_final_context(client, session_factory):
    await seed(session_factory, [
        {"id": "s1", "step_order": 1, "step_type": "rename_file", "config_json": {"template": "Remit_{{invoice}}"}},
    ])

    response = await client.post("/api/v1/workflows/wf-1/execute", json={
        "extractedData": {"invoice": "INV-7"},
        "userId": "u-1",
    })

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["status"] == "completed"
    assert body["actualFilename"] == "Remit_INV-7"
    assert body["finalData"]["invoice"] == "INV-7"
    log_id = body["workflowExecutionLogId"]

    detail = await client.get(f"/api/v1/workflows/executions/{log_id}")
    assert detail.status_code == 200
    assert detail.json()["status"] == "completed"
    assert [s["stepId"] for s in detail.json()["steps"]] == ["s1"]

    listing = await client.get("/api/v1/workflows/wf-1/executions")
    assert listing.json()["total"] == 1
    assert listing.json()["data"][0]["id"] == log_id


async def test_failed_execution_answers_500(client, session_factory):
    await seed(session_factory, [
        {"id": "s1", "step_order": 1, "step_type": "rename_file", "config_json": {"template": "partial"}},
        {"id": "s2", "step_order": 2, "step_type": "api_call", "config_json": {}},
    ])

    response = await client.post("/api/v1/workflows/wf-1/execute", json={})

    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "Workflow execution failed"
    assert body["details"] == "API call URL is required"
    assert body["workflowExecutionLogId"]
    assert body["actualFilename"] == "partial"


async def test_unknown_workflow_is_404(client):
    response = await client.post("/api/v1/workflows/nope/execute", json={})
    assert response.status_code == 404


async def test_unknown_execution_is_404(client):
    response = await client.get("/api/v1/workflows/executions/nope")
    assert response.status_code == 404


async def test_execute_async_queues_task(client, monkeypatch):
    from app.tasks import workflow_tasks

    queued = []

    def fake_delay(workflow_id, payload):
        queued.append((workflow_id, payload))
        return SimpleNamespace(id="task-1")

    monkeypatch.setattr(workflow_tasks.execute_workflow_task, "delay", fake_delay)

    response = await client.post("/api/v1/workflows/wf-1/execute/async", json={"pdfFilename": "a.pdf"})

    assert response.status_code == 202
    assert response.json() == {"message": "Workflow execution queued", "taskId": "task-1", "workflowId": "wf-1"}
    assert queued[0][0] == "wf-1"
    assert queued[0][1]["pdf_filename"] == "a.pdf"
