import json

import httpx
import pytest

from app.core.constants import ExecutionStatus
from app.db.models import ExtractionType, NotificationTemplate
from app.repositories import execution_logs as execution_log_repository
from app.repositories import notifications as notification_repository
from app.workflow.config_store import (
    EmailConfig,
    NotificationSettings,
    NotificationTemplateConfig,
    SqlConfigStore,
)
from app.workflow.context import WorkflowContext
from app.workflow.engine import WorkflowEngine
from app.workflow.log_writer import ExecutionLogWriter
from app.workflow.notifications import ExecutionNotifier, format_html_body, notification_context
from app.workflow.plan import StepPlan

from conftest import FakeConfigStore, RecordingTransport, fixed_clock, json_response, make_step

OFFICE365 = EmailConfig(
    provider="office365",
    tenant_id="tenant",
    client_id="cid",
    client_secret="secret",
    default_send_from_email="noreply@corp.test",
)

HTML_OPEN = '<html><body style="font-family: Arial, sans-serif;">'
HTML_CLOSE = "</body></html>"


def handler_for(graph_status=202, api_status=200):
    def handler(request):
        if request.url.host == "login.microsoftonline.com":
            return json_response({"access_token": "graph-token"})
        if request.url.host == "graph.microsoft.com":
            return httpx.Response(graph_status, text="" if graph_status < 400 else "forbidden")
        return json_response({"ok": True}, status_code=api_status) if api_status < 400 else httpx.Response(api_status, text="boom")

    return handler


def build_engine(store, handler, writer=None):
    transport = RecordingTransport(handler)
    http = httpx.AsyncClient(transport=transport)
    engine = WorkflowEngine(
        http=http,
        config_store=store,
        log_writer=writer,
        notifier=ExecutionNotifier(config_store=store, http=http, log_writer=writer, clock=fixed_clock),
        clock=fixed_clock,
        snapshot_context=False,
    )
    return engine, transport


def passing_plan():
    return StepPlan([
        make_step("conditional_check", {"fieldPath": "total", "operator": "greater_than", "expectedValue": 1}, id="A"),
    ])


def graph_messages(transport):
    return [json.loads(r.content)["message"] for r in transport.requests if r.url.host == "graph.microsoft.com"]


# ─── helpers ───────────────────────────────────────────────

def test_format_html_body_converts_real_and_escaped_newlines():
    assert format_html_body("a\r\nb\\nc\nd") == f"{HTML_OPEN}a<br>b<br>c<br>d{HTML_CLOSE}"


def test_notification_context_defaults():
    context = notification_context({"pdfFilename": "scan.pdf"}, extraction_type_name="Invoices", error_message="bad")
    assert context["pdf_filename"] == "scan.pdf"
    assert context["extraction_type_name"] == "Invoices"
    assert context["error_message"] == "bad"
    assert context["sender_email"] == "unknown"
    assert context["submitter_email"] == "unknown"

    context = notification_context({"originalPdfFilename": "orig.pdf", "pdfFilename": "scan.pdf"})
    assert context["pdf_filename"] == "orig.pdf"
    assert "error_message" not in context
    assert notification_context({})["pdf_filename"] == "unknown.pdf"


# ─── execution notifications ───────────────────────────────

async def test_success_notification_is_sent_logged_and_flagged(session_factory):
    store = FakeConfigStore(email=OFFICE365)
    store.notifications["et-1"] = NotificationSettings(
        extraction_type_name="Invoices", enable_success=True, success_template_id="tpl-s",
    )
    store.templates["tpl-s"] = NotificationTemplateConfig(
        id="tpl-s",
        template_type="success",
        subject_template="{{extraction_type_name}} done: {{pdf_filename}}",
        body_template="Thanks\nBye",
        cc_emails="audit@corp.test",
        bcc_emails="hidden@corp.test",
    )
    writer = ExecutionLogWriter(session_factory)
    engine, transport = build_engine(store, handler_for(), writer)
    ctx = WorkflowContext(workflow_id="wf-1", data={
        "total": 5, "senderEmail": "vendor@acme.test", "originalPdfFilename": "scan.pdf",
    })

    result = await engine.run(passing_plan(), ctx, extraction_type_id="et-1")

    assert result.status == ExecutionStatus.COMPLETED
    assert result.notification == {
        "type": "success", "sent": True, "recipient": "vendor@acme.test", "templateId": "tpl-s", "error": None,
    }
    (message,) = graph_messages(transport)
    assert message["subject"] == "Invoices done: scan.pdf"
    assert message["body"]["content"] == f"{HTML_OPEN}Thanks<br>Bye{HTML_CLOSE}"
    assert message["toRecipients"] == [{"emailAddress": {"address": "vendor@acme.test"}}]
    assert message["ccRecipients"] == [{"emailAddress": {"address": "audit@corp.test"}}]
    assert message["from"] == {"emailAddress": {"address": "noreply@corp.test"}}
    assert "attachments" not in message

    async with session_factory() as session:
        rows = await notification_repository.list_notification_logs(session, result.execution_log_id)
        log = await execution_log_repository.get_execution_log(session, result.execution_log_id)
    (row,) = rows
    assert row.notification_type == "success"
    assert row.send_status == "sent"
    assert row.recipient_email == "vendor@acme.test"
    assert row.template_id == "tpl-s"
    assert row.extraction_type_id == "et-1"
    assert row.bcc_emails == "hidden@corp.test"
    assert row.pdf_attached is False
    assert row.error_message is None
    assert log.success_notification_sent is True
    assert log.failure_notification_sent is False
    assert log.notification_sent_at is not None


async def test_failure_notification_uses_global_default_template(session_factory):
    store = FakeConfigStore(email=OFFICE365)
    store.notifications["et-1"] = NotificationSettings(
        enable_failure=True, failure_recipient_override="ops@corp.test",
    )
    store.default_templates["failure"] = NotificationTemplateConfig(
        id="tpl-default",
        template_type="failure",
        subject_template="Failed: {{error_message}}",
        body_template="{{pdf_filename}} from {{sender_email}}",
        attach_pdf=True,
    )
    writer = ExecutionLogWriter(session_factory)
    engine, transport = build_engine(store, handler_for(api_status=500), writer)
    plan = StepPlan([make_step("api_call", {"url": "https://api.test/x"}, id="A")])
    ctx = WorkflowContext(workflow_id="wf-1", data={"pdfFilename": "scan.pdf", "pdfBase64": "JVBERi0="})

    result = await engine.run(plan, ctx, extraction_type_id="et-1")

    assert result.status == ExecutionStatus.FAILED
    assert result.notification["sent"] is True
    (message,) = graph_messages(transport)
    assert message["subject"] == f"Failed: {result.error}"
    assert message["body"]["content"] == f"{HTML_OPEN}scan.pdf from unknown{HTML_CLOSE}"
    assert message["toRecipients"] == [{"emailAddress": {"address": "ops@corp.test"}}]
    assert message["attachments"][0]["name"] == "scan.pdf"
    assert message["attachments"][0]["contentBytes"] == "JVBERi0="

    async with session_factory() as session:
        (row,) = await notification_repository.list_notification_logs(session, result.execution_log_id)
        log = await execution_log_repository.get_execution_log(session, result.execution_log_id)
    assert row.notification_type == "failure"
    assert row.template_id == "tpl-default"
    assert row.pdf_attached is True
    assert log.status == "failed"
    assert log.failure_notification_sent is True
    assert log.success_notification_sent is False


async def test_send_failure_is_logged_without_changing_the_outcome(session_factory):
    store = FakeConfigStore(email=OFFICE365)
    store.notifications["et-1"] = NotificationSettings(enable_success=True, success_template_id="tpl-s")
    store.templates["tpl-s"] = NotificationTemplateConfig(
        id="tpl-s", recipient_email="ops@corp.test", subject_template="Done", body_template="ok",
    )
    writer = ExecutionLogWriter(session_factory)
    engine, _ = build_engine(store, handler_for(graph_status=403), writer)

    result = await engine.run(passing_plan(), WorkflowContext(workflow_id="wf-1", data={"total": 5}), extraction_type_id="et-1")

    assert result.status == ExecutionStatus.COMPLETED
    assert result.notification["sent"] is False
    assert "Email sending failed" in result.notification["error"]

    async with session_factory() as session:
        (row,) = await notification_repository.list_notification_logs(session, result.execution_log_id)
        log = await execution_log_repository.get_execution_log(session, result.execution_log_id)
    assert row.send_status == "failed"
    assert "forbidden" in row.error_message
    assert log.success_notification_sent is False
    assert log.notification_sent_at is None


@pytest.mark.parametrize(
    "settings, templates",
    [
        (None, {}),
        (NotificationSettings(enable_success=False, success_template_id="tpl-s"), {"tpl-s": "ops@corp.test"}),
        (NotificationSettings(enable_success=True), {}),
        (NotificationSettings(enable_success=True, success_template_id="tpl-s"), {"tpl-s": None}),
    ],
    ids=["no-extraction-type", "disabled", "no-template", "no-recipient"],
)
async def test_nothing_is_sent_without_usable_settings(settings, templates):
    store = FakeConfigStore(email=OFFICE365)
    if settings is not None:
        store.notifications["et-1"] = settings
    for template_id, recipient in templates.items():
        store.templates[template_id] = NotificationTemplateConfig(id=template_id, recipient_email=recipient)
    engine, transport = build_engine(store, handler_for())

    result = await engine.run(passing_plan(), WorkflowContext(workflow_id="wf-1", data={"total": 5}), extraction_type_id="et-1")

    assert result.status == ExecutionStatus.COMPLETED
    assert result.notification is None
    assert transport.requests == []


async def test_no_notification_without_extraction_type():
    store = FakeConfigStore(email=OFFICE365)
    store.notifications["et-1"] = NotificationSettings(enable_success=True)
    engine, transport = build_engine(store, handler_for())

    result = await engine.run(passing_plan(), WorkflowContext(workflow_id="wf-1", data={"total": 5}))

    assert result.notification is None
    assert transport.requests == []


async def test_notifier_errors_are_non_fatal():
    class BrokenNotifier:
        async def notify(self, *args, **kwargs):
            raise RuntimeError("template store down")

    engine = WorkflowEngine(
        http=httpx.AsyncClient(transport=RecordingTransport(handler_for())),
        config_store=FakeConfigStore(),
        notifier=BrokenNotifier(),
        clock=fixed_clock,
        snapshot_context=False,
    )

    result = await engine.run(passing_plan(), WorkflowContext(workflow_id="wf-1", data={"total": 5}), extraction_type_id="et-1")

    assert result.status == ExecutionStatus.COMPLETED
    assert result.notification is None


# ─── SQL store ─────────────────────────────────────────────

async def test_sql_config_store_reads_notification_settings(session_factory):
    async with session_factory() as session:
        async with session.begin():
            session.add(ExtractionType(
                id="et-1",
                name="Invoices",
                enable_failure_notifications=True,
                failure_notification_template_id="tpl-f",
                failure_recipient_email_override="ops@corp.test",
            ))
            session.add(NotificationTemplate(
                id="tpl-f", template_type="failure", subject_template="Failed", body_template="b", attach_pdf=True,
            ))
            session.add(NotificationTemplate(
                id="tpl-g", template_type="success", is_global_default=True, subject_template="Done",
            ))

    store = SqlConfigStore(session_factory)
    settings = await store.notification_settings("et-1")
    assert settings.extraction_type_name == "Invoices"
    assert settings.for_type("failure") == (True, "tpl-f", "ops@corp.test")
    assert settings.for_type("success") == (False, None, None)
    assert await store.notification_settings("missing") is None

    template = await store.notification_template("tpl-f")
    assert template.attach_pdf is True
    assert template.subject_template == "Failed"
    assert (await store.default_notification_template("success")).id == "tpl-g"
    assert await store.default_notification_template("failure") is None
