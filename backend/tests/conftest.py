"""Shared fixtures: in-memory config store, mocked HTTP, SQLite sessions."""

from __future__ import annotations

import base64
import io
import json
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

# Settings are read at import time; point the app at SQLite before importing it
os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_CONTEXT_SNAPSHOTS", "true")

import httpx  # noqa: E402
import pytest  # noqa: E402
from pypdf import PdfWriter  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.db.models import Base  # noqa: E402
from app.workflow.config_store import (  # noqa: E402
    ApiCredentials,
    AuthConfig,
    EmailConfig,
    NotificationSettings,
    NotificationTemplateConfig,
)
from app.workflow.context import WorkflowContext  # noqa: E402
from app.workflow.plan import StepDefinition, StepPlan  # noqa: E402
from app.workflow.step import StepEnvironment  # noqa: E402

FIXED_NOW = datetime(2024, 3, 15, 9, 30, 45, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_NOW


@dataclass
class FakeConfigStore:
    """ConfigStore holding plain records in memory."""

    main: ApiCredentials | None = None
    secondary: dict[str, ApiCredentials] = field(default_factory=dict)
    auth: dict[str, AuthConfig] = field(default_factory=dict)
    email: EmailConfig | None = None
    users: dict[str, str] = field(default_factory=dict)
    templates: dict[str, NotificationTemplateConfig] = field(default_factory=dict)
    default_templates: dict[str, NotificationTemplateConfig] = field(default_factory=dict)
    notifications: dict[str, NotificationSettings] = field(default_factory=dict)

    async def main_api_settings(self):
        return self.main

    async def secondary_api_config(self, config_id):
        return self.secondary.get(config_id)

    async def auth_config(self, config_id):
        return self.auth.get(config_id)

    async def email_config(self):
        return self.email

    async def user_email(self, user_id):
        return self.users.get(user_id)

    async def notification_template(self, template_id):
        return self.templates.get(template_id)

    async def default_notification_template(self, template_type):
        return self.default_templates.get(template_type)

    async def notification_settings(self, extraction_type_id):
        return self.notifications.get(extraction_type_id)


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            request.read()
            self.requests.append(request)
            return handler(request)

        super().__init__(record)


def json_response(payload: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(payload).encode(), headers={"Content-Type": "application/json"})


def make_step(step_type: str, config: dict | None = None, **kwargs) -> StepDefinition:
    kwargs.setdefault("id", f"step-{kwargs.get('step_order', 1)}")
    kwargs.setdefault("workflow_id", "wf-1")
    kwargs.setdefault("step_order", 1)
    return StepDefinition(step_type=step_type, config=config or {}, **kwargs)


def make_pdf_base64(pages: int = 1) -> str:
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=200, height=200)
    buffer = io.BytesIO()
    writer.write(buffer)
    return base64.b64encode(buffer.getvalue()).decode("ascii")


@pytest.fixture
def store() -> FakeConfigStore:
    return FakeConfigStore()


@pytest.fixture
def make_env(store):
    """Build a StepEnvironment whose HTTP client answers with ``handler``."""

    def build(handler=None, *, plan: StepPlan | None = None):
        transport = RecordingTransport(handler or (lambda request: json_response({})))
        client = httpx.AsyncClient(transport=transport)
        env = StepEnvironment(http=client, config_store=store, plan=plan, clock=fixed_clock)
        return env, transport

    return build


@pytest.fixture
def ctx() -> WorkflowContext:
    return WorkflowContext(workflow_id="wf-1", data={})


@pytest.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    yield factory
    await engine.dispose()
