"""
Configuration reads made by executors.

Executors never touch the ORM: they ask a ConfigStore and receive plain
records.  ``SqlConfigStore`` reads the configuration tables through the
repositories, one short-lived session per read; tests substitute an
in-memory store.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.repositories import api_configs as api_config_repository
from app.repositories import notifications as notification_repository
from app.repositories import users as user_repository
from app.repositories import workflows as workflow_repository


@dataclass(frozen=True)
class ApiCredentials:
    """Base URL + bearer token of a main or secondary API."""

    base_url: str = ""
    auth_token: str = ""
    name: str | None = None


@dataclass(frozen=True)
class AuthConfig:
    """Login endpoint for a username/password → token exchange."""

    login_endpoint: str | None = None
    username: str | None = None
    password: str | None = None
    token_field_name: str = "access_token"
    name: str | None = None

    @property
    def is_complete(self) -> bool:
        return bool(self.login_endpoint and self.username and self.password)


@dataclass(frozen=True)
class EmailConfig:
    """System-wide email provider selection and credentials."""

    provider: str = "office365"
    tenant_id: str | None = None
    client_id: str | None = None
    client_secret: str | None = None
    gmail_client_id: str | None = None
    gmail_client_secret: str | None = None
    gmail_refresh_token: str | None = None
    default_send_from_email: str | None = None


@dataclass(frozen=True)
class NotificationTemplateConfig:
    """Subject/body templates of one notification."""

    id: str
    template_type: str = ""
    template_name: str = ""
    recipient_email: str | None = None
    subject_template: str = ""
    body_template: str = ""
    cc_emails: str | None = None
    bcc_emails: str | None = None
    attach_pdf: bool = False


@dataclass(frozen=True)
class NotificationSettings:
    """Execution notification switches of an extraction type."""

    extraction_type_name: str = ""
    enable_success: bool = False
    success_template_id: str | None = None
    success_recipient_override: str | None = None
    enable_failure: bool = False
    failure_template_id: str | None = None
    failure_recipient_override: str | None = None

    def for_type(self, notification_type: str) -> tuple[bool, str | None, str | None]:
        """(enabled, template id, recipient override) for ``success`` / ``failure``."""
        if notification_type == "failure":
            return self.enable_failure, self.failure_template_id, self.failure_recipient_override
        return self.enable_success, self.success_template_id, self.success_recipient_override


class ConfigStore(Protocol):
    async def main_api_settings(self) -> ApiCredentials | None: ...

    async def secondary_api_config(self, config_id: str) -> ApiCredentials | None: ...

    async def auth_config(self, config_id: str) -> AuthConfig | None: ...

    async def email_config(self) -> EmailConfig | None: ...

    async def user_email(self, user_id: str) -> str | None: ...

    async def notification_template(self, template_id: str) -> NotificationTemplateConfig | None: ...

    async def default_notification_template(self, template_type: str) -> NotificationTemplateConfig | None: ...

    async def notification_settings(self, extraction_type_id: str) -> NotificationSettings | None: ...


class SqlConfigStore:
    """ConfigStore backed by the configuration tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def main_api_settings(self) -> ApiCredentials | None:
        async with self._session_factory() as session:
            row = await api_config_repository.get_main_api_settings(session)
        if row is None:
            return None
        return ApiCredentials(base_url=row.path or "", auth_token=row.password or "", name="main")

    async def secondary_api_config(self, config_id: str) -> ApiCredentials | None:
        async with self._session_factory() as session:
            row = await api_config_repository.get_secondary_api_config(session, config_id)
        if row is None:
            return None
        return ApiCredentials(base_url=row.base_url or "", auth_token=row.auth_token or "", name=row.name)

    async def auth_config(self, config_id: str) -> AuthConfig | None:
        async with self._session_factory() as session:
            row = await api_config_repository.get_auth_config(session, config_id)
        if row is None:
            return None
        return AuthConfig(
            login_endpoint=row.login_endpoint,
            username=row.username,
            password=row.password,
            token_field_name=row.token_field_name or "access_token",
            name=row.name,
        )

    async def email_config(self) -> EmailConfig | None:
        async with self._session_factory() as session:
            row = await api_config_repository.get_email_config(session)
        if row is None:
            return None
        return EmailConfig(
            provider=row.provider or "office365",
            tenant_id=row.tenant_id,
            client_id=row.client_id,
            client_secret=row.client_secret,
            gmail_client_id=row.gmail_client_id,
            gmail_client_secret=row.gmail_client_secret,
            gmail_refresh_token=row.gmail_refresh_token,
            default_send_from_email=row.default_send_from_email,
        )

    async def user_email(self, user_id: str) -> str | None:
        async with self._session_factory() as session:
            return await user_repository.get_user_email(session, user_id)

    async def notification_template(self, template_id: str) -> NotificationTemplateConfig | None:
        async with self._session_factory() as session:
            row = await notification_repository.get_template(session, template_id)
        return _template_config(row) if row is not None else None

    async def default_notification_template(self, template_type: str) -> NotificationTemplateConfig | None:
        async with self._session_factory() as session:
            row = await notification_repository.get_default_template(session, template_type)
        return _template_config(row) if row is not None else None

    async def notification_settings(self, extraction_type_id: str) -> NotificationSettings | None:
        async with self._session_factory() as session:
            row = await workflow_repository.get_extraction_type(session, extraction_type_id)
        if row is None:
            return None
        return NotificationSettings(
            extraction_type_name=row.name or "",
            enable_success=bool(row.enable_success_notifications),
            success_template_id=row.success_notification_template_id,
            success_recipient_override=row.success_recipient_email_override,
            enable_failure=bool(row.enable_failure_notifications),
            failure_template_id=row.failure_notification_template_id,
            failure_recipient_override=row.failure_recipient_email_override,
        )


def _template_config(row) -> NotificationTemplateConfig:
    return NotificationTemplateConfig(
        id=row.id,
        template_type=row.template_type or "",
        template_name=row.template_name or "",
        recipient_email=row.recipient_email,
        subject_template=row.subject_template or "",
        body_template=row.body_template or "",
        cc_emails=row.cc_emails,
        bcc_emails=row.bcc_emails,
        attach_pdf=bool(row.attach_pdf),
    )
