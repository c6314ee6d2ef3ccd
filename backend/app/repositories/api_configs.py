"""
API and email configuration repository.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.api_config import ApiAuthConfig, ApiSettings, SecondaryApiConfig
from app.db.models.email_config import EmailMonitoringConfig


async def get_main_api_settings(db: AsyncSession) -> ApiSettings | None:
    """The main API row (first one by creation time)."""
    stmt = select(ApiSettings).order_by(ApiSettings.created_at.asc()).limit(1)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_secondary_api_config(db: AsyncSession, config_id: str) -> SecondaryApiConfig | None:
    return await db.get(SecondaryApiConfig, config_id)


async def get_auth_config(db: AsyncSession, config_id: str) -> ApiAuthConfig | None:
    return await db.get(ApiAuthConfig, config_id)


async def get_email_config(db: AsyncSession) -> EmailMonitoringConfig | None:
    stmt = select(EmailMonitoringConfig).order_by(EmailMonitoringConfig.created_at.asc()).limit(1)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()
