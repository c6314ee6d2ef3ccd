"""
Notification repository — templates (read) and notification logs (insert only).
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.notification import NotificationLog, NotificationTemplate


async def get_template(db: AsyncSession, template_id: str) -> NotificationTemplate | None:
    return await db.get(NotificationTemplate, template_id)


async def get_default_template(db: AsyncSession, template_type: str) -> NotificationTemplate | None:
    """The global default template of a type (oldest first if several)."""
    stmt = (
        select(NotificationTemplate)
        .where(
            NotificationTemplate.template_type == template_type,
            NotificationTemplate.is_global_default.is_(True),
        )
        .order_by(NotificationTemplate.created_at.asc())
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def create_notification_log(db: AsyncSession, **fields: Any) -> NotificationLog:
    log = NotificationLog(**fields)
    db.add(log)
    await db.flush()
    return log


async def list_notification_logs(db: AsyncSession, workflow_execution_log_id: str) -> list[NotificationLog]:
    stmt = (
        select(NotificationLog)
        .where(NotificationLog.workflow_execution_log_id == workflow_execution_log_id)
        .order_by(NotificationLog.sent_at.asc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())
