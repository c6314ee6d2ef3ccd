"""
User repository — lookups the engine needs from the users table.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.user import User


async def get_user_by_id(db: AsyncSession, user_id: str) -> User | None:
    """Fetch a user by primary key."""
    return await db.get(User, user_id)


async def get_user_email(db: AsyncSession, user_id: str) -> str | None:
    """Email address of an active user, or None."""
    stmt = select(User.email).where(User.id == user_id, User.is_active.is_(True))
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def create_user(db: AsyncSession, *, email: str, full_name: str = "") -> User:
    user = User(email=email.lower().strip(), full_name=full_name.strip())
    db.add(user)
    await db.flush()
    return user
