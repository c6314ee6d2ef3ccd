"""Shared dependencies for API routes."""

from __future__ import annotations

from typing import AsyncGenerator

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.session import async_session
from app.db.session import get_db as _get_db
from app.workflow.service import make_http_client


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async DB session."""
    async for session in _get_db():
        yield session


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Factory for components that open their own sessions (log writer, config store)."""
    return async_session


async def get_http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    """Outbound HTTP client, closed after the request."""
    async with make_http_client() as client:
        yield client
