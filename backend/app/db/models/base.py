"""
SQLAlchemy declarative base and shared utilities for all models.

Convention:
    - Each table lives in its own file under `app/db/models/`
    - Every model file imports `Base` from here
    - The `__init__.py` re-exports all models so `Base.metadata` sees them

Column types stay portable: string UUID keys and JSON (JSONB on
PostgreSQL) run unchanged on PostgreSQL and on SQLite.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


# JSON column that becomes JSONB on PostgreSQL
JSONType = JSON().with_variant(JSONB(), "postgresql")


# ─── Shared helpers ───────────────────────────
def generate_uuid() -> str:
    """Generate a new UUID v4 as its canonical string."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)
