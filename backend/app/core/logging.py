"""
Structured logging via structlog, bridged onto the standard library.

Call ``setup_logging()`` once at process start (API lifespan, Celery worker).
Modules obtain loggers with ``get_logger(__name__)`` and log key/value
events::

    logger = get_logger(__name__)
    logger.info("Step completed", step_order=3, duration_ms=41)
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from app.core.config import settings

_configured = False


def setup_logging(level: str | int | None = None) -> None:
    """Configure structlog + stdlib logging (console in dev, JSON otherwise)."""
    global _configured

    level = level or settings.LOG_LEVEL
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.APP_ENV == "development":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=shared_processors,
    )

    root_logger = logging.getLogger()
    if not _configured:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # httpx logs every request line at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    _configured = True


def get_logger(*args: Any, **kwargs: Any) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger (bound to the module name by convention)."""
    return structlog.get_logger(*args, **kwargs)


def mask_secret(value: str | None, visible: int = 10) -> str:
    """Truncate a credential for log output."""
    if not value:
        return "MISSING"
    return f"{value[:visible]}..."
