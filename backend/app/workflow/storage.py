"""
Blob store hand-off.

Callers that cannot fit extracted JSON into a request body upload it to the
blob store and pass ``extractedDataStoragePath`` instead.  The object is
temporary: it is fetched once and then deleted on a best-effort basis.
"""

from __future__ import annotations

import json
from typing import Any

import httpx

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)


def _object_url(path: str) -> str:
    base = settings.STORAGE_ENDPOINT.rstrip("/")
    return f"{base}/{settings.STORAGE_BUCKET_NAME}/{path.lstrip('/')}"


def _headers() -> dict[str, str]:
    if not settings.STORAGE_ACCESS_KEY:
        return {}
    return {"Authorization": f"Bearer {settings.STORAGE_ACCESS_KEY}"}


async def fetch_extracted_data(http: httpx.AsyncClient, path: str) -> Any:
    """Load JSON from the blob store; empty, invalid or unreachable content yields ``{}``."""
    try:
        response = await http.get(_object_url(path), headers=_headers())
    except httpx.HTTPError as exc:
        logger.error("Storage fetch failed", path=path, error=str(exc))
        return {}

    if not response.is_success:
        logger.error("Storage fetch failed", path=path, status_code=response.status_code, body=response.text[:500])
        return {}

    text = response.text
    if not text.strip():
        logger.warning("Storage file is empty, using empty object", path=path)
        return {}
    try:
        return json.loads(text)
    except ValueError as exc:
        logger.error("Failed to parse storage JSON", path=path, error=str(exc))
        return {}


async def delete_object(http: httpx.AsyncClient, path: str) -> bool:
    """Best-effort delete; failures are logged and never retried."""
    try:
        response = await http.delete(_object_url(path), headers=_headers())
    except httpx.HTTPError as exc:
        logger.warning("Failed to delete temporary storage object", path=path, error=str(exc))
        return False
    if not response.is_success:
        logger.warning("Failed to delete temporary storage object", path=path, status_code=response.status_code)
        return False
    logger.info("Deleted temporary storage object", path=path)
    return True
