"""
Context synchronisation.

Templates address the same document field either as ``{{orders[0]...}}``
or ``{{extractedData.orders[0]...}}``.  After a step writes top-level
fields taken from an external system, both views must agree, so every
top-level key outside ``SYNC_EXCLUDED_KEYS`` is re-projected into
``extractedData``, overwriting any stale nested copy.
"""

from __future__ import annotations

from typing import Any

from app.core.constants import EXTRACTED_DATA_KEY, SYNC_EXCLUDED_KEYS


def synchronize_extracted_data(data: dict[str, Any]) -> list[str]:
    """Mirror top-level context fields into ``extractedData``; returns synced keys."""
    extracted = data.get(EXTRACTED_DATA_KEY)
    if not isinstance(extracted, dict):
        # CSV documents carry extractedData as a string
        return []

    synced = []
    for key, value in data.items():
        if key in SYNC_EXCLUDED_KEYS:
            continue
        extracted[key] = value
        synced.append(key)
    return synced
