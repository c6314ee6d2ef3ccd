"""
Declarative value mappings.

Response data mappings copy values out of an external response into the
context tree::

    {"responsePath": "data.client.id", "updatePath": "orders[0].consignee.clientId"}

Each mapping is applied independently: a mapping that cannot be navigated
is logged and skipped, the remaining ones still apply.

Field mappings (multipart text parts) resolve a value either as a
hardcoded literal or by substituting ``{{path}}`` variables, then coerce it
to the declared ``dataType``.  Request-body mappings (API endpoints) write
such values into a JSON body at dotted ``fieldName`` paths.
"""

from __future__ import annotations

import math
import re
from typing import Any

from app.core.logging import get_logger
from app.workflow.paths import PathError, get_value_by_path, set_value_by_path
from app.workflow.templates import PLACEHOLDER_RE, stringify_value

logger = get_logger(__name__)

_LEADING_INT_RE = re.compile(r"^\s*[+-]?\d+")
_LEADING_FLOAT_RE = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


# ═══════════════════════════════════════════════════════════
#  Response data mappings
# ═══════════════════════════════════════════════════════════

def collect_response_mappings(
    config: dict[str, Any],
    *,
    legacy_response_key: str = "responseDataPath",
) -> list[dict[str, Any]]:
    """
    Return the mappings a step declares.

    ``responseDataMappings`` wins; otherwise the legacy single pair
    (``responseDataPath`` / ``updateJsonPath``) is promoted to a list.
    """
    mappings = config.get("responseDataMappings")
    if isinstance(mappings, list):
        return mappings
    response_path = config.get(legacy_response_key)
    update_path = config.get("updateJsonPath")
    if response_path and update_path:
        return [{"responsePath": response_path, "updatePath": update_path}]
    return []


def mapping_update_path(mapping: dict[str, Any]) -> str | None:
    """Target path of a response mapping (``fieldName`` is the older name)."""
    return mapping.get("updatePath") or mapping.get("fieldName")


def apply_response_mappings(
    response_data: Any,
    data: dict[str, Any],
    mappings: list[dict[str, Any]],
    *,
    skip_missing: bool = False,
) -> list[dict[str, Any]]:
    """
    Copy response values into the context tree.

    Args:
        response_data: Parsed response body.
        data: Context tree (mutated in place).
        mappings: ``{responsePath, updatePath}`` records.
        skip_missing: Leave the target untouched when the response value
            is absent instead of writing ``None``.

    Returns:
        One ``{responsePath, updatePath, value}`` record per applied mapping.
    """
    applied = []
    for mapping in mappings:
        response_path = mapping.get("responsePath")
        update_path = mapping_update_path(mapping)
        if not response_path or not update_path:
            logger.warning("Skipping mapping with missing responsePath or updatePath", mapping=mapping)
            continue

        value = get_value_by_path(response_data, response_path)
        if value is None and skip_missing:
            logger.info("Response value absent, mapping skipped", response_path=response_path)
            continue

        try:
            set_value_by_path(data, update_path, value)
        except PathError as exc:
            logger.error(
                "Failed to apply response mapping",
                response_path=response_path,
                update_path=update_path,
                error=str(exc),
            )
            continue

        logger.info(
            "Response value mapped",
            response_path=response_path,
            update_path=update_path,
            value_type=type(value).__name__,
        )
        applied.append({"responsePath": response_path, "updatePath": update_path, "value": value})
    return applied


# ═══════════════════════════════════════════════════════════
#  Field mappings
# ═══════════════════════════════════════════════════════════

def resolve_field_mapping(mapping: dict[str, Any], data: dict[str, Any]) -> Any:
    """Resolve a hardcoded/variable field mapping; ``None`` when it yields nothing."""
    mapping_type = mapping.get("type")
    raw_value = mapping.get("value")

    if mapping_type == "hardcoded":
        resolved = raw_value
    elif mapping_type == "variable":
        if raw_value is None:
            return None

        def replace(match: re.Match[str]) -> str:
            value = get_value_by_path(data, match.group(1))
            return match.group(0) if value is None else stringify_value(value)

        resolved = PLACEHOLDER_RE.sub(replace, str(raw_value))
    else:
        logger.warning("Unknown field mapping type, skipping", mapping_type=mapping_type)
        return None

    if resolved is None:
        return None
    return coerce_data_type(resolved, mapping.get("dataType") or "string")


def apply_body_mappings(
    document: Any,
    mappings: list[dict[str, Any]],
    data: dict[str, Any],
) -> list[dict[str, Any]]:
    """
    Write request-body field mappings into a parsed JSON body.

    A ``variable`` mapping names a context path (``vendor`` or
    ``{{vendor}}``); a ``hardcoded`` one carries its value.  Values that do
    not resolve leave the body untouched; the rest are coerced to
    ``dataType`` and set at ``fieldName``, creating objects on the way.
    """
    applied = []
    for mapping in mappings:
        field_name = mapping.get("fieldName")
        mapping_type = mapping.get("type")
        raw_value = mapping.get("value")
        if not field_name:
            logger.warning("Skipping body mapping without fieldName", mapping=mapping)
            continue

        if mapping_type == "hardcoded":
            value = raw_value
        elif mapping_type == "variable":
            path = str(raw_value or "").strip().removeprefix("{{").removesuffix("}}").strip()
            value = get_value_by_path(data, path) if path else None
        else:
            logger.warning("Unknown body mapping type, skipping", mapping_type=mapping_type)
            continue

        if value is None:
            continue
        value = coerce_data_type(value, mapping.get("dataType") or "string")
        try:
            set_value_by_path(document, field_name, value)
        except PathError as exc:
            logger.error("Failed to apply body mapping", field_name=field_name, error=str(exc))
            continue
        applied.append({"fieldName": field_name, "value": value})
    return applied


def parse_float(value: Any) -> float | None:
    """Leading decimal number of the value's text (parseFloat semantics); None if absent."""
    if value is None or isinstance(value, bool):
        return None
    match = _LEADING_FLOAT_RE.match(stringify_value(value))
    return float(match.group(0)) if match else None


def coerce_data_type(value: Any, data_type: str) -> Any:
    """Coerce a resolved value (parseInt / parseFloat semantics; NaN → None)."""
    text = stringify_value(value)
    if data_type == "integer":
        match = _LEADING_INT_RE.match(text)
        return int(match.group(0)) if match else None
    if data_type == "number":
        number = parse_float(text)
        if number is None:
            return None
        return int(number) if math.isfinite(number) and number.is_integer() else number
    if data_type == "boolean":
        return text.lower() == "true"
    return text
