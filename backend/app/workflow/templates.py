"""
Template rendering for ``{{path}}`` placeholders.

Templates appear in URLs, JSON request bodies, filenames and email fields.
Every placeholder is resolved through the path resolver and injected
according to the target surface:

    RenderMode.TEXT  — literal text (email, filenames); objects as JSON
    RenderMode.JSON  — escaped for embedding inside a JSON string literal
    RenderMode.URL   — percent-encoded (encodeURIComponent rules)

``{{extractedData}}`` and ``{{orders}}`` are reserved: they stand for whole
sub-documents and are spliced in as raw JSON rather than as scalars.

Placeholders that do not resolve are left verbatim so the failure is
visible downstream.  Rendering is a single pass — substituted values are
never re-scanned.
"""

from __future__ import annotations

import json
import math
import re
from enum import StrEnum
from typing import Any
from urllib.parse import quote

from app.core.constants import EXTRACTED_DATA_KEY, ORDERS_KEY
from app.workflow.paths import get_value_by_path

PLACEHOLDER_RE = re.compile(r"\{\{([^}]+)\}\}")
# {name} or ${name} inside URL path segments
PATH_VARIABLE_RE = re.compile(r"\$\{([^}]+)\}|\{([^}]+)\}")
# {{name}} or ${name} inside query parameter values
QUERY_VARIABLE_RE = re.compile(r"\{\{([^}]+)\}\}|\$\{([^}]+)\}")

RESERVED_OBJECT_PLACEHOLDERS = frozenset({EXTRACTED_DATA_KEY, ORDERS_KEY})

_URL_SAFE = "-_.!~*'()"


class RenderMode(StrEnum):
    TEXT = "text"
    JSON = "json"
    URL = "url"


def to_json(value: Any) -> str:
    """Compact JSON, the way the wire formats expect it."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def stringify_value(value: Any) -> str:
    """Render a context value as text (``true``, ``150``, compact JSON ...)."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return to_json(value)
    return str(value)


def escape_json_string(value: str) -> str:
    return (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )


def escape_single_quotes(value: str) -> str:
    """OData string literals double embedded single quotes."""
    return value.replace("'", "''")


def odata_filter_value(value: str) -> str:
    """Make a value safe inside a ``$filter`` expression."""
    return escape_single_quotes(value.replace(")(", ")-("))


def encode_uri_component(value: str) -> str:
    """Percent-encode like ``encodeURIComponent``."""
    return quote(value, safe=_URL_SAFE)


def find_placeholders(template: str) -> list[str]:
    return [m.group(1).strip() for m in PLACEHOLDER_RE.finditer(template or "")]


def _reserved_object_json(path: str, data: dict[str, Any]) -> str | None:
    if path == EXTRACTED_DATA_KEY:
        extracted = data.get(EXTRACTED_DATA_KEY)
        if isinstance(extracted, (dict, list)):
            return to_json(extracted)
        original = data.get("originalExtractedData")
        if isinstance(original, str):
            return original
        return None
    if path == ORDERS_KEY:
        orders = data.get(ORDERS_KEY)
        if isinstance(orders, list):
            return to_json(orders)
    return None


def _inject(raw: str, mode: RenderMode, quote_escape: bool) -> str:
    if quote_escape:
        raw = escape_single_quotes(raw)
    if mode is RenderMode.JSON:
        return escape_json_string(raw)
    if mode is RenderMode.URL:
        return encode_uri_component(raw)
    return raw


def render(
    template: str | None,
    data: dict[str, Any],
    mode: RenderMode = RenderMode.TEXT,
    *,
    escape_quotes: bool = False,
    fallback: Any = None,
    mappings: dict[str, Any] | None = None,
) -> str:
    """
    Substitute every ``{{path}}`` in ``template``.

    Args:
        template: Template text; ``None`` renders as ``""``.
        data: Context tree the paths resolve against.
        mode: Injection mode for scalar values.
        escape_quotes: Double single quotes (OData literals) before injection.
        fallback: Secondary tree consulted when a path is missing in ``data``.
        mappings: When given, receives ``path → resolved value`` for auditing.
    """
    if not template:
        return template or ""

    def replace(match: re.Match[str]) -> str:
        path = match.group(1).strip()

        if path in RESERVED_OBJECT_PLACEHOLDERS:
            spliced = _reserved_object_json(path, data)
            if spliced is not None:
                if mappings is not None:
                    mappings[path] = data.get(path)
                return encode_uri_component(spliced) if mode is RenderMode.URL else spliced

        value = get_value_by_path(data, path)
        if value is None and fallback is not None:
            value = get_value_by_path(fallback, path)
        if mappings is not None:
            mappings[path] = value
        if value is None:
            return match.group(0)
        return _inject(stringify_value(value), mode, escape_quotes)

    return PLACEHOLDER_RE.sub(replace, template)


def render_path_variables(path_template: str, data: dict[str, Any]) -> str:
    """Substitute ``{name}`` / ``${name}`` URL path variables (raw values)."""

    def replace(match: re.Match[str]) -> str:
        name = (match.group(1) or match.group(2)).strip()
        value = get_value_by_path(data, name)
        if value is None:
            return match.group(0)
        return stringify_value(value)

    return PATH_VARIABLE_RE.sub(replace, path_template or "")


def render_query_value(value_template: str, data: dict[str, Any], *, odata_filter: bool = False) -> str:
    """Substitute ``{{name}}`` / ``${name}`` inside a query parameter value."""

    def replace(match: re.Match[str]) -> str:
        name = (match.group(1) or match.group(2)).strip()
        value = get_value_by_path(data, name)
        if value is None:
            return match.group(0)
        raw = stringify_value(value)
        return odata_filter_value(raw) if odata_filter else raw

    return QUERY_VARIABLE_RE.sub(replace, value_template or "")
