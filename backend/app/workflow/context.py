"""
WorkflowContext — mutable state carried through every step of one execution.

``data`` is the JSON-like context tree that templates and paths address
(``extractedData``, ``orders``, ``pdfBase64``, ``renamedFilename`` ...).
The engine owns the context and hands it to each executor; executors read
and write ``data`` through the path helpers.  Everything else on the
context is execution bookkeeping.

A context lives for one execution only.  Its final ``data`` is persisted
as the execution log snapshot and then discarded.
"""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from app.core.constants import EXTRACTED_DATA_KEY, FormatType
from app.core.logging import get_logger
from app.workflow.paths import get_value_by_path, set_value_by_path
from app.workflow.templates import RenderMode, render

logger = get_logger(__name__)


# ═══════════════════════════════════════════════════════════
#  StepResult
# ═══════════════════════════════════════════════════════════

@dataclass
class StepResult:
    """Outcome of a single step attempt (one StepLog row)."""

    step_id: str
    step_name: str
    step_type: str
    step_order: int
    status: str                     # StepStatus value
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0
    error: str | None = None
    input_data: dict[str, Any] | None = None
    output_data: Any = None
    next_step_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialise for JSON storage."""
        return {
            "step_id": self.step_id,
            "step_name": self.step_name,
            "step_type": self.step_type,
            "step_order": self.step_order,
            "status": self.status,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
            "error": self.error,
            "next_step_id": self.next_step_id,
        }


# ═══════════════════════════════════════════════════════════
#  WorkflowContext
# ═══════════════════════════════════════════════════════════

@dataclass
class WorkflowContext:
    """Carries the context tree and execution bookkeeping between steps."""

    workflow_id: str
    data: dict[str, Any] = field(default_factory=dict)
    execution_id: str | None = None

    # Most recent ApiCall / ApiEndpoint response body
    last_api_response: Any = None

    step_results: list[StepResult] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    # ─── Tree access ───────────────────────────────────

    def get(self, path: str) -> Any:
        return get_value_by_path(self.data, path)

    def set(self, path: str, value: Any) -> None:
        set_value_by_path(self.data, path, value)

    def render(self, template: str | None, mode: RenderMode = RenderMode.TEXT, **kwargs: Any) -> str:
        return render(template, self.data, mode, **kwargs)

    @property
    def format_type(self) -> str:
        return str(self.data.get("formatType") or FormatType.JSON)

    @property
    def actual_filename(self) -> str | None:
        return self.data.get("actualFilename") or self.data.get("renamedFilename")

    # ─── Bookkeeping ───────────────────────────────────

    def add_error(self, error: str) -> None:
        """Record a step failure that did not abort the execution."""
        self.errors.append(error)

    def snapshot(self, *, include_binary: bool = False) -> dict[str, Any]:
        """Deep, JSON-safe copy of the tree for log storage."""
        data = dict(self.data)
        if not include_binary and data.get("pdfBase64"):
            data["pdfBase64"] = f"[{len(data['pdfBase64'])} base64 chars]"
        return json.loads(json.dumps(data, default=str))

    def to_summary_dict(self) -> dict[str, Any]:
        """Compact summary for logging."""
        return {
            "execution_id": self.execution_id,
            "workflow_id": self.workflow_id,
            "context_keys": sorted(self.data.keys()),
            "steps_logged": len(self.step_results),
            "actual_filename": self.actual_filename,
            "errors": self.errors,
        }


# ═══════════════════════════════════════════════════════════
#  Seeding
# ═══════════════════════════════════════════════════════════

def parse_extracted_data(raw: Any, format_type: str) -> Any:
    """
    Normalise the caller's extracted data.

    Strings are JSON-parsed, except CSV documents which stay verbatim.
    Empty or unparseable input becomes ``{}``.
    """
    if raw is None:
        return {}
    if not isinstance(raw, str):
        return raw
    if not raw.strip():
        return {}
    if format_type == FormatType.CSV:
        return raw
    try:
        return json.loads(raw)
    except ValueError as exc:
        logger.warning("Extracted data is not valid JSON, using empty object", error=str(exc))
        return {}


def build_initial_context(
    *,
    extracted_data: Any,
    original_extracted_data: Any,
    format_type: str,
    pdf_filename: str | None = None,
    original_pdf_filename: str | None = None,
    extraction_type_filename: str | None = None,
    page_group_filename_template: str | None = None,
    type_filename_template: str | None = None,
    pdf_storage_path: str | None = None,
    pdf_base64: str | None = None,
    user_id: str | None = None,
    sender_email: str | None = None,
) -> dict[str, Any]:
    """Create the context tree an execution starts from."""
    data: dict[str, Any] = {
        EXTRACTED_DATA_KEY: extracted_data,
        "originalExtractedData": original_extracted_data,
        "formatType": format_type,
        "pdfFilename": extraction_type_filename or pdf_filename,
        "originalPdfFilename": original_pdf_filename,
        "extractionTypeFilename": (
            page_group_filename_template or type_filename_template or extraction_type_filename
        ),
        "pageGroupFilenameTemplate": page_group_filename_template,
        "pdfStoragePath": pdf_storage_path,
        "pdfBase64": pdf_base64,
        "userId": user_id,
        "senderEmail": sender_email,
    }

    # Document fields are addressable as {{x}} as well as {{extractedData.x}}.
    # The spread copies references, so both views share nested objects.
    if format_type != FormatType.CSV and isinstance(extracted_data, dict):
        data.update(extracted_data)

    return data


def add_previous_group_fields(data: dict[str, Any], groups: list[dict[str, Any]]) -> int:
    """Expose earlier page-group fields as ``group<N>_<field>``."""
    added = 0
    for group in groups:
        prefix = f"group{group.get('group_order')}_"
        for name, value in (group.get("extracted_fields") or {}).items():
            data[f"{prefix}{name}"] = copy.deepcopy(value)
            added += 1
    return added
