"""Workflow execution request/response schemas (camelCase on the wire)."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.core.constants import MANUAL_TRIGGER


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ExecutionRequest(CamelModel):
    """Seed of one workflow execution."""

    extracted_data: Any = None
    extracted_data_storage_path: str | None = None
    pdf_base64: str | None = None
    pdf_filename: str | None = None
    original_pdf_filename: str | None = None
    pdf_storage_path: str | None = None
    user_id: str | None = None
    extraction_type_id: str | None = None
    extraction_type_filename: str | None = None
    page_group_filename_template: str | None = None
    format_type: str | None = None
    session_id: str | None = None
    group_order: int | None = None
    trigger_source: str = MANUAL_TRIGGER      # manual | email_monitoring
    sender_email: str | None = None


class ExecutionResponse(CamelModel):
    """Outcome of a synchronous execution."""

    success: bool
    workflow_execution_log_id: str | None = None
    status: str
    actual_filename: str | None = None
    final_data: dict[str, Any] = Field(default_factory=dict)
    last_api_response: Any = None
    error: str | None = None


class AsyncExecutionResponse(CamelModel):
    message: str = "Workflow execution queued"
    task_id: str
    workflow_id: str


class StepLogResponse(CamelModel):
    id: str
    step_id: str
    step_name: str | None = None
    step_type: str
    step_order: int
    status: str
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int | None = None
    error_message: str | None = None
    input_data: Any = None
    output_data: Any = None


class ExecutionLogResponse(CamelModel):
    id: str
    workflow_id: str
    user_id: str | None = None
    extraction_type_id: str | None = None
    status: str
    current_step_id: str | None = None
    current_step_name: str | None = None
    error_message: str | None = None
    context_data: Any = None
    started_at: datetime | None = None
    updated_at: datetime | None = None
    completed_at: datetime | None = None
    steps: list[StepLogResponse] = Field(default_factory=list)


class ExecutionListResponse(CamelModel):
    data: list[ExecutionLogResponse]
    total: int
    offset: int
    limit: int
