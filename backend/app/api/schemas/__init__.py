"""API schema package."""

from app.api.schemas.workflows import (
    AsyncExecutionResponse,
    ExecutionListResponse,
    ExecutionLogResponse,
    ExecutionRequest,
    ExecutionResponse,
    StepLogResponse,
)

__all__ = [
    "ExecutionRequest",
    "ExecutionResponse",
    "AsyncExecutionResponse",
    "ExecutionLogResponse",
    "ExecutionListResponse",
    "StepLogResponse",
]
