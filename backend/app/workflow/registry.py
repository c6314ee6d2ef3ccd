"""
Executor registry — one executor per StepType.

Adding a step type means adding a StepType member, an executor class and
an entry here; ``build_registry`` refuses to start with a type uncovered.
"""

from __future__ import annotations

from app.core.constants import StepType
from app.workflow.step import StepExecutor
from app.workflow.steps.api_call import ApiCallStep
from app.workflow.steps.api_endpoint import ApiEndpointStep
from app.workflow.steps.conditional_check import ConditionalCheckStep
from app.workflow.steps.email import EmailStep
from app.workflow.steps.multipart_upload import MultipartFormUploadStep
from app.workflow.steps.rename_file import RenameFileStep

EXECUTOR_CLASSES: tuple[type[StepExecutor], ...] = (
    ApiCallStep,
    ApiEndpointStep,
    EmailStep,
    ConditionalCheckStep,
    MultipartFormUploadStep,
    RenameFileStep,
)


def build_registry() -> dict[StepType, StepExecutor]:
    registry = {cls.step_type: cls() for cls in EXECUTOR_CLASSES}
    missing = set(StepType) - set(registry)
    if missing:
        raise RuntimeError(f"No executor registered for step types: {sorted(missing)}")
    return registry
