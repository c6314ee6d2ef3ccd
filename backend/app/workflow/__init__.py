"""
Workflow engine — runs a configured, ordered list of steps against a
shared context tree, with per-step logging, branching and error routing.
"""

from app.workflow.context import StepResult, WorkflowContext
from app.workflow.engine import ExecutionResult, WorkflowEngine
from app.workflow.plan import StepDefinition, StepPlan
from app.workflow.step import StepEnvironment, StepExecutor, StepOutcome

__all__ = [
    "WorkflowEngine",
    "ExecutionResult",
    "WorkflowContext",
    "StepResult",
    "StepDefinition",
    "StepPlan",
    "StepExecutor",
    "StepEnvironment",
    "StepOutcome",
]
