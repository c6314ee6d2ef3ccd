"""
StepExecutor — abstract base class for all step executors.

Every step type in a workflow has exactly one executor.  The engine calls
execute() and records timing, logging, branching and errors itself;
executors only implement the step's business logic.

Executors either return a StepOutcome (success) or raise (failure).  A
raised WorkflowError may carry ``output_data`` for the step log.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable

import httpx

from app.core.constants import StepType
from app.core.logging import get_logger
from app.workflow.errors import TransportError

if TYPE_CHECKING:
    from app.workflow.config_store import ConfigStore
    from app.workflow.context import WorkflowContext
    from app.workflow.plan import StepDefinition, StepPlan

logger = get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class StepOutcome:
    """What a successful executor hands back to the engine."""

    output: Any = None
    # Body of an API response, kept as the execution's last API response
    response_data: Any = None
    # Branch advice (conditional check only); None means "sequential"
    next_step_id: str | None = None
    # Branch target the advice rejected; the engine will not fall into it
    rejected_step_id: str | None = None


@dataclass
class StepEnvironment:
    """Collaborators an executor may use besides the context."""

    http: httpx.AsyncClient
    config_store: "ConfigStore"
    plan: "StepPlan | None" = None
    clock: Callable[[], datetime] = field(default=utc_now)


class StepExecutor(ABC):
    """
    Base class for every step executor.

    Subclasses MUST set:
        - step_type (StepType)   — the variant this executor implements
        - description (str)      — human-readable label for logs

    Subclasses MAY set:
        - mutates_context (bool) — True when the step writes values taken
          from an external system; the engine then synchronises
          ``extractedData`` after the step
        - advises_next_step (bool) — True when the outcome's next_step_id
          replaces the configured success target
    """

    step_type: StepType
    description: str = "No description"
    mutates_context: bool = False
    advises_next_step: bool = False

    @abstractmethod
    async def execute(
        self,
        step: "StepDefinition",
        ctx: "WorkflowContext",
        env: StepEnvironment,
    ) -> StepOutcome:
        """
        Run the step's logic against ``ctx.data``.

        Raise a WorkflowError subclass on failure.
        """
        ...

    # ─── Helpers available to all executors ────────────

    @staticmethod
    def _config(step: "StepDefinition") -> dict[str, Any]:
        return step.config or {}

    @staticmethod
    async def _send(env: StepEnvironment, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Issue one outbound request; network failures become TransportError."""
        try:
            return await env.http.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc
