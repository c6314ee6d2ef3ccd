"""
StepPlan — a workflow's steps resolved once per execution.

Branch targets are stored as step ids (``next_step_on_success_id`` /
``next_step_on_failure_id``).  The plan sorts the steps by ``step_order``
and maps every id to its position so the engine jumps by index instead of
scanning the list after each step.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from app.core.constants import LEGACY_STEP_TYPES, StepType
from app.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class StepDefinition:
    """One configured step, decoupled from the ORM row."""

    id: str
    workflow_id: str
    step_order: int
    step_type: str
    step_name: str = ""
    config: dict[str, Any] = field(default_factory=dict)
    next_step_on_success_id: str | None = None
    next_step_on_failure_id: str | None = None

    @property
    def label(self) -> str:
        return self.step_name or f"{self.step_type} #{self.step_order}"

    @property
    def resolved_type(self) -> StepType | None:
        """The StepType variant, honouring legacy names; None if unknown."""
        if self.step_type in LEGACY_STEP_TYPES:
            return LEGACY_STEP_TYPES[self.step_type]
        try:
            return StepType(self.step_type)
        except ValueError:
            return None

    @classmethod
    def from_row(cls, row: Any) -> "StepDefinition":
        """Build from a WorkflowStep ORM row (or any object with the same attributes)."""
        return cls(
            id=str(row.id),
            workflow_id=str(row.workflow_id),
            step_order=int(row.step_order),
            step_type=row.step_type,
            step_name=row.step_name or "",
            config=dict(row.config_json or {}),
            next_step_on_success_id=str(row.next_step_on_success_id) if row.next_step_on_success_id else None,
            next_step_on_failure_id=str(row.next_step_on_failure_id) if row.next_step_on_failure_id else None,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StepDefinition":
        """Build from a camelCase or snake_case mapping (API payloads, fixtures)."""

        def pick(*names: str, default: Any = None) -> Any:
            for name in names:
                if data.get(name) is not None:
                    return data[name]
            return default

        return cls(
            id=str(pick("id")),
            workflow_id=str(pick("workflowId", "workflow_id", default="")),
            step_order=int(pick("stepOrder", "step_order", default=0)),
            step_type=pick("stepType", "step_type"),
            step_name=pick("stepName", "step_name", default=""),
            config=dict(pick("configJson", "config_json", "config", default={})),
            next_step_on_success_id=pick("nextStepOnSuccessId", "next_step_on_success_id"),
            next_step_on_failure_id=pick("nextStepOnFailureId", "next_step_on_failure_id"),
        )


class StepPlan:
    """Ordered steps of one workflow with id → index resolution."""

    def __init__(self, steps: Iterable[StepDefinition]) -> None:
        self.steps: list[StepDefinition] = sorted(steps, key=lambda s: s.step_order)
        self._index_by_id: dict[str, int] = {s.id: i for i, s in enumerate(self.steps)}

        for step in self.steps:
            for target in (step.next_step_on_success_id, step.next_step_on_failure_id):
                if target and target not in self._index_by_id:
                    logger.warning(
                        "Branch target is not part of this workflow, will run sequentially",
                        step_id=step.id,
                        step_order=step.step_order,
                        target_id=target,
                    )

    def __len__(self) -> int:
        return len(self.steps)

    def __getitem__(self, index: int) -> StepDefinition:
        return self.steps[index]

    def __iter__(self):
        return iter(self.steps)

    def index_of(self, step_id: str | None) -> int | None:
        if not step_id:
            return None
        return self._index_by_id.get(step_id)

    def get(self, step_id: str | None) -> StepDefinition | None:
        index = self.index_of(step_id)
        return None if index is None else self.steps[index]

    def next_index(self, current_index: int, target_id: str | None = None) -> int:
        """Index to run after ``current_index``: the target if known, else the next in order."""
        target_index = self.index_of(target_id)
        if target_index is not None:
            return target_index
        return current_index + 1
