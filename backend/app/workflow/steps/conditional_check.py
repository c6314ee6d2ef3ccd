"""
ConditionalCheckStep — evaluate one field and advise the next step.

The result is stored in the context under ``storeResultAs`` (default
``condition_<stepOrder>_result``).  A false condition is not a failure:
the step completes and routes to ``nextStepOnFailureId`` when one is set,
otherwise execution continues in step order.  When the check jumps to a
configured target, the target of the branch not taken is reported as
rejected so the engine does not reach it by falling through in step order.
"""

from __future__ import annotations

import operator as op
from typing import Any, Callable

from app.core.constants import OPERATOR_ALIASES, ConditionOperator, StepType
from app.core.logging import get_logger
from app.workflow.mappings import parse_float
from app.workflow.step import StepExecutor, StepOutcome
from app.workflow.templates import stringify_value

logger = get_logger(__name__)

SEQUENTIAL = "Sequential (next in order)"
NOT_CONFIGURED = "Not configured"


def _text(value: Any) -> str:
    # A missing value compares as the empty string
    return "" if value is None else stringify_value(value)


def _present(value: Any) -> bool:
    return value is not None and value != ""


def _numeric(compare: Callable[[float, float], bool]) -> Callable[[Any, Any], bool]:
    def check(actual: Any, expected: Any) -> bool:
        a, b = parse_float(actual), parse_float(expected)
        return a is not None and b is not None and compare(a, b)
    return check


OPERATORS: dict[ConditionOperator, Callable[[Any, Any], bool]] = {
    ConditionOperator.EXISTS: lambda actual, _: _present(actual),
    ConditionOperator.IS_NOT_NULL: lambda actual, _: actual is not None,
    ConditionOperator.IS_NULL: lambda actual, _: actual is None,
    ConditionOperator.NOT_EXISTS: lambda actual, _: not _present(actual),
    ConditionOperator.EQUALS: lambda actual, expected: _text(actual) == _text(expected),
    ConditionOperator.NOT_EQUALS: lambda actual, expected: _text(actual) != _text(expected),
    ConditionOperator.CONTAINS: lambda actual, expected: _text(expected) in _text(actual),
    ConditionOperator.NOT_CONTAINS: lambda actual, expected: _text(expected) not in _text(actual),
    ConditionOperator.GREATER_THAN: _numeric(op.gt),
    ConditionOperator.LESS_THAN: _numeric(op.lt),
    ConditionOperator.GREATER_THAN_OR_EQUAL: _numeric(op.ge),
    ConditionOperator.LESS_THAN_OR_EQUAL: _numeric(op.le),
}


def resolve_operator(name: str | None) -> ConditionOperator | None:
    if not name:
        return ConditionOperator.EXISTS
    if name in OPERATOR_ALIASES:
        return OPERATOR_ALIASES[name]
    try:
        return ConditionOperator(name)
    except ValueError:
        return None


def evaluate_condition(operator_name: str | None, actual: Any, expected: Any) -> bool:
    """Apply an operator; unknown operators behave like ``exists``."""
    operator = resolve_operator(operator_name)
    if operator is None:
        logger.warning("Unknown operator, defaulting to 'exists'", operator=operator_name)
        operator = ConditionOperator.EXISTS
    return OPERATORS[operator](actual, expected)


def normalize_field_path(raw: str) -> str:
    """Strip an enclosing ``{{ }}`` from a configured field path."""
    path = raw.strip()
    if path.startswith("{{"):
        path = path[2:]
    if path.endswith("}}"):
        path = path[:-2]
    return path.strip()


class ConditionalCheckStep(StepExecutor):
    step_type = StepType.CONDITIONAL_CHECK
    description = "Evaluate a condition and choose the next step"
    advises_next_step = True

    async def execute(self, step, ctx, env) -> StepOutcome:
        config = self._config(step)

        field_path = normalize_field_path(
            config.get("fieldPath") or config.get("jsonPath") or config.get("checkField") or ""
        )
        operator_name = config.get("operator") or config.get("conditionType") or ConditionOperator.EXISTS.value
        expected = config.get("expectedValue")
        store_as = config.get("storeResultAs") or f"condition_{step.step_order}_result"

        actual = ctx.get(field_path) if field_path else None
        condition_met = evaluate_condition(operator_name, actual, expected)
        ctx.set(store_as, condition_met)

        success = env.plan.get(step.next_step_on_success_id) if env.plan else None
        failure = env.plan.get(step.next_step_on_failure_id) if env.plan else None

        # Targets outside the workflow fall back to step order
        selected = success if condition_met else failure
        selected_id = selected.id if selected else None
        if env.plan is None:
            selected_id = step.next_step_on_success_id if condition_met else step.next_step_on_failure_id

        sequential_order = None
        if selected is None and env.plan:
            index = env.plan.index_of(step.id)
            if index is not None and index + 1 < len(env.plan):
                sequential_order = env.plan[index + 1].step_order

        verdict = "CONDITION MET" if condition_met else "CONDITION NOT MET"
        selected_name = f"{selected.label} (Step {selected.step_order})" if selected else SEQUENTIAL
        routing = f"{verdict} ({operator_name} = {str(condition_met).upper()}) → Should route to: {selected_name}"

        logger.info(
            "Conditional check evaluated",
            step_id=step.id,
            field_path=field_path,
            operator=operator_name,
            condition_met=condition_met,
            next_step_id=selected_id,
        )

        output = {
            "conditionMet": condition_met,
            "fieldPath": field_path,
            "operator": operator_name,
            "actualValue": actual,
            "expectedValue": expected,
            "storeResultAs": store_as,
            "nextStepOnSuccess": f"{success.label} (Step {success.step_order})" if success else NOT_CONFIGURED,
            "nextStepOnSuccessOrder": success.step_order if success else None,
            "nextStepOnFailure": f"{failure.label} (Step {failure.step_order})" if failure else NOT_CONFIGURED,
            "nextStepOnFailureOrder": failure.step_order if failure else None,
            "selectedNextStep": selected_name,
            "selectedNextStepOrder": selected.step_order if selected else sequential_order,
            "routingDecision": routing,
        }
        # Sequential advice rejects nothing: the next step in order still runs
        rejected_id = None
        if selected_id:
            rejected_id = step.next_step_on_failure_id if condition_met else step.next_step_on_success_id
        return StepOutcome(output=output, next_step_id=selected_id, rejected_step_id=rejected_id)
