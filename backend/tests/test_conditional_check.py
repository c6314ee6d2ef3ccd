import pytest

from app.workflow.plan import StepPlan
from app.workflow.steps.conditional_check import (
    ConditionalCheckStep,
    evaluate_condition,
    normalize_field_path,
    resolve_operator,
)

from conftest import make_step


@pytest.mark.parametrize(
    "operator, actual, expected, met",
    [
        ("exists", "x", None, True),
        ("exists", "", None, False),
        ("not_exists", None, None, True),
        ("is_null", None, None, True),
        ("is_not_null", 0, None, True),
        ("equals", 150, "150", True),
        ("equals", None, "", True),
        ("not_equals", "a", "b", True),
        ("contains", "ACME Corp", "Corp", True),
        ("not_contains", "ACME Corp", "Inc", True),
        ("greater_than", "150.5", "100", True),
        ("greater_than", "abc", "100", False),
        ("less_than", 5, 10, True),
        ("greater_than_or_equal", 10, "10", True),
        ("less_than_or_equal", "11", 10, False),
    ],
)
def test_operator_table(operator, actual, expected, met):
    assert evaluate_condition(operator, actual, expected) is met


def test_aliases_and_unknown_operators():
    assert resolve_operator("") == resolve_operator("exists")
    assert resolve_operator("bogus") is None
    assert evaluate_condition("bogus", "value", None) is True


def test_normalize_field_path():
    assert normalize_field_path(" {{ orders[0].id }} ") == "orders[0].id"
    assert normalize_field_path("total") == "total"


def _plan():
    check = make_step(
        "conditional_check",
        {"fieldPath": "{{total}}", "operator": "greater_than", "expectedValue": "100"},
        id="check",
        step_order=1,
        next_step_on_success_id="email",
        next_step_on_failure_id="rename",
    )
    rename = make_step("rename_file", id="rename", step_order=2, step_name="Rename")
    email = make_step("email", id="email", step_order=3, step_name="Notify")
    return StepPlan([check, rename, email])


async def test_condition_met_selects_success_target(ctx, make_env):
    plan = _plan()
    env, _ = make_env(plan=plan)
    ctx.data["total"] = 150

    outcome = await ConditionalCheckStep().execute(plan.get("check"), ctx, env)

    assert outcome.next_step_id == "email"
    assert outcome.rejected_step_id == "rename"
    assert ctx.data["condition_1_result"] is True
    assert outcome.output["conditionMet"] is True
    assert outcome.output["selectedNextStep"] == "Notify (Step 3)"
    assert outcome.output["selectedNextStepOrder"] == 3
    assert outcome.output["nextStepOnFailure"] == "Rename (Step 2)"


async def test_condition_not_met_selects_failure_target(ctx, make_env):
    plan = _plan()
    env, _ = make_env(plan=plan)
    ctx.data["total"] = 50

    outcome = await ConditionalCheckStep().execute(plan.get("check"), ctx, env)

    assert outcome.next_step_id == "rename"
    assert outcome.rejected_step_id == "email"
    assert ctx.data["condition_1_result"] is False


async def test_unconfigured_target_falls_back_to_sequential(ctx, make_env):
    check = make_step(
        "conditional_check",
        {"fieldPath": "flag", "operator": "equals", "expectedValue": "yes", "storeResultAs": "flagOk"},
        id="check",
        step_order=1,
    )
    nxt = make_step("rename_file", id="next", step_order=2)
    plan = StepPlan([check, nxt])
    env, _ = make_env(plan=plan)

    outcome = await ConditionalCheckStep().execute(check, ctx, env)

    assert outcome.next_step_id is None
    assert ctx.data["flagOk"] is False
    assert outcome.output["selectedNextStep"] == "Sequential (next in order)"
    assert outcome.output["selectedNextStepOrder"] == 2


async def test_sequential_advice_rejects_nothing(ctx, make_env):
    check = make_step(
        "conditional_check",
        {"fieldPath": "amount", "operator": "greater_than", "expectedValue": "100"},
        id="check",
        step_order=1,
        next_step_on_success_id="next",
    )
    plan = StepPlan([check, make_step("rename_file", id="next", step_order=2)])
    env, _ = make_env(plan=plan)
    ctx.data["amount"] = 50

    outcome = await ConditionalCheckStep().execute(check, ctx, env)

    assert outcome.next_step_id is None
    assert outcome.rejected_step_id is None
    assert outcome.output["selectedNextStepOrder"] == 2
