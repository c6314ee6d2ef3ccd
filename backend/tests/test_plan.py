from types import SimpleNamespace

from app.core.constants import StepType
from app.workflow.plan import StepDefinition, StepPlan
from app.workflow.registry import build_registry


def test_plan_sorts_and_resolves_targets():
    plan = StepPlan([
        StepDefinition(id="c", workflow_id="w", step_order=3, step_type="email"),
        StepDefinition(id="a", workflow_id="w", step_order=1, step_type="api_call", next_step_on_success_id="c"),
        StepDefinition(id="b", workflow_id="w", step_order=2, step_type="rename_file"),
    ])
    assert [s.id for s in plan] == ["a", "b", "c"]
    assert plan.index_of("c") == 2
    assert plan.next_index(0, "c") == 2
    assert plan.next_index(0, "zzz") == 1
    assert plan.get(None) is None


def test_step_definition_sources():
    row = SimpleNamespace(
        id="s1", workflow_id="w", step_order=4, step_type="email_action", step_name=None,
        config_json=None, next_step_on_success_id=None, next_step_on_failure_id="s9",
    )
    step = StepDefinition.from_row(row)
    assert step.resolved_type is StepType.EMAIL
    assert step.config == {}
    assert step.label == "email_action #4"
    assert step.next_step_on_failure_id == "s9"

    from_payload = StepDefinition.from_dict({"id": "x", "stepOrder": 2, "stepType": "bogus", "configJson": {"a": 1}})
    assert from_payload.step_order == 2
    assert from_payload.resolved_type is None
    assert from_payload.config == {"a": 1}


def test_registry_covers_every_step_type():
    registry = build_registry()
    assert set(registry) == set(StepType)
    assert all(registry[t].step_type == t for t in StepType)
