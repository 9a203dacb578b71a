"""Authoring-time validation tests."""

from pathlib import Path

import pytest

from wayfinder.cli_utils.workflow import load_workflow
from wayfinder.config import LimitsConfig
from wayfinder.validation import (
    GraphValidator,
    WorkflowValidationError,
    validate_or_raise,
    validate_workflow,
)
from wayfinder.workflow import Workflow

FIXTURES = Path(__file__).parent.parent / "fixtures"


@pytest.mark.parametrize(
    "name", ["severity.yaml", "graph.yaml", "legacy.yaml", "loop.yaml", "support.yaml"]
)
def test_fixtures_are_valid(name):
    assert validate_workflow(load_workflow(FIXTURES / name)) == []


def test_empty_workflow():
    assert validate_workflow(Workflow()) == ["Workflow has no steps"]


def test_branch_problems_are_reported():
    workflow = Workflow(
        steps=[
            {
                "type": "decision",
                "title": "D",
                "branches": [
                    {"condition": "x >> 1", "target": "A"},
                    {"target": "A"},
                    {"condition": "x == 1", "target": "ghost"},
                ],
                "else_target": "nowhere",
            },
            {"type": "action", "title": "A"},
        ]
    )
    errors = validate_workflow(workflow)
    assert "Step 1, Branch 1: Invalid condition format" in errors
    assert "Step 1, Branch 2: Condition is required when a path is selected" in errors
    assert "Step 1, Branch 3: References non-existent step: ghost" in errors
    assert "Step 1: 'Else' path references non-existent step: nowhere" in errors


def test_jump_problems_are_reported():
    workflow = Workflow(
        steps=[
            {"type": "question", "title": "Q", "jumps": [{"condition": "yes", "target": "A"}]},
            {
                "type": "action",
                "title": "A",
                "jumps": [
                    {"condition": "completed", "target": "Q"},
                    {"condition": "done", "target": "Q"},
                    {"condition": "x == 1"},
                ],
            },
        ]
    )
    errors = validate_workflow(workflow)
    assert errors == [
        "Step 2, Jump 2: Invalid condition format",
        "Step 2, Jump 3: Condition and target are both required",
    ]


def test_duplicate_ids_and_missing_titles():
    workflow = Workflow(
        steps=[
            {"id": "x", "type": "action", "title": "A"},
            {"id": "x", "type": "action", "description": "untitled"},
        ]
    )
    errors = validate_workflow(workflow)
    assert "Duplicate step id 'x'" in errors
    assert "Step 2: Title is required" in errors


def test_sub_flow_requires_graph_mode():
    workflow = Workflow(steps=[{"type": "sub_flow", "title": "S"}])
    errors = validate_workflow(workflow)
    assert "Step 1: Sub-flow steps require graph mode" in errors
    assert "Step 1: Sub-flow target workflow is required" in errors


def test_graph_structure_problems():
    workflow = Workflow(
        graph_mode=True,
        start_node_id="a",
        steps=[
            {"id": "a", "type": "action", "title": "A", "transitions": [{"target_id": "b"}]},
            {
                "id": "b",
                "type": "action",
                "title": "B",
                "transitions": [{"target_id": "a"}, {"target_id": "ghost", "condition": "x ="}],
            },
            {"id": "c", "type": "action", "title": "C", "transitions": [{"target_id": "a"}]},
        ],
    )
    validator = GraphValidator(workflow)
    assert not validator.valid()
    assert "Step 'B', Transition 2: References non-existent step ID: ghost" in validator.errors
    assert "Step 'C' is not reachable from the start node" in validator.errors
    assert "No terminal nodes found - workflow has no ending point" in validator.errors

    errors = validate_workflow(workflow)
    assert "Step 2, Transition 2: Invalid condition format" in errors


def test_missing_start_node():
    workflow = Workflow(
        graph_mode=True,
        start_node_id="ghost",
        steps=[{"id": "a", "type": "action", "title": "A"}],
    )
    validator = GraphValidator(workflow)
    assert not validator.valid()
    assert validator.errors == ["Start node 'ghost' does not exist in the workflow"]


def test_cycles_only_rejected_when_requested():
    workflow = Workflow(
        graph_mode=True,
        steps=[
            {"id": "a", "type": "action", "title": "A", "transitions": [{"target_id": "b"}]},
            {
                "id": "b",
                "type": "decision",
                "title": "B",
                "transitions": [{"target_id": "a", "condition": "x == 1"}, {"target_id": "c"}],
            },
            {"id": "c", "type": "action", "title": "C"},
        ],
    )
    assert GraphValidator(workflow).valid()
    strict = GraphValidator(workflow, allow_cycles=False)
    assert not strict.valid()
    assert strict.errors == ["Cycle detected: A -> B -> A"]


def test_jump_targets_count_for_reachability():
    workflow = Workflow(
        graph_mode=True,
        steps=[
            {
                "id": "a",
                "type": "action",
                "title": "A",
                "jumps": [{"condition": "completed", "target": "C"}],
            },
            {"id": "c", "type": "action", "title": "C"},
        ],
    )
    assert GraphValidator(workflow).valid()


def test_validate_or_raise():
    workflow = Workflow(steps=[{"type": "action", "title": "A"}])
    assert validate_or_raise(workflow) is workflow
    with pytest.raises(WorkflowValidationError) as excinfo:
        validate_or_raise(Workflow())
    assert excinfo.value.errors == ["Workflow has no steps"]


def test_escalate_and_resolve_values_are_checked():
    workflow = Workflow(
        steps=[
            {"type": "escalate", "title": "E", "target_type": "pager", "priority": "asap"},
            {"type": "escalate", "title": "F", "target_type": "queue", "priority": "high"},
            {"type": "resolve", "title": "R", "resolution_type": "vanished"},
        ]
    )
    assert validate_workflow(workflow) == [
        "Step 1: Invalid escalation target type 'pager'",
        "Step 1: Invalid escalation priority 'asap'",
        "Step 3: Invalid resolution type 'vanished'",
    ]


def test_resolve_cannot_have_transitions_in_graph_mode():
    workflow = Workflow(
        graph_mode=True,
        steps=[
            {"id": "r", "type": "resolve", "title": "R", "transitions": [{"target_id": "a"}]},
            {"id": "a", "type": "action", "title": "A"},
        ],
    )
    errors = validate_workflow(workflow)
    assert "Step 1: Resolve steps cannot have outgoing transitions" in errors


def _decisions(count, branches):
    return [
        {
            "id": f"d{number}",
            "type": "decision",
            "title": f"D{number}",
            "branches": [{"condition": f"x == {b}", "target": "end"} for b in range(branches)],
        }
        for number in range(count)
    ] + [{"id": "end", "type": "action", "title": "End"}]


def test_too_many_branches_reported_per_step():
    workflow = Workflow(steps=_decisions(5, 500))
    errors = validate_workflow(workflow)
    assert [e for e in errors if "Too many" in e] == [
        f"Step {number}: Too many branches (max 50)" for number in range(1, 6)
    ]


def test_per_step_limits_follow_configuration():
    workflow = Workflow(
        steps=[
            {
                "type": "question",
                "title": "A rather long title",
                "question": "x" * 40,
                "options": ["a", "b", "c"],
                "jumps": [{"condition": "a", "target": "End"}] * 3,
            },
            {"type": "action", "title": "End"},
        ]
    )
    limits = LimitsConfig(
        max_step_title_length=10, max_step_content_length=20, max_options=2, max_jumps=2
    )
    assert validate_workflow(workflow, limits=limits) == [
        "Step 1: Title is too long (max 10 characters)",
        "Step 1: Question is too large (40 bytes, max 20 bytes)",
        "Step 1: Too many options (max 2)",
        "Step 1: Too many jumps (max 2)",
    ]
    assert validate_workflow(workflow) == []


def test_step_count_limit_is_reported_alone():
    workflow = Workflow(steps=_decisions(5, 500))
    assert validate_workflow(workflow, limits=LimitsConfig(max_steps=3)) == [
        "Workflow cannot exceed 3 steps (currently 6)"
    ]


def test_total_size_limit_is_reported_alone():
    workflow = Workflow(steps=[{"type": "action", "title": "A", "description": "x" * 500}])
    errors = validate_workflow(workflow, limits=LimitsConfig(max_total_steps_size=200))
    assert len(errors) == 1
    assert errors[0].startswith("Total workflow data is too large (")
    assert errors[0].endswith("max 200 bytes)")


def test_validate_or_raise_uses_limits():
    workflow = Workflow(steps=_decisions(2, 1))
    with pytest.raises(WorkflowValidationError):
        validate_or_raise(workflow, limits=LimitsConfig(max_steps=1))
