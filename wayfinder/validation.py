"""Authoring-time checks for workflow definitions.

Nothing here runs on the execution path: a run copes with malformed data
on its own (unparseable conditions are false, dangling targets fall back
to the sequential step). These checks let authors find such problems
before operators do.
"""

from __future__ import annotations

from collections import Counter
from typing import Dict, Iterable, List, Optional

from .conditions import is_valid_condition
from .config import LimitsConfig
from .constants import (
    ACTION_COMPLETED_JUMP,
    ESCALATION_PRIORITIES,
    ESCALATION_TARGET_TYPES,
    RESOLUTION_TYPES,
)
from .resolver import resolve_step_reference
from .steps import (
    ActionStep,
    DecisionStep,
    EscalateStep,
    QuestionStep,
    ResolveStep,
    Step,
    SubFlowStep,
)
from .workflow import Workflow


class WorkflowValidationError(ValueError):
    """Raised when a workflow definition fails validation."""

    def __init__(self, errors: Iterable[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class GraphValidator:
    """Structural checks for graph-mode workflows.

    - the graph has steps and its start node exists
    - every transition target exists
    - every step is reachable from the start node
    - at least one terminal node exists
    - optionally, the graph has no cycles
    """

    def __init__(self, workflow: Workflow, allow_cycles: bool = True) -> None:
        self._workflow = workflow
        self._steps: Dict[str, Step] = workflow.graph_steps()
        self._allow_cycles = allow_cycles
        self.errors: List[str] = []

    def valid(self) -> bool:
        self.errors = []
        if not self._steps:
            self.errors.append("Workflow has no steps")
            return False

        self._validate_start_node()
        self._validate_integrity()
        self._validate_reachability()
        self._validate_terminals()
        if not self._allow_cycles:
            self._validate_acyclic()
        return not self.errors

    def _title(self, step_id: str) -> str:
        step = self._steps.get(step_id)
        return step.title if step is not None and step.title else step_id

    def _targets(self, step: Step) -> List[str]:
        """Transition targets plus resolvable jump targets."""
        targets = [t.target_id for t in step.transitions if t.target_id]
        for jump in step.jumps:
            target = resolve_step_reference(jump.target, self._workflow) if jump.target else None
            if target is not None:
                targets.append(target.id)
        return targets

    def _validate_start_node(self) -> None:
        start_id = self._workflow.start_node_id
        if start_id and start_id not in self._steps:
            self.errors.append(f"Start node '{start_id}' does not exist in the workflow")

    def _validate_integrity(self) -> None:
        for step_id, step in self._steps.items():
            for index, transition in enumerate(step.transitions, start=1):
                if transition.target_id and transition.target_id not in self._steps:
                    self.errors.append(
                        f"Step '{self._title(step_id)}', Transition {index}: "
                        f"References non-existent step ID: {transition.target_id}"
                    )

    def _validate_reachability(self) -> None:
        start = self._workflow.start_node()
        if start is None:
            return
        visited = set()
        queue = [start.id]
        while queue:
            current = queue.pop(0)
            if current in visited or current not in self._steps:
                continue
            visited.add(current)
            queue.extend(t for t in self._targets(self._steps[current]) if t not in visited)
        for step_id in self._steps:
            if step_id not in visited:
                self.errors.append(
                    f"Step '{self._title(step_id)}' is not reachable from the start node"
                )

    def _validate_terminals(self) -> None:
        if not self._workflow.terminal_nodes():
            self.errors.append("No terminal nodes found - workflow has no ending point")

    def _validate_acyclic(self) -> None:
        # white: unvisited, gray: on the current path, black: finished
        colors = {step_id: "white" for step_id in self._steps}
        for step_id in self._steps:
            if colors[step_id] == "white":
                cycle = self._find_cycle(step_id, colors, [])
                if cycle:
                    path = " -> ".join(self._title(i) for i in cycle)
                    self.errors.append(f"Cycle detected: {path}")
                    return

    def _find_cycle(self, step_id: str, colors: Dict[str, str], path: List[str]) -> Optional[List[str]]:
        colors[step_id] = "gray"
        path.append(step_id)
        for target in self._targets(self._steps[step_id]):
            if target not in colors:
                continue
            if colors[target] == "gray":
                return path[path.index(target):] + [target]
            if colors[target] == "white":
                cycle = self._find_cycle(target, colors, path)
                if cycle:
                    return cycle
        path.pop()
        colors[step_id] = "black"
        return None


def _reference_error(workflow: Workflow, reference: Optional[str]) -> bool:
    return bool(reference) and resolve_step_reference(reference, workflow) is None


_TEXT_FIELDS = ("description", "question", "instructions", "message", "content")


def _workflow_size_errors(workflow: Workflow, limits: LimitsConfig) -> List[str]:
    if len(workflow.steps) > limits.max_steps:
        return [
            f"Workflow cannot exceed {limits.max_steps} steps "
            f"(currently {len(workflow.steps)})"
        ]
    total = len(workflow.model_dump_json(include={"steps"}).encode("utf-8"))
    if total > limits.max_total_steps_size:
        return [
            f"Total workflow data is too large "
            f"({total} bytes, max {limits.max_total_steps_size} bytes)"
        ]
    return []


def _step_size_errors(number: int, step: Step, limits: LimitsConfig) -> List[str]:
    errors: List[str] = []
    if len(step.title) > limits.max_step_title_length:
        errors.append(
            f"Step {number}: Title is too long (max {limits.max_step_title_length} characters)"
        )
    for name in _TEXT_FIELDS:
        value = getattr(step, name, None)
        if not isinstance(value, str):
            continue
        size = len(value.encode("utf-8"))
        if size > limits.max_step_content_length:
            errors.append(
                f"Step {number}: {name.capitalize()} is too large "
                f"({size} bytes, max {limits.max_step_content_length} bytes)"
            )
    if isinstance(step, QuestionStep) and len(step.options) > limits.max_options:
        errors.append(f"Step {number}: Too many options (max {limits.max_options})")
    if isinstance(step, DecisionStep) and len(step.branches) > limits.max_branches:
        errors.append(f"Step {number}: Too many branches (max {limits.max_branches})")
    if len(step.jumps) > limits.max_jumps:
        errors.append(f"Step {number}: Too many jumps (max {limits.max_jumps})")
    return errors


def _support_step_errors(workflow: Workflow, number: int, step: Step) -> List[str]:
    errors: List[str] = []
    if isinstance(step, EscalateStep):
        if step.target_type and step.target_type not in ESCALATION_TARGET_TYPES:
            errors.append(f"Step {number}: Invalid escalation target type '{step.target_type}'")
        if step.priority and step.priority not in ESCALATION_PRIORITIES:
            errors.append(f"Step {number}: Invalid escalation priority '{step.priority}'")
    elif isinstance(step, ResolveStep):
        if step.resolution_type and step.resolution_type not in RESOLUTION_TYPES:
            errors.append(f"Step {number}: Invalid resolution type '{step.resolution_type}'")
        if workflow.graph_mode and step.transitions:
            errors.append(f"Step {number}: Resolve steps cannot have outgoing transitions")
    return errors


def validate_workflow(
    workflow: Workflow,
    allow_cycles: bool = True,
    limits: Optional[LimitsConfig] = None,
) -> List[str]:
    """Return a list of human-readable problems; empty when the workflow is sound.

    Size limits come from ``limits``, or the defaults when it is omitted. A
    workflow over the step count or total size limit gets only that error.
    """
    if not workflow.steps:
        return ["Workflow has no steps"]
    limits = limits or LimitsConfig()
    errors = _workflow_size_errors(workflow, limits)
    if errors:
        return errors

    duplicates = [i for i, n in Counter(s.id for s in workflow.steps).items() if n > 1]
    for step_id in duplicates:
        errors.append(f"Duplicate step id '{step_id}'")

    for number, step in enumerate(workflow.steps, start=1):
        if not step.title:
            errors.append(f"Step {number}: Title is required")
        errors.extend(_step_size_errors(number, step, limits))
        errors.extend(_support_step_errors(workflow, number, step))

        if isinstance(step, DecisionStep):
            for b_number, branch in enumerate(step.branches, start=1):
                prefix = f"Step {number}, Branch {b_number}"
                if branch.target and not branch.condition:
                    errors.append(f"{prefix}: Condition is required when a path is selected")
                if branch.condition and not is_valid_condition(branch.condition):
                    errors.append(f"{prefix}: Invalid condition format")
                if _reference_error(workflow, branch.target):
                    errors.append(f"{prefix}: References non-existent step: {branch.target}")
            if _reference_error(workflow, step.else_target):
                errors.append(
                    f"Step {number}: 'Else' path references non-existent step: {step.else_target}"
                )

        for j_number, jump in enumerate(step.jumps, start=1):
            prefix = f"Step {number}, Jump {j_number}"
            if not jump.condition or not jump.target:
                errors.append(f"{prefix}: Condition and target are both required")
                continue
            literal = isinstance(step, QuestionStep) or (
                isinstance(step, ActionStep) and jump.condition == ACTION_COMPLETED_JUMP
            )
            if not literal and not is_valid_condition(jump.condition):
                errors.append(f"{prefix}: Invalid condition format")
            if _reference_error(workflow, jump.target):
                errors.append(f"{prefix}: References non-existent step: {jump.target}")

        if isinstance(step, SubFlowStep):
            if not workflow.graph_mode:
                errors.append(f"Step {number}: Sub-flow steps require graph mode")
            if not step.target_workflow_id:
                errors.append(f"Step {number}: Sub-flow target workflow is required")

        if workflow.graph_mode:
            for t_number, transition in enumerate(step.transitions, start=1):
                if transition.condition and not is_valid_condition(transition.condition):
                    errors.append(
                        f"Step {number}, Transition {t_number}: Invalid condition format"
                    )

    if workflow.graph_mode:
        validator = GraphValidator(workflow, allow_cycles=allow_cycles)
        validator.valid()
        errors.extend(validator.errors)
    return errors


def validate_or_raise(
    workflow: Workflow, allow_cycles: bool = True, limits: Optional[LimitsConfig] = None
) -> Workflow:
    errors = validate_workflow(workflow, allow_cycles=allow_cycles, limits=limits)
    if errors:
        raise WorkflowValidationError(errors)
    return workflow
