"""Conversion of linear workflows into graph mode.

Sequential order becomes explicit default transitions and decision
branches become conditional transitions, so a converted workflow routes
exactly like the original one. Jumps stay on their steps; they are
checked before transitions in both modes.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from .resolver import resolve_step_reference
from .steps import DecisionStep, ResolveStep, Step, Transition
from .validation import GraphValidator, WorkflowValidationError
from .workflow import Workflow

logger = logging.getLogger(__name__)


def _next_id(steps: List[Step], index: int) -> Optional[str]:
    return steps[index + 1].id if index + 1 < len(steps) else None


def _decision_transitions(
    step: DecisionStep, index: int, steps: List[Step], source: Workflow, errors: List[str]
) -> List[Transition]:
    transitions: List[Transition] = []
    for branch in step.branches:
        if not branch.condition:
            continue
        if branch.target is None:
            # A matching branch without a target continues sequentially.
            target_id = _next_id(steps, index)
        else:
            target = resolve_step_reference(branch.target, source)
            if target is None:
                errors.append(
                    f"Step '{step.title}': Branch path '{branch.target}' could not be resolved"
                )
                continue
            target_id = target.id
        if target_id is not None:
            transitions.append(
                Transition(
                    target_id=target_id,
                    condition=branch.condition,
                    label=f"If {branch.condition}",
                )
            )

    if step.else_target:
        target = resolve_step_reference(step.else_target, source)
        if target is not None:
            transitions.append(Transition(target_id=target.id, label="Else"))
            return transitions
        errors.append(f"Step '{step.title}': Else path '{step.else_target}' could not be resolved")

    next_id = _next_id(steps, index)
    if next_id is not None:
        transitions.append(Transition(target_id=next_id, label="Default"))
    return transitions


def convert_to_graph(workflow: Workflow) -> Workflow:
    """Return a graph-mode copy of ``workflow``.

    Raises:
        WorkflowValidationError: if a branch cannot be resolved or the
            resulting graph is structurally invalid.
    """
    if workflow.graph_mode:
        return workflow.model_copy(deep=True)
    if not workflow.steps:
        raise WorkflowValidationError(["Workflow has no steps"])

    steps = [step.model_copy(deep=True) for step in workflow.steps]
    errors: List[str] = []

    for index, step in enumerate(steps):
        if isinstance(step, DecisionStep):
            step.transitions = _decision_transitions(step, index, steps, workflow, errors)
            step.branches = []
            step.else_target = None
        elif isinstance(step, ResolveStep):
            step.transitions = []
        else:
            next_id = _next_id(steps, index)
            step.transitions = (
                [Transition(target_id=next_id, label="Continue")] if next_id else []
            )

    converted = Workflow(
        id=workflow.id,
        title=workflow.title,
        graph_mode=True,
        start_node_id=steps[0].id,
        steps=steps,
    )

    validator = GraphValidator(converted)
    if not validator.valid():
        errors.extend(validator.errors)
    if errors:
        raise WorkflowValidationError(errors)

    logger.info(f"Converted workflow {workflow.id} to graph mode ({len(steps)} steps)")
    return converted
