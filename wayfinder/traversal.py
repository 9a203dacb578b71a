"""Next-step resolution for linear and graph addressed workflows.

Both strategies share the same order: universal jumps first, then (for
decisions) branches in listed order and the else target, then the
mode-specific fallback. Linear workflows fall back to the following
array position; graph workflows evaluate the step's transitions and end
the run at a node with nowhere to go.
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .conditions import evaluate_condition
from .constants import ACTION_COMPLETED_JUMP
from .resolver import resolve_step_reference
from .steps import ActionStep, DecisionStep, QuestionStep, Step
from .workflow import Position, Workflow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Route:
    """Where to go next and why."""

    position: Position
    condition_result: Optional[str] = None
    matched_branch: Optional[str] = None


def jump_matches(step: Step, condition: str, results: Mapping[str, Any]) -> bool:
    """Decide whether a jump attached to ``step`` fires.

    Question jumps compare the recorded answer literally with the
    condition text. Action jumps accept the literal ``completed``. Any
    other condition goes through the condition evaluator.
    """
    if isinstance(step, QuestionStep):
        answer = results.get(step.title)
        if answer is None and step.variable_name:
            answer = results.get(step.variable_name)
        return ("" if answer is None else str(answer)) == condition
    if isinstance(step, ActionStep) and condition == ACTION_COMPLETED_JUMP:
        return True
    return evaluate_condition(condition, results)


class Traversal(abc.ABC):
    """Addressing strategy bound to one workflow."""

    def __init__(self, workflow: Workflow) -> None:
        self._workflow = workflow

    @property
    def workflow(self) -> Workflow:
        return self._workflow

    def next_route(self, step: Step, results: Mapping[str, Any]) -> Route:
        """Resolve the step to visit after ``step``."""
        route = self._match_jump(step, results)
        if route is None:
            if isinstance(step, DecisionStep):
                route = self._route_decision(step, results)
            else:
                route = self.fallback(step, results)
        logger.debug(
            f"Step {step.title!r} ({step.type}) -> {route.position!r}: {route.condition_result}"
        )
        return route

    @abc.abstractmethod
    def fallback(self, step: Step, results: Mapping[str, Any]) -> Route:
        """Route used when no jump, branch or else target applies."""
        raise NotImplementedError

    @abc.abstractmethod
    def sequential(self, step: Step) -> Position:
        """The structurally next position, ignoring all conditions."""
        raise NotImplementedError

    def _position_of(self, step: Step) -> Position:
        return self._workflow.position_of(step)

    def _match_jump(self, step: Step, results: Mapping[str, Any]) -> Optional[Route]:
        for jump in step.jumps:
            if not jump.condition or not jump.target:
                continue
            if not jump_matches(step, jump.condition, results):
                continue
            target = resolve_step_reference(jump.target, self._workflow)
            if target is None:
                continue
            return Route(self._position_of(target), f"jump: {jump.condition}")
        return None

    def _route_decision(self, step: DecisionStep, results: Mapping[str, Any]) -> Route:
        for branch in step.branches:
            if not branch.condition or not evaluate_condition(branch.condition, results):
                continue
            target = resolve_step_reference(branch.target, self._workflow)
            if target is None:
                logger.warning(
                    f"Branch {branch.condition!r} of step {step.title!r} points to "
                    f"missing step {branch.target!r}; continuing sequentially"
                )
                return Route(
                    self.sequential(step),
                    f"matched: {branch.condition} (target not found)",
                    branch.condition,
                )
            return Route(
                self._position_of(target), f"matched: {branch.condition}", branch.condition
            )

        if step.else_target:
            target = resolve_step_reference(step.else_target, self._workflow)
            if target is not None:
                return Route(self._position_of(target), "else")
            logger.warning(
                f"Else target {step.else_target!r} of step {step.title!r} not found; "
                "continuing sequentially"
            )
            return Route(self.sequential(step), "else (target not found)")

        route = self.fallback(step, results)
        return Route(
            route.position,
            route.condition_result or "no match",
            route.matched_branch,
        )


class LinearTraversal(Traversal):
    """Array-position addressing with an implicit next step."""

    def sequential(self, step: Step) -> Position:
        index = self._workflow.index_of(step.id)
        total = len(self._workflow.steps)
        if index is None:
            return total
        return min(index + 1, total)

    def fallback(self, step: Step, results: Mapping[str, Any]) -> Route:
        return Route(self.sequential(step))


class GraphTraversal(Traversal):
    """Identifier addressing with explicit transitions."""

    def sequential(self, step: Step) -> Position:
        for transition in step.transitions:
            if not transition.is_default:
                continue
            target = resolve_step_reference(transition.target_id, self._workflow)
            if target is not None:
                return target.id
        return None

    def fallback(self, step: Step, results: Mapping[str, Any]) -> Route:
        for transition in step.transitions:
            if not transition.target_id:
                continue
            if not transition.is_default and not evaluate_condition(
                transition.condition, results
            ):
                continue
            target = resolve_step_reference(transition.target_id, self._workflow)
            if target is None:
                continue
            return Route(target.id, f"routing to {target.id}", transition.condition)
        return Route(None, "dead end")


def traversal_for(workflow: Workflow) -> Traversal:
    """Pick the addressing strategy once per workflow."""
    if workflow.graph_mode:
        return GraphTraversal(workflow)
    return LinearTraversal(workflow)
