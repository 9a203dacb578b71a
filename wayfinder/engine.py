"""Step execution state machine.

``StepMachine.process`` applies one step to a simulation: it writes
answers and derived values into ``results``/``inputs``, picks the next
position through the workflow's traversal strategy and appends exactly
one audit entry. Checkpoints never advance here; they move only through
``resolve_checkpoint``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from .constants import (
    ACTION_EXECUTED,
    CHECKPOINT_CONTINUED,
    CHECKPOINT_RESOLVED,
    ESCALATED,
    ESCALATION_KEY,
    ISSUE_RESOLVED,
    MESSAGE_DISPLAYED,
    RESOLUTION_KEY,
)
from .interpolation import interpolate
from .simulation import ExecutionEntry, Simulation, SimulationStatus
from .steps import (
    ActionStep,
    CheckpointStep,
    DecisionStep,
    EscalateStep,
    MessageStep,
    QuestionStep,
    ResolveStep,
    Step,
    SubFlowStep,
)
from .traversal import Route, Traversal, traversal_for
from .workflow import Position, Workflow

logger = logging.getLogger(__name__)


class OutcomeKind(str, Enum):
    ADVANCED = "advanced"
    BLOCKED = "blocked"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Outcome:
    kind: OutcomeKind
    position: Position = None
    reason: Optional[str] = None

    @property
    def advanced(self) -> bool:
        return self.kind is OutcomeKind.ADVANCED

    @classmethod
    def advance(cls, position: Position) -> "Outcome":
        return cls(OutcomeKind.ADVANCED, position)

    @classmethod
    def block(cls, position: Position, reason: str) -> "Outcome":
        return cls(OutcomeKind.BLOCKED, position, reason)

    @classmethod
    def reject(cls, reason: str, position: Position = None) -> "Outcome":
        return cls(OutcomeKind.REJECTED, position, reason)


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def record_answer(
    results: Dict[str, Any],
    inputs: Dict[str, Any],
    step: QuestionStep,
    position: Position,
    answer: Any,
) -> None:
    """Store a question's answer; blank answers leave both mappings alone."""
    if not _present(answer):
        return
    inputs[str(position)] = answer
    if step.variable_name:
        inputs[step.variable_name] = answer
        results[step.variable_name] = answer
    if step.title:
        inputs[step.title] = answer
        results[step.title] = answer


def apply_action(results: Dict[str, Any], step: ActionStep) -> None:
    """Mark the action done and derive its output fields, in order."""
    if step.title:
        results[step.title] = ACTION_EXECUTED
    for output in step.output_fields:
        results[output.name] = interpolate(output.value_template, results)


def _compact(values: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


def apply_escalation(results: Dict[str, Any], step: EscalateStep) -> None:
    """Record where the issue was handed off under ``_escalation``."""
    if step.title:
        results[step.title] = ESCALATED
    results[ESCALATION_KEY] = _compact(
        {
            "type": step.target_type,
            "value": step.target_value,
            "priority": step.priority or "normal",
            "reason_required": step.reason_required,
            "notes": step.notes,
        }
    )


def apply_resolution(results: Dict[str, Any], step: ResolveStep) -> None:
    """Record how the issue ended under ``_resolution``."""
    if step.title:
        results[step.title] = ISSUE_RESOLVED
    results[RESOLUTION_KEY] = _compact(
        {
            "type": step.resolution_type or "success",
            "code": step.resolution_code,
            "notes_required": step.notes_required,
            "survey_trigger": step.survey_trigger,
        }
    )


class StepMachine:
    """Processes single steps of one workflow."""

    def __init__(self, workflow: Workflow, traversal: Optional[Traversal] = None) -> None:
        self._workflow = workflow
        self._traversal = traversal or traversal_for(workflow)

    @property
    def traversal(self) -> Traversal:
        return self._traversal

    def process(self, simulation: Simulation, step: Step, answer: Any = None) -> Outcome:
        """Apply ``step`` (with an optional ``answer``) and advance."""
        if simulation.is_terminal():
            return Outcome.reject(
                f"simulation is {simulation.status.value}", simulation.current_position
            )
        if isinstance(step, CheckpointStep):
            return Outcome.block(simulation.current_position, "checkpoint awaiting resolution")

        position = simulation.current_position
        entry: Dict[str, Any] = {
            "position": position,
            "step_id": step.id,
            "step_title": step.title,
            "step_type": step.type,
        }

        if isinstance(step, QuestionStep):
            record_answer(simulation.results, simulation.inputs, step, position, answer)
            entry["answer"] = answer
            route = self._traversal.next_route(step, simulation.results)
        elif isinstance(step, DecisionStep):
            route = self._traversal.next_route(step, simulation.results)
            entry["condition_result"] = route.condition_result
            entry["matched_branch"] = route.matched_branch
        elif isinstance(step, ActionStep):
            apply_action(simulation.results, step)
            entry["notes"] = "action completed"
            route = self._traversal.next_route(step, simulation.results)
        elif isinstance(step, SubFlowStep):
            entry["subflow_target"] = step.target_workflow_id
            route = self._traversal.next_route(step, simulation.results)
        elif isinstance(step, MessageStep):
            if step.title:
                simulation.results[step.title] = MESSAGE_DISPLAYED
            entry["content"] = interpolate(step.content, simulation.results)
            route = self._traversal.next_route(step, simulation.results)
        elif isinstance(step, EscalateStep):
            apply_escalation(simulation.results, step)
            entry["escalated"] = True
            entry["notes"] = step.notes
            route = self._traversal.next_route(step, simulation.results)
        elif isinstance(step, ResolveStep):
            apply_resolution(simulation.results, step)
            entry["resolved"] = True
            simulation.append_entry(ExecutionEntry(**entry))
            simulation.status = SimulationStatus.COMPLETED
            simulation.current_position = self._workflow.end_position()
            logger.info(f"Step {step.title!r} resolved; simulation {simulation.id} completed")
            return Outcome.advance(simulation.current_position)
        else:
            raise TypeError(f"Unsupported step type: {type(step).__name__}")

        if not isinstance(step, DecisionStep) and route.condition_result:
            entry["condition_result"] = route.condition_result

        simulation.append_entry(ExecutionEntry(**entry))
        self._move(simulation, route)
        return Outcome.advance(simulation.current_position)

    def resolve_checkpoint(
        self, simulation: Simulation, resolved: bool, notes: Optional[str] = None
    ) -> Outcome:
        """Complete the run (``resolved``) or continue past the checkpoint."""
        if simulation.is_terminal():
            return Outcome.reject(
                f"simulation is {simulation.status.value}", simulation.current_position
            )
        step = self._workflow.step_at(simulation.current_position)
        if not isinstance(step, CheckpointStep):
            return Outcome.reject("current step is not a checkpoint", simulation.current_position)

        simulation.append_entry(
            ExecutionEntry(
                position=simulation.current_position,
                step_id=step.id,
                step_title=step.title,
                step_type=step.type,
                resolved=resolved,
                notes=notes or None,
            )
        )

        if resolved:
            if step.title:
                simulation.results[step.title] = CHECKPOINT_RESOLVED
            simulation.status = SimulationStatus.COMPLETED
            simulation.current_position = self._workflow.end_position()
            logger.info(f"Checkpoint {step.title!r} resolved; simulation {simulation.id} completed")
        else:
            if step.title:
                simulation.results[step.title] = CHECKPOINT_CONTINUED
            self._move(simulation, self._traversal.fallback(step, simulation.results))
        return Outcome.advance(simulation.current_position)

    def _move(self, simulation: Simulation, route: Route) -> None:
        if self._workflow.is_past_end(route.position):
            simulation.current_position = self._workflow.end_position()
            simulation.status = SimulationStatus.COMPLETED
            logger.info(f"Simulation {simulation.id} completed")
        else:
            simulation.current_position = route.position
