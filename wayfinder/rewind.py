"""Rebuilding run state from a truncated execution trail."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .constants import ACTION, QUESTION
from .engine import apply_action, record_answer
from .simulation import ExecutionEntry, Simulation, SimulationStatus
from .steps import ActionStep, QuestionStep, Step
from .workflow import Position, Workflow


@dataclass
class RewindState:
    results: Dict[str, Any] = field(default_factory=dict)
    inputs: Dict[str, Any] = field(default_factory=dict)
    position: Position = None
    execution_path: List[ExecutionEntry] = field(default_factory=list)


def _step_for(workflow: Workflow, entry: ExecutionEntry) -> Optional[Step]:
    step = workflow.find_step_by_id(entry.step_id)
    return step if step is not None else workflow.step_at(entry.position)


def replay_trail(
    workflow: Workflow,
    entries: Sequence[ExecutionEntry],
    upto: int,
    current_position: Position = None,
) -> RewindState:
    """Replay the first ``upto`` entries of a trail.

    Only question answers and action outputs are replayed. The returned
    position is that of the first dropped entry, so the step it recorded
    runs again; when nothing is dropped it is ``current_position``.
    """
    upto = max(0, min(upto, len(entries)))
    state = RewindState(execution_path=list(entries[:upto]))

    for entry in state.execution_path:
        step = _step_for(workflow, entry)
        if entry.step_type == QUESTION and isinstance(step, QuestionStep):
            record_answer(state.results, state.inputs, step, entry.position, entry.answer)
        elif entry.step_type == ACTION and isinstance(step, ActionStep):
            apply_action(state.results, step)

    if upto < len(entries):
        state.position = entries[upto].position
    elif current_position is not None:
        state.position = current_position
    else:
        state.position = workflow.start_position() if not entries else workflow.end_position()
    return state


def rewound(simulation: Simulation, workflow: Workflow, upto: int) -> Simulation:
    """Return a new active simulation rewound to trail index ``upto``."""
    state = replay_trail(
        workflow, simulation.execution_path, upto, simulation.current_position
    )
    return simulation.model_copy(
        update={
            "status": SimulationStatus.ACTIVE,
            "current_position": state.position,
            "stopped_at": None,
            "execution_path": state.execution_path,
            "results": state.results,
            "inputs": state.inputs,
            "iteration_count": len(state.execution_path),
        },
        deep=True,
    )
