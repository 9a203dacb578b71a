"""Interactive and batch execution of a workflow, bounded by the safety guard."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from .config import WayfinderConfig, load_config
from .engine import StepMachine
from .guard import ExecutionTimeout, IterationLimitExceeded, SafetyGuard
from .simulation import Simulation, SimulationStatus
from .steps import CheckpointStep, QuestionStep, Step
from .workflow import Position, Workflow

logger = logging.getLogger(__name__)


class WorkflowRunner:
    """Drives simulations of one workflow.

    None of the calls raise for invalid sequencing: processing a finished,
    stopped or blocked simulation simply returns ``False``.
    """

    def __init__(
        self,
        workflow: Workflow,
        config: Optional[WayfinderConfig] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        config = config or load_config()
        self._workflow = workflow
        self._machine = StepMachine(workflow)
        self._guard = SafetyGuard(
            max_iterations=config.limits.max_iterations,
            max_execution_time=config.limits.max_execution_time,
            clock=clock,
        )

    @property
    def workflow(self) -> Workflow:
        return self._workflow

    @property
    def guard(self) -> SafetyGuard:
        return self._guard

    def start(self, inputs: Optional[Dict[str, Any]] = None) -> Simulation:
        """Create a fresh simulation at the workflow's start step."""
        simulation = Simulation.start(self._workflow, inputs)
        if self._workflow.step_at(simulation.current_position) is None:
            self._finish(simulation)
        return simulation

    def current_step(self, simulation: Simulation) -> Optional[Step]:
        return self._workflow.step_at(simulation.current_position)

    # ------------------------------------------------------------------
    # Interactive calls
    def process_step(self, simulation: Simulation, answer: Any = None) -> bool:
        """Advance one step; ``False`` means nothing advanced."""
        if simulation.is_terminal():
            logger.debug(
                f"Simulation {simulation.id} is {simulation.status.value}; not processing"
            )
            return False

        step = self.current_step(simulation)
        if step is None:
            self._finish(simulation)
            return False
        if isinstance(step, CheckpointStep):
            logger.debug(f"Simulation {simulation.id} blocked on checkpoint {step.title!r}")
            return False
        if not self._guard.admit(simulation):
            return False
        return self._machine.process(simulation, step, answer).advanced

    def resolve_checkpoint(
        self, simulation: Simulation, resolved: bool = True, notes: Optional[str] = None
    ) -> bool:
        """Resolve the checkpoint the simulation is waiting on."""
        if simulation.is_terminal():
            return False
        if not isinstance(self.current_step(simulation), CheckpointStep):
            return False
        if not self._guard.admit(simulation):
            return False
        return self._machine.resolve_checkpoint(simulation, resolved, notes).advanced

    def stop(self, simulation: Simulation, at_position: Position = None) -> None:
        """Terminate the run early, whatever step it is on."""
        simulation.stopped_at = (
            at_position if at_position is not None else simulation.current_position
        )
        simulation.status = SimulationStatus.STOPPED
        logger.info(f"Simulation {simulation.id} stopped at {simulation.stopped_at!r}")

    # ------------------------------------------------------------------
    # Batch execution
    def execute(self, simulation: Simulation, inputs: Optional[Dict[str, Any]] = None) -> bool:
        """Run from the current position to completion using ``inputs``.

        The run works on a private copy that replaces the simulation's
        state only once the loop ends, either normally or on a guard trip.
        Returns ``False`` on a guard trip or when the simulation is
        already finished. A checkpoint pauses the run with the simulation
        still active.
        """
        if simulation.is_terminal():
            return False

        work = simulation.model_copy(deep=True)
        work.inputs.update(inputs or {})
        deadline = self._guard.deadline()
        try:
            self._run_to_completion(work, deadline)
        except IterationLimitExceeded:
            self._commit(simulation, work)
            return False
        except ExecutionTimeout:
            work.fail(
                SimulationStatus.TIMEOUT,
                f"Simulation timed out after {self._guard.max_execution_time} seconds",
            )
            logger.warning(
                f"Simulation {simulation.id} timed out for workflow {self._workflow.id}"
            )
            self._commit(simulation, work)
            return False
        except Exception:
            logger.exception(f"Simulation {simulation.id} execution failed")
            raise

        self._commit(simulation, work)
        return True

    def _run_to_completion(self, work: Simulation, deadline: float) -> None:
        while not work.is_terminal():
            self._guard.check_deadline(deadline)
            step = self.current_step(work)
            if step is None:
                self._finish(work)
                break
            if isinstance(step, CheckpointStep):
                logger.info(f"Simulation {work.id} paused at checkpoint {step.title!r}")
                break
            self._guard.tick(work)
            self._machine.process(work, step, self._answer_for(work, step))

    def _answer_for(self, work: Simulation, step: Step) -> Any:
        """Look up a batch answer by variable name, then position, then title."""
        if not isinstance(step, QuestionStep):
            return None
        for key in (step.variable_name, str(work.current_position), step.title):
            if not key:
                continue
            answer = work.inputs.get(key)
            if answer is not None and answer != "":
                return answer
        return None

    def _finish(self, simulation: Simulation) -> None:
        simulation.current_position = self._workflow.end_position()
        simulation.status = SimulationStatus.COMPLETED

    @staticmethod
    def _commit(simulation: Simulation, work: Simulation) -> None:
        for name in Simulation.model_fields:
            setattr(simulation, name, getattr(work, name))
