"""Iteration and wall-clock ceilings for simulation runs."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from .constants import DEFAULT_MAX_EXECUTION_TIME, DEFAULT_MAX_ITERATIONS
from .simulation import Simulation, SimulationStatus

logger = logging.getLogger(__name__)


class IterationLimitExceeded(Exception):
    """Raised inside a batch run when the iteration ceiling trips."""


class ExecutionTimeout(Exception):
    """Raised inside a batch run when the wall-clock ceiling trips."""


class SafetyGuard:
    """Bounds runs by a persisted iteration counter and a deadline.

    The counter lives on the simulation so that step-by-step callers can
    not bypass the ceiling by spreading a loop over many requests. The
    deadline is cooperative: it is checked between steps only.
    """

    def __init__(
        self,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        max_execution_time: float = DEFAULT_MAX_EXECUTION_TIME,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.max_iterations = max_iterations
        self.max_execution_time = max_execution_time
        self._clock = clock or time.monotonic

    def admit(self, simulation: Simulation) -> bool:
        """Count one more step, or trip the guard and mark the run as Error."""
        if simulation.iteration_count >= self.max_iterations:
            simulation.fail(
                SimulationStatus.ERROR,
                f"Simulation exceeded maximum iterations ({self.max_iterations})",
            )
            logger.warning(
                f"Simulation {simulation.id} hit iteration limit for workflow "
                f"{simulation.workflow_id}"
            )
            return False
        simulation.iteration_count += 1
        return True

    def tick(self, simulation: Simulation) -> None:
        if not self.admit(simulation):
            raise IterationLimitExceeded(
                f"Simulation exceeded maximum of {self.max_iterations} iterations"
            )

    def deadline(self) -> float:
        return self._clock() + self.max_execution_time

    def check_deadline(self, deadline: float) -> None:
        if self._clock() >= deadline:
            raise ExecutionTimeout(
                f"Simulation timed out after {self.max_execution_time} seconds"
            )
