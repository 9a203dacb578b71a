"""Run state for a single execution attempt of a workflow."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from .constants import ERROR_KEY

if TYPE_CHECKING:
    from .workflow import Workflow


class SimulationStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    STOPPED = "stopped"
    TIMEOUT = "timeout"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self is not SimulationStatus.ACTIVE


class ExecutionEntry(BaseModel):
    """One line of the audit trail. Entries are never edited once appended."""

    position: Union[int, str, None] = None
    step_id: Optional[str] = None
    step_title: str = ""
    step_type: str
    answer: Optional[Any] = None
    condition_result: Optional[str] = None
    matched_branch: Optional[str] = None
    resolved: Optional[bool] = None
    notes: Optional[str] = None
    subflow_target: Optional[str] = None
    content: Optional[str] = None
    escalated: Optional[bool] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Simulation(BaseModel):
    """Mutable state of a run; owns its trail, results and inputs."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    workflow_id: Optional[str] = None
    status: SimulationStatus = SimulationStatus.ACTIVE
    current_position: Union[int, str, None] = 0
    stopped_at: Union[int, str, None] = None
    execution_path: List[ExecutionEntry] = Field(default_factory=list)
    results: Dict[str, Any] = Field(default_factory=dict)
    inputs: Dict[str, Any] = Field(default_factory=dict)
    iteration_count: int = 0

    @classmethod
    def start(cls, workflow: "Workflow", inputs: Optional[Dict[str, Any]] = None) -> "Simulation":
        """Create a simulation positioned on the workflow's start step."""
        return cls(
            workflow_id=workflow.id,
            current_position=workflow.start_position(),
            inputs=dict(inputs or {}),
        )

    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def error(self) -> Optional[str]:
        return self.results.get(ERROR_KEY)

    def fail(self, status: SimulationStatus, message: str) -> None:
        """Record a guard trip as a terminal status plus ``_error``."""
        self.status = status
        self.results[ERROR_KEY] = message

    def append_entry(self, entry: ExecutionEntry) -> None:
        self.execution_path.append(entry)

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str) -> "Simulation":
        return cls.model_validate_json(data)
