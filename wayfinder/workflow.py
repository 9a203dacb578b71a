"""Workflow definition and step-graph accessors."""

from __future__ import annotations

import logging
import uuid
from collections import deque
from typing import Any, Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

from .normalization import assign_variable_names, drop_empty_steps
from .steps import ActionStep, QuestionStep, ResolveStep, Step, SubFlowStep, Transition

logger = logging.getLogger(__name__)

# Step index in linear mode, step id in graph mode.
Position = Union[int, str, None]


class Workflow(BaseModel):
    """A linear sequence or a directed graph of typed steps.

    In linear mode steps are addressed by their index and the next step is
    implicit. In graph mode steps are addressed by id and routing follows
    each step's ``transitions``. The execution core treats a workflow as
    read-only; only the authoring helpers ``add_transition`` and
    ``remove_transition`` mutate it.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str = ""
    graph_mode: bool = False
    start_node_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("start_node_id", "start_node_uuid")
    )
    steps: List[Step] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        return str(value) if value is not None else str(uuid.uuid4())

    @model_validator(mode="before")
    @classmethod
    def _drop_empty_steps(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("steps"), list):
            data = dict(data)
            data["steps"] = drop_empty_steps(data["steps"])
        return data

    @model_validator(mode="after")
    def _assign_variable_names(self) -> "Workflow":
        assign_variable_names(self.steps)
        return self

    # ------------------------------------------------------------------
    # Lookups
    def find_step_by_id(self, step_id: Optional[str]) -> Optional[Step]:
        if not step_id:
            return None
        return next((step for step in self.steps if step.id == step_id), None)

    def find_step_by_title(self, title: Optional[str]) -> Optional[Step]:
        """Exact title match first, then a case-insensitive one."""
        if not title:
            return None
        step = next((s for s in self.steps if s.title == title), None)
        if step is not None:
            return step
        lowered = title.lower()
        return next((s for s in self.steps if s.title.lower() == lowered), None)

    def index_of(self, step_id: Optional[str]) -> Optional[int]:
        for index, step in enumerate(self.steps):
            if step.id == step_id:
                return index
        return None

    def graph_steps(self) -> Dict[str, Step]:
        """Steps keyed by id; the first occurrence wins on duplicates."""
        keyed: Dict[str, Step] = {}
        for step in self.steps:
            keyed.setdefault(step.id, step)
        return keyed

    # ------------------------------------------------------------------
    # Positions
    def start_position(self) -> Position:
        if self.graph_mode:
            start = self.start_node()
            return start.id if start is not None else None
        return 0

    def end_position(self) -> Position:
        """The "past the end" marker for this workflow's addressing mode."""
        return None if self.graph_mode else len(self.steps)

    def step_at(self, position: Position) -> Optional[Step]:
        if self.graph_mode:
            return self.find_step_by_id(position) if isinstance(position, str) else None
        if isinstance(position, int) and not isinstance(position, bool):
            if 0 <= position < len(self.steps):
                return self.steps[position]
        return None

    def position_of(self, step: Step) -> Position:
        if self.graph_mode:
            return step.id
        return self.index_of(step.id)

    def is_past_end(self, position: Position) -> bool:
        if self.graph_mode:
            return position is None
        return not isinstance(position, int) or position >= len(self.steps)

    # ------------------------------------------------------------------
    # Graph accessors
    def start_node(self) -> Optional[Step]:
        """The designated start step, or the first declared step."""
        if self.start_node_id:
            step = self.find_step_by_id(self.start_node_id)
            if step is not None:
                return step
            logger.warning(
                f"Start node {self.start_node_id} not found in workflow {self.id}; "
                "falling back to the first step"
            )
        return self.steps[0] if self.steps else None

    def terminal_nodes(self) -> List[Step]:
        """Resolve steps plus steps without outgoing transitions (graph) or
        the last step (linear), in declaration order."""
        return [step for step in self.steps if self.is_terminal(step)]

    def is_terminal(self, step: Step) -> bool:
        if isinstance(step, ResolveStep):
            return True
        if self.graph_mode:
            return not step.transitions
        return bool(self.steps) and self.steps[-1].id == step.id

    def transitions_from(self, step_id: str) -> List[Transition]:
        step = self.find_step_by_id(step_id)
        return list(step.transitions) if step is not None else []

    def steps_leading_to(self, step_id: str) -> List[Step]:
        """Steps with at least one transition into ``step_id``."""
        return [
            step
            for step in self.steps
            if any(t.target_id == step_id for t in step.transitions)
        ]

    def reachable_from(self, step_id: Optional[str] = None) -> List[str]:
        """Ids reachable from ``step_id`` (default: the start node), BFS order."""
        if step_id is None:
            start = self.start_node()
            step_id = start.id if start is not None else None
        if step_id is None or self.find_step_by_id(step_id) is None:
            return []

        visited: List[str] = []
        queue = deque([step_id])
        while queue:
            current = queue.popleft()
            if current in visited:
                continue
            visited.append(current)
            step = self.find_step_by_id(current)
            if step is None:
                continue
            for transition in step.transitions:
                if transition.target_id and transition.target_id not in visited:
                    queue.append(transition.target_id)
        return visited

    def add_transition(
        self,
        source_id: str,
        target_id: str,
        condition: Optional[str] = None,
        label: Optional[str] = None,
    ) -> bool:
        """Append an edge; ``False`` in linear mode or for a duplicate edge."""
        if not self.graph_mode:
            return False
        source = self.find_step_by_id(source_id)
        if source is None or not target_id:
            return False
        if any(t.target_id == target_id for t in source.transitions):
            return False
        source.transitions.append(
            Transition(target_id=target_id, condition=condition, label=label)
        )
        return True

    def remove_transition(self, source_id: str, target_id: str) -> bool:
        """Drop every ``source -> target`` edge; ``False`` if none existed."""
        if not self.graph_mode:
            return False
        source = self.find_step_by_id(source_id)
        if source is None:
            return False
        remaining = [t for t in source.transitions if t.target_id != target_id]
        if len(remaining) == len(source.transitions):
            return False
        source.transitions = remaining
        return True

    # ------------------------------------------------------------------
    # Introspection
    def variables(self) -> List[str]:
        """Variable names written by question answers and action outputs."""
        names: List[str] = []
        for step in self.steps:
            if isinstance(step, QuestionStep) and step.variable_name:
                names.append(step.variable_name)
            elif isinstance(step, ActionStep):
                names.extend(field.name for field in step.output_fields)
        return list(dict.fromkeys(names))

    def referenced_workflow_ids(self) -> List[str]:
        return list(
            dict.fromkeys(
                step.target_workflow_id
                for step in self.steps
                if isinstance(step, SubFlowStep) and step.target_workflow_id
            )
        )
