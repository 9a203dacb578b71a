"""Step models: the typed nodes a workflow is made of."""

from __future__ import annotations

import uuid
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from .normalization import normalize_legacy_decision


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def _coerce_ref(value: Any) -> Any:
    if value is None or isinstance(value, str):
        return _blank_to_none(value)
    return str(value)


OptionalText = Annotated[Optional[str], BeforeValidator(_blank_to_none)]
StepRef = Annotated[Optional[str], BeforeValidator(_coerce_ref)]


class Transition(BaseModel):
    """Outgoing edge of a graph-mode step."""

    target_id: StepRef = Field(
        default=None,
        validation_alias=AliasChoices("target_id", "target_uuid", "target"),
    )
    condition: OptionalText = None
    label: Optional[str] = None

    @property
    def is_default(self) -> bool:
        """Unconditional transitions act as the default edge."""
        return self.condition is None


class Branch(BaseModel):
    """Conditional route out of a decision step."""

    condition: OptionalText = None
    # Step id, or a step title in pre-identifier data.
    target: StepRef = Field(default=None, validation_alias=AliasChoices("target", "path"))


class Jump(BaseModel):
    """Universal override edge, checked before any type-specific routing."""

    condition: OptionalText = None
    target: StepRef = Field(
        default=None, validation_alias=AliasChoices("target", "next_step_id")
    )


class OutputField(BaseModel):
    """Variable derived by an action step from a ``{{variable}}`` template."""

    name: str
    value_template: str = Field(
        default="", validation_alias=AliasChoices("value_template", "value")
    )

    @field_validator("value_template", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class BaseStep(BaseModel):
    """Fields shared by every step type."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str = ""
    description: Optional[str] = None
    jumps: List[Jump] = Field(default_factory=list)
    transitions: List[Transition] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_step_id(cls, value: Any) -> Any:
        value = _coerce_ref(value)
        return value if value is not None else str(uuid.uuid4())

    @field_validator("title", mode="before")
    @classmethod
    def _none_title(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def has_default_transition(self) -> bool:
        return any(transition.is_default for transition in self.transitions)


class QuestionStep(BaseStep):
    """Collects one answer from the operator."""

    type: Literal["question"] = "question"
    question: Optional[str] = None
    variable_name: OptionalText = None
    answer_type: str = "text"
    options: List[Any] = Field(default_factory=list)


class DecisionStep(BaseStep):
    """Routes on accumulated results without user input."""

    type: Literal["decision", "simple_decision"] = "decision"
    branches: List[Branch] = Field(default_factory=list)
    else_target: StepRef = Field(
        default=None, validation_alias=AliasChoices("else_target", "else_path")
    )

    @model_validator(mode="before")
    @classmethod
    def _normalize_legacy(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return normalize_legacy_decision(data)
        return data


class ActionStep(BaseStep):
    """Executes and optionally derives new variables."""

    type: Literal["action"] = "action"
    instructions: Optional[str] = None
    output_fields: List[OutputField] = Field(default_factory=list)

    @field_validator("output_fields", mode="before")
    @classmethod
    def _drop_unnamed(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        return [
            item
            for item in value
            if not isinstance(item, dict) or _blank_to_none(item.get("name"))
        ]


class CheckpointStep(BaseStep):
    """Halts the run until it is resolved externally."""

    type: Literal["checkpoint"] = "checkpoint"
    message: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("message", "checkpoint_message")
    )


class SubFlowStep(BaseStep):
    """Reference to another workflow; invoking it is up to the caller."""

    type: Literal["sub_flow"] = "sub_flow"
    target_workflow_id: StepRef = None
    variable_mapping: Dict[str, str] = Field(default_factory=dict)


class MessageStep(BaseStep):
    """Shows text to the operator; ``content`` may use ``{{variable}}`` tokens."""

    type: Literal["message"] = "message"
    content: Optional[str] = None


class EscalateStep(BaseStep):
    """Hands the issue to another party and records where it went."""

    type: Literal["escalate"] = "escalate"
    target_type: OptionalText = None
    target_value: Optional[str] = None
    priority: OptionalText = None
    reason_required: bool = False
    notes: Optional[str] = None


class ResolveStep(BaseStep):
    """Ends the run with a recorded resolution. Always terminal."""

    type: Literal["resolve"] = "resolve"
    resolution_type: OptionalText = None
    resolution_code: Optional[str] = None
    notes_required: bool = False
    survey_trigger: bool = False


Step = Annotated[
    Union[
        QuestionStep,
        DecisionStep,
        ActionStep,
        CheckpointStep,
        SubFlowStep,
        MessageStep,
        EscalateStep,
        ResolveStep,
    ],
    Field(discriminator="type"),
]
