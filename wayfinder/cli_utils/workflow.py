"""Utility functions to read workflow files and render runs."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable

import yaml

from wayfinder.simulation import Simulation
from wayfinder.workflow import Position, Workflow


def load_workflow(path: Path) -> Workflow:
    """Read a YAML or JSON workflow definition from ``path``."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} does not contain a workflow mapping")
    return Workflow.model_validate(data)


def dump_workflow(workflow: Workflow) -> str:
    return yaml.safe_dump(
        workflow.model_dump(mode="json", exclude_none=True),
        sort_keys=False,
    )


def parse_inputs(pairs: Iterable[str]) -> dict[str, Any]:
    """Turn ``name=value`` pairs into a mapping; later pairs win."""
    inputs: dict[str, Any] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name.strip():
            raise ValueError(f"Expected name=value, got {pair!r}")
        inputs[name.strip()] = value
    return inputs


def describe_position(workflow: Workflow, position: Position) -> str:
    step = workflow.step_at(position)
    if step is None:
        return "(end)"
    return f"{step.title or step.id} [{step.type}]"


def _format_entry(entry) -> str:
    parts = [f"{entry.step_title or entry.step_id} ({entry.step_type})"]
    if entry.answer is not None:
        parts.append(f"answer={entry.answer!r}")
    if entry.condition_result:
        parts.append(entry.condition_result)
    if entry.resolved is not None:
        parts.append("resolved" if entry.resolved else "continued")
    if entry.subflow_target:
        parts.append(f"sub-flow {entry.subflow_target}")
    if entry.escalated:
        parts.append("escalated")
    if entry.content:
        parts.append(entry.content)
    return " - ".join(parts)


def format_trail(simulation: Simulation) -> list[str]:
    return [
        f"{index}. {_format_entry(entry)}"
        for index, entry in enumerate(simulation.execution_path, start=1)
    ]
