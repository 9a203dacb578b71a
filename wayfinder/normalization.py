"""Load-time normalization of workflow step data.

Older workflow records carry decision routing as ``condition`` plus
``true_path``/``false_path`` and may lack step ids or question variable
names. Everything here runs once, while a workflow definition is
validated, so the execution path only ever sees the canonical form.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, Iterable, Optional

if TYPE_CHECKING:
    from .steps import Step

VARIABLE_NAME_MAX_LENGTH = 30

_PUNCTUATION_RE = re.compile(r"""[?!.,;:'"(){}\[\]]""")
_NON_WORD_RE = re.compile(r"[^a-z0-9]+")

# Keys whose presence marks a step record as worth keeping.
_CONTENT_KEYS = ("type", "title", "description", "question", "action_type", "condition")


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def generate_variable_name(title: Optional[str]) -> Optional[str]:
    """Derive a snake_case variable name from a step title.

    ``"What is your issue?"`` becomes ``"what_is_your_issue"``.
    """
    if not _present(title):
        return None
    name = _PUNCTUATION_RE.sub("", str(title).strip()).lower()
    name = _NON_WORD_RE.sub("_", name)
    name = re.sub(r"_+", "_", name).strip("_")
    name = name[:VARIABLE_NAME_MAX_LENGTH].rstrip("_")
    return name or None


def drop_empty_steps(raw_steps: Iterable[Any]) -> list[Any]:
    """Remove step records that carry no content at all."""
    kept = []
    for step in raw_steps:
        if isinstance(step, dict):
            if any(_present(step.get(key)) for key in _CONTENT_KEYS):
                kept.append(step)
        else:
            kept.append(step)
    return kept


def assign_variable_names(steps: Iterable["Step"]) -> None:
    """Give every titled question without a ``variable_name`` a unique one."""
    steps = list(steps)
    existing = {
        step.variable_name
        for step in steps
        if getattr(step, "variable_name", None)
    }
    for step in steps:
        if step.type != "question" or step.variable_name:
            continue
        base = generate_variable_name(step.title)
        if not base:
            continue
        candidate = base
        counter = 2
        while candidate in existing:
            candidate = f"{base}_{counter}"
            counter += 1
        step.variable_name = candidate
        existing.add(candidate)


def _pop_first(data: dict, *keys: str) -> Any:
    found = None
    for key in keys:
        value = data.pop(key, None)
        if found is None and _present(value):
            found = value
    return found


def normalize_legacy_decision(data: dict) -> dict:
    """Convert ``condition``/``true_*``/``false_*`` into branch form.

    The true target becomes the first branch and the false target the
    else target. Existing branches always win over legacy fields.
    """
    data = dict(data)
    condition = _pop_first(data, "condition")
    true_target = _pop_first(data, "true_target", "true_path")
    false_target = _pop_first(data, "false_target", "false_path")

    branches = [
        branch
        for branch in (data.get("branches") or [])
        if not isinstance(branch, dict)
        or _present(branch.get("condition"))
        or _present(branch.get("target") or branch.get("path"))
    ]
    data["branches"] = branches

    if branches or not (_present(true_target) or _present(false_target)):
        return data

    if _present(condition):
        data["branches"] = [{"condition": condition, "target": true_target}]
    has_else = _present(data.get("else_target")) or _present(data.get("else_path"))
    if _present(false_target) and not has_else:
        data["else_target"] = false_target
    return data
