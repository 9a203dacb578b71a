"""``{{variable}}`` substitution used by action output fields."""

from __future__ import annotations

import re
from typing import Any, Mapping, Optional

VARIABLE_PATTERN = re.compile(r"\{\{(\w+)\}\}")


def interpolate(text: Optional[str], variables: Optional[Mapping[str, Any]] = None) -> str:
    """Replace known ``{{name}}`` tokens; unknown tokens are left verbatim."""
    if text is None:
        return ""
    text = str(text)
    if not text or not variables:
        return text

    normalized = {str(key): value for key, value in variables.items()}

    def _substitute(match: re.Match) -> str:
        name = match.group(1)
        if name not in normalized:
            return match.group(0)
        value = normalized[name]
        return "" if value is None else str(value)

    return VARIABLE_PATTERN.sub(_substitute, text)


def extract_variables(text: Optional[str]) -> list[str]:
    """Return unique variable names referenced in ``text`` in order."""
    if not text:
        return []
    seen: list[str] = []
    for name in VARIABLE_PATTERN.findall(str(text)):
        if name not in seen:
            seen.append(name)
    return seen


def contains_variables(text: Optional[str]) -> bool:
    return bool(text) and VARIABLE_PATTERN.search(str(text)) is not None
