"""Evaluation of single comparison expressions against run results.

Supported forms::

    variable == 'value'   case-insensitive string equality
    variable != "value"   case-insensitive string inequality
    variable > 10         numeric comparisons (also <, >=, <=)

Anything else is treated as unparseable and evaluates to ``False``.
There are no boolean connectives.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)

EQUALITY_OPERATORS = ("==", "!=")

_CONDITION_RE = re.compile(
    r"""^\s*
    (?P<variable>\w+)\s*
    (?P<operator>==|!=|>=|<=|>|<)\s*
    (?:
        '(?P<single>[^']*)'
      | "(?P<double>[^"]*)"
      | (?P<number>[-+]?\d+(?:\.\d+)?)
    )\s*$""",
    re.VERBOSE,
)


@dataclass(frozen=True)
class ParsedCondition:
    """Components of a comparison expression."""

    variable: str
    operator: str
    value: str
    is_numeric: bool


def parse_condition(expression: Optional[str]) -> Optional[ParsedCondition]:
    """Split ``expression`` into variable, operator and literal.

    Returns ``None`` when the expression does not follow the grammar.
    """
    if not expression or not isinstance(expression, str):
        return None
    match = _CONDITION_RE.match(expression)
    if match is None:
        return None
    number = match.group("number")
    if number is not None:
        value, is_numeric = number, True
    else:
        single = match.group("single")
        value = single if single is not None else match.group("double")
        is_numeric = False
    return ParsedCondition(
        variable=match.group("variable"),
        operator=match.group("operator"),
        value=value,
        is_numeric=is_numeric,
    )


def is_valid_condition(expression: Optional[str]) -> bool:
    return parse_condition(expression) is not None


def lookup_value(key: str, results: Mapping[str, Any]) -> Any:
    """Find ``key`` in ``results``; ``None`` means absent."""
    value = results.get(key)
    if value is not None:
        return value

    # Legacy conditions refer to the latest answer as ``answer``.
    if key.lower() == "answer" and results:
        value = list(results.values())[-1]
        if value is not None:
            return value

    lowered = key.lower()
    for candidate, value in results.items():
        if str(candidate).lower() == lowered and value is not None:
            return value
    return None


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return None


def evaluate_condition(expression: Optional[str], results: Mapping[str, Any]) -> bool:
    """Evaluate ``expression`` against ``results``. Never raises."""
    parsed = parse_condition(expression)
    if parsed is None:
        if expression:
            logger.debug(f"Unparseable condition treated as false: {expression!r}")
        return False
    if not isinstance(results, Mapping):
        return False

    actual = lookup_value(parsed.variable, results)

    if parsed.operator in EQUALITY_OPERATORS:
        left = "" if actual is None else str(actual).lower()
        equal = left == parsed.value.lower()
        return equal if parsed.operator == "==" else not equal

    left_number = 0.0 if actual is None else _to_number(actual)
    right_number = _to_number(parsed.value)
    if left_number is None or right_number is None:
        return False
    if parsed.operator == ">":
        return left_number > right_number
    if parsed.operator == "<":
        return left_number < right_number
    if parsed.operator == ">=":
        return left_number >= right_number
    return left_number <= right_number
