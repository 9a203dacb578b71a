"""Resolution of branch, jump and transition targets to steps."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .steps import Step
    from .workflow import Workflow

logger = logging.getLogger(__name__)


def resolve_step_reference(reference: Optional[str], workflow: "Workflow") -> Optional["Step"]:
    """Map ``reference`` to a step of ``workflow``.

    Stable ids are tried first. Workflows created before steps had ids
    refer to targets by title, so an exact title match (first occurrence)
    and then a case-insensitive one are tried next. Absence is a normal
    outcome and returns ``None``; callers fall back to the sequential step.
    """
    if not reference:
        return None

    step = workflow.find_step_by_id(reference)
    if step is not None:
        return step

    step = workflow.find_step_by_title(reference)
    if step is not None:
        logger.debug(f"Resolved reference {reference!r} by title")
        return step

    logger.warning(
        f"Could not resolve step reference {reference!r} in workflow {workflow.id}. "
        f"Available: {[s.title for s in workflow.steps]}"
    )
    return None
