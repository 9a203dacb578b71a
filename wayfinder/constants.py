"""Shared constants for the wayfinder execution core."""

DEFAULT_MAX_ITERATIONS = 1000
DEFAULT_MAX_EXECUTION_TIME = 30  # seconds
DEFAULT_MAX_CONDITION_DEPTH = 50  # reserved, not enforced by the evaluator

# Authoring size limits
DEFAULT_MAX_STEPS = 200
DEFAULT_MAX_TOTAL_STEPS_SIZE = 10_000_000  # bytes of serialized steps
DEFAULT_MAX_STEP_TITLE_LENGTH = 500  # characters
DEFAULT_MAX_STEP_CONTENT_LENGTH = 50_000  # bytes per text field
DEFAULT_MAX_OPTIONS = 100
DEFAULT_MAX_BRANCHES = 50
DEFAULT_MAX_JUMPS = 50

ERROR_KEY = "_error"
ESCALATION_KEY = "_escalation"
RESOLUTION_KEY = "_resolution"

# Trail entries store these tags; rewind replays only these two kinds.
QUESTION = "question"
ACTION = "action"

ACTION_EXECUTED = "Action executed"
CHECKPOINT_RESOLVED = "Issue resolved - workflow completed"
CHECKPOINT_CONTINUED = "Issue not resolved - continuing workflow"
MESSAGE_DISPLAYED = "Message displayed"
ESCALATED = "Escalated"
ISSUE_RESOLVED = "Issue resolved"

# Jump condition that always matches on action steps.
ACTION_COMPLETED_JUMP = "completed"

ESCALATION_TARGET_TYPES = ("team", "queue", "supervisor", "channel", "department", "ticket")
ESCALATION_PRIORITIES = ("low", "medium", "normal", "high", "urgent", "critical")
RESOLUTION_TYPES = (
    "success",
    "failure",
    "cancelled",
    "escalated",
    "transferred",
    "other",
    "transfer",
    "ticket",
    "manager_escalation",
)
