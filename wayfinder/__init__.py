"""Wayfinder: execution core for branching, multi-step troubleshooting workflows."""

from .conditions import evaluate_condition, parse_condition
from .config import LimitsConfig, WayfinderConfig, load_config
from .converter import convert_to_graph
from .engine import Outcome, OutcomeKind, StepMachine
from .guard import SafetyGuard
from .resolver import resolve_step_reference
from .rewind import replay_trail, rewound
from .runner import WorkflowRunner
from .simulation import ExecutionEntry, Simulation, SimulationStatus
from .validation import WorkflowValidationError, validate_workflow
from .workflow import Workflow

__version__ = "0.1.0"
__all__ = [
    "Workflow",
    "Simulation",
    "SimulationStatus",
    "ExecutionEntry",
    "WorkflowRunner",
    "StepMachine",
    "Outcome",
    "OutcomeKind",
    "SafetyGuard",
    "evaluate_condition",
    "parse_condition",
    "resolve_step_reference",
    "convert_to_graph",
    "validate_workflow",
    "WorkflowValidationError",
    "replay_trail",
    "rewound",
    "LimitsConfig",
    "WayfinderConfig",
    "load_config",
]
