from __future__ import annotations

import os
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_MAX_BRANCHES,
    DEFAULT_MAX_CONDITION_DEPTH,
    DEFAULT_MAX_EXECUTION_TIME,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_MAX_JUMPS,
    DEFAULT_MAX_OPTIONS,
    DEFAULT_MAX_STEP_CONTENT_LENGTH,
    DEFAULT_MAX_STEP_TITLE_LENGTH,
    DEFAULT_MAX_STEPS,
    DEFAULT_MAX_TOTAL_STEPS_SIZE,
)


class LimitsConfig(BaseModel):
    """Safety ceilings for simulation runs and workflow definitions."""

    max_iterations: int = Field(default=DEFAULT_MAX_ITERATIONS, gt=0)
    max_execution_time: float = Field(default=DEFAULT_MAX_EXECUTION_TIME, gt=0)
    # Reserved; single comparisons have no nesting to bound.
    max_condition_depth: int = Field(default=DEFAULT_MAX_CONDITION_DEPTH, gt=0)

    # Checked by validate_workflow, not during a run.
    max_steps: int = Field(default=DEFAULT_MAX_STEPS, gt=0)
    max_total_steps_size: int = Field(default=DEFAULT_MAX_TOTAL_STEPS_SIZE, gt=0)
    max_step_title_length: int = Field(default=DEFAULT_MAX_STEP_TITLE_LENGTH, gt=0)
    max_step_content_length: int = Field(default=DEFAULT_MAX_STEP_CONTENT_LENGTH, gt=0)
    max_options: int = Field(default=DEFAULT_MAX_OPTIONS, gt=0)
    max_branches: int = Field(default=DEFAULT_MAX_BRANCHES, gt=0)
    max_jumps: int = Field(default=DEFAULT_MAX_JUMPS, gt=0)


class WayfinderConfig(BaseModel):
    """Top-level configuration model."""

    limits: LimitsConfig = LimitsConfig()


def load_config(path: Optional[str] = None) -> WayfinderConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to WAYFINDER_CONFIG env
            variable or 'config.yaml' in the current directory.

    ``SIMULATION_MAX_ITERATIONS`` and ``SIMULATION_MAX_SECONDS`` override the
    limits read from the file. Values that are not numbers raise a
    ``ValidationError`` naming the field.
    """

    config_path = path or os.getenv("WAYFINDER_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = WayfinderConfig(**data)
    else:
        config = WayfinderConfig()

    limits = config.limits.model_dump()
    env_iterations = os.getenv("SIMULATION_MAX_ITERATIONS")
    if env_iterations:
        limits["max_iterations"] = env_iterations
    env_seconds = os.getenv("SIMULATION_MAX_SECONDS")
    if env_seconds:
        limits["max_execution_time"] = env_seconds
    config.limits = LimitsConfig(**limits)
    return config
