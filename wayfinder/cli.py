"""Command line interface for inspecting and running Wayfinder workflows."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError

from wayfinder.cli_utils.workflow import (
    describe_position,
    dump_workflow,
    format_trail,
    load_workflow,
    parse_inputs,
)
from wayfinder.config import load_config
from wayfinder.converter import convert_to_graph
from wayfinder.runner import WorkflowRunner
from wayfinder.simulation import Simulation, SimulationStatus
from wayfinder.steps import CheckpointStep, MessageStep, QuestionStep
from wayfinder.validation import WorkflowValidationError, validate_workflow
from wayfinder.workflow import Workflow

app = typer.Typer(help="CLI for Wayfinder workflows")

# Command groups
workflow_app = typer.Typer(help="Commands for inspecting workflow definitions")

app.add_typer(workflow_app, name="workflow")

_FAILED = (SimulationStatus.ERROR, SimulationStatus.TIMEOUT)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Wayfinder CLI entry point."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)


def _load_or_exit(path: Path) -> Workflow:
    if not path.exists():
        typer.secho(f"Workflow file not found: {path}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    try:
        return load_workflow(path)
    except (ValidationError, ValueError) as exc:
        typer.secho(f"Could not load workflow: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1)


def _print_summary(workflow: Workflow, simulation: Simulation) -> None:
    typer.echo(f"Status: {simulation.status.value}")
    if simulation.status is SimulationStatus.ACTIVE:
        typer.echo(f"Waiting at: {describe_position(workflow, simulation.current_position)}")
    if simulation.error:
        typer.secho(f"Error: {simulation.error}", fg=typer.colors.RED)
    if simulation.results:
        typer.echo("Results:")
        for name, value in simulation.results.items():
            typer.echo(f"  {name}: {value}")
    trail = format_trail(simulation)
    if trail:
        typer.echo("Trail:")
        for line in trail:
            typer.echo(f"  {line}")


@workflow_app.command("show")
def workflow_show(path: Path) -> None:
    """
    Show the structure of a workflow definition.

    Prints the title, addressing mode, start step, every step with its
    outgoing routes, and the terminal steps.

    Example:
        wayfinder workflow show triage.yaml
    """
    workflow = _load_or_exit(path)
    mode = "graph" if workflow.graph_mode else "linear"
    start = workflow.start_node()

    typer.echo(f"Workflow: {workflow.title or workflow.id}")
    typer.echo(f"Mode: {mode}")
    typer.echo(f"Start: {start.title if start else '(none)'}")
    typer.echo("Steps:")
    for index, step in enumerate(workflow.steps):
        label = step.id if workflow.graph_mode else index
        typer.echo(f"  [{label}] {step.title} ({step.type})")
        for transition in step.transitions:
            target = workflow.find_step_by_id(transition.target_id)
            name = target.title if target else transition.target_id
            typer.echo(f"      -> {name} ({transition.label or transition.condition or 'default'})")

    terminals = ", ".join(step.title or step.id for step in workflow.terminal_nodes())
    typer.echo(f"Terminal: {terminals or '(none)'}")


@workflow_app.command("validate")
def workflow_validate(
    path: Path,
    strict: bool = typer.Option(False, "--strict", help="Reject cycles in graph workflows"),
    config: Optional[Path] = typer.Option(None, "--config", help="Configuration file"),
) -> None:
    """
    Check a workflow definition for authoring problems.

    Reports unparseable conditions, dangling references, unreachable steps,
    missing terminals and size limit violations. Exits with code 1 when any
    problem is found.

    Example:
        wayfinder workflow validate triage.yaml --strict
    """
    workflow = _load_or_exit(path)
    limits = load_config(str(config) if config else None).limits
    problems = validate_workflow(workflow, allow_cycles=not strict, limits=limits)
    if not problems:
        typer.secho("Workflow is valid", fg=typer.colors.GREEN)
        return
    for problem in problems:
        typer.echo(f"- {problem}")
    typer.secho(f"{len(problems)} problem(s) found", fg=typer.colors.RED)
    raise typer.Exit(code=1)


@workflow_app.command("convert")
def workflow_convert(
    path: Path,
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write YAML here"),
) -> None:
    """
    Convert a linear workflow into graph mode.

    Example:
        wayfinder workflow convert triage.yaml --output triage-graph.yaml
    """
    workflow = _load_or_exit(path)
    try:
        converted = convert_to_graph(workflow)
    except WorkflowValidationError as exc:
        for problem in exc.errors:
            typer.echo(f"- {problem}")
        typer.secho("Conversion failed", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    text = dump_workflow(converted)
    if output is None:
        typer.echo(text)
        return
    output.write_text(text)
    typer.echo(f"Wrote graph workflow to {output}")


@app.command("run")
def run(
    path: Path,
    inputs: Optional[List[str]] = typer.Option(None, "--input", "-i", help="Answer as name=value"),
    state: Optional[Path] = typer.Option(None, "--state", help="Save the simulation as JSON"),
    config: Optional[Path] = typer.Option(None, "--config", help="Configuration file"),
) -> None:
    """
    Run a workflow to completion with the given answers.

    Questions read their answer from the inputs by variable name, then by
    position, then by title. A checkpoint pauses the run.

    Args:
        path: Workflow definition (YAML or JSON)
        inputs: Answers in name=value form, repeatable
        state: Optional file receiving the resulting simulation
        config: Optional configuration file with iteration and time limits

    Example:
        wayfinder run triage.yaml --input count=75 --state run.json
    """
    workflow = _load_or_exit(path)
    try:
        answers = parse_inputs(inputs or [])
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--input")

    runner = WorkflowRunner(workflow, config=load_config(str(config) if config else None))
    simulation = runner.start(answers)
    runner.execute(simulation)
    _print_summary(workflow, simulation)

    if state is not None:
        state.write_text(simulation.to_json())
        typer.echo(f"Saved simulation to {state}")
    if simulation.status in _FAILED:
        raise typer.Exit(code=1)


@app.command("walk")
def walk(
    path: Path,
    config: Optional[Path] = typer.Option(None, "--config", help="Configuration file"),
) -> None:
    """
    Walk through a workflow interactively.

    Questions are prompted one at a time; checkpoints ask whether the
    issue is resolved.

    Example:
        wayfinder walk triage.yaml
    """
    workflow = _load_or_exit(path)
    runner = WorkflowRunner(workflow, config=load_config(str(config) if config else None))
    simulation = runner.start()

    while not simulation.is_terminal():
        step = runner.current_step(simulation)
        if step is None:
            break
        if isinstance(step, CheckpointStep):
            typer.echo(step.message or step.title)
            resolved = typer.confirm("Is the issue resolved?", default=True)
            advanced = runner.resolve_checkpoint(simulation, resolved)
        elif isinstance(step, QuestionStep):
            prompt = step.question or step.title
            if step.options:
                prompt = f"{prompt} [{' / '.join(str(o) for o in step.options)}]"
            answer = typer.prompt(prompt, default="", show_default=False)
            advanced = runner.process_step(simulation, answer)
        else:
            typer.echo(f"{step.title} ({step.type})")
            advanced = runner.process_step(simulation)
            if isinstance(step, MessageStep) and simulation.execution_path:
                typer.echo(simulation.execution_path[-1].content or "")
        if not advanced:
            break

    _print_summary(workflow, simulation)
    if simulation.status in _FAILED:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
