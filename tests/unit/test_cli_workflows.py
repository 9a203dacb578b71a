import json
from pathlib import Path

import pytest
import yaml
from typer.testing import CliRunner

from wayfinder.cli import app

FIXTURES = Path(__file__).parent.parent / "fixtures"


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    monkeypatch.delenv("WAYFINDER_CONFIG", raising=False)
    monkeypatch.delenv("SIMULATION_MAX_ITERATIONS", raising=False)
    monkeypatch.delenv("SIMULATION_MAX_SECONDS", raising=False)
    monkeypatch.chdir(tmp_path)


def test_workflow_show_lists_steps_and_terminals():
    runner = CliRunner()
    result = runner.invoke(app, ["workflow", "show", str(FIXTURES / "graph.yaml")])
    assert (
        result.exit_code == 0
    ), f"Command failed with exit code {result.exit_code}. Output: {result.stdout}"
    output = result.stdout
    assert "Workflow: Device support" in output, f"Title not found in output: {output}"
    assert "Mode: graph" in output, f"Mode not found in output: {output}"
    assert "Start: Device type?" in output, f"Start step not found in output: {output}"
    assert "-> Laptop checks (Laptop)" in output, f"Transition not found in output: {output}"
    assert "Terminal: Close ticket" in output, f"Terminal not found in output: {output}"


def test_workflow_show_missing_file():
    runner = CliRunner()
    result = runner.invoke(app, ["workflow", "show", "missing.yaml"])
    assert (
        result.exit_code == 1
    ), f"Expected exit code 1 for missing file, got {result.exit_code}. Output: {result.stdout}"
    assert "Workflow file not found" in result.stdout


def test_workflow_show_rejects_invalid_definition(tmp_path):
    bad = tmp_path / "bad.yaml"
    bad.write_text("steps:\n  - type: teleport\n    title: Beam me up\n")
    runner = CliRunner()
    result = runner.invoke(app, ["workflow", "show", str(bad)])
    assert result.exit_code == 1, f"Expected exit code 1, got {result.exit_code}"
    assert "Could not load workflow" in result.stdout


def test_workflow_validate_ok_and_strict(tmp_path):
    runner = CliRunner()
    result = runner.invoke(app, ["workflow", "validate", str(FIXTURES / "severity.yaml")])
    assert (
        result.exit_code == 0
    ), f"Command failed with exit code {result.exit_code}. Output: {result.stdout}"
    assert "Workflow is valid" in result.stdout

    cyclic = tmp_path / "cyclic.yaml"
    cyclic.write_text(
        yaml.safe_dump(
            {
                "graph_mode": True,
                "steps": [
                    {"id": "a", "type": "action", "title": "A", "transitions": [{"target_id": "b"}]},
                    {
                        "id": "b",
                        "type": "decision",
                        "title": "B",
                        "transitions": [
                            {"target_id": "a", "condition": "again == 'yes'"},
                            {"target_id": "c"},
                        ],
                    },
                    {"id": "c", "type": "action", "title": "C"},
                ],
            }
        )
    )
    result = runner.invoke(app, ["workflow", "validate", str(cyclic)])
    assert result.exit_code == 0, f"Cycles are allowed by default. Output: {result.stdout}"

    result = runner.invoke(app, ["workflow", "validate", str(cyclic), "--strict"])
    assert result.exit_code == 1, f"Expected strict mode to fail. Output: {result.stdout}"
    assert "Cycle detected: A -> B -> A" in result.stdout


def test_workflow_convert_writes_graph_yaml(tmp_path):
    output = tmp_path / "graph.yaml"
    runner = CliRunner()
    result = runner.invoke(
        app, ["workflow", "convert", str(FIXTURES / "legacy.yaml"), "--output", str(output)]
    )
    assert (
        result.exit_code == 0
    ), f"Command failed with exit code {result.exit_code}. Output: {result.stdout}"
    data = yaml.safe_load(output.read_text())
    assert data["graph_mode"] is True
    assert data["start_node_id"] == data["steps"][0]["id"]
    assert data["steps"][0]["transitions"][0]["label"] == "Continue"

    result = runner.invoke(app, ["workflow", "validate", str(output)])
    assert result.exit_code == 0, f"Converted workflow is invalid: {result.stdout}"


def test_run_completes_and_saves_state(tmp_path):
    state = tmp_path / "run.json"
    runner = CliRunner()
    result = runner.invoke(
        app,
        [
            "run",
            str(FIXTURES / "severity.yaml"),
            "--input",
            "count=75",
            "--state",
            str(state),
        ],
    )
    assert (
        result.exit_code == 0
    ), f"Command failed with exit code {result.exit_code}. Output: {result.stdout}"
    output = result.stdout
    assert "Status: completed" in output, f"Status not found in output: {output}"
    assert "summary: High: 75 errors" in output, f"Summary not found in output: {output}"
    assert "3. High (action)" in output, f"Trail not found in output: {output}"

    saved = json.loads(state.read_text())
    assert saved["status"] == "completed"
    assert saved["results"]["summary"] == "High: 75 errors"
    assert len(saved["execution_path"]) == saved["iteration_count"] == 4


def test_run_rejects_malformed_input():
    runner = CliRunner()
    result = runner.invoke(app, ["run", str(FIXTURES / "severity.yaml"), "--input", "count"])
    assert result.exit_code == 2, f"Expected usage error, got {result.exit_code}"


def test_run_exits_nonzero_on_iteration_limit(monkeypatch):
    monkeypatch.setenv("SIMULATION_MAX_ITERATIONS", "6")
    runner = CliRunner()
    result = runner.invoke(app, ["run", str(FIXTURES / "loop.yaml"), "--input", "retry=yes"])
    assert result.exit_code == 1, f"Expected exit code 1, got {result.exit_code}"
    assert "Status: error" in result.stdout
    assert "Simulation exceeded maximum iterations (6)" in result.stdout


def test_run_pauses_at_checkpoint():
    runner = CliRunner()
    result = runner.invoke(app, ["run", str(FIXTURES / "graph.yaml"), "--input", "device=laptop"])
    assert result.exit_code == 0, f"Command failed. Output: {result.stdout}"
    assert "Status: active" in result.stdout
    assert "Waiting at: Escalate [checkpoint]" in result.stdout


def test_walk_prompts_for_answers_and_checkpoints():
    runner = CliRunner()
    result = runner.invoke(app, ["walk", str(FIXTURES / "graph.yaml")], input="phone\ny\n")
    assert (
        result.exit_code == 0
    ), f"Command failed with exit code {result.exit_code}. Output: {result.stdout}"
    output = result.stdout
    assert "Device type? [laptop / phone]" in output, f"Prompt not found in output: {output}"
    assert "Did escalation fix the issue?" in output
    assert "Status: completed" in output
    assert "sub-flow phone-support" in output
    assert "Escalate (checkpoint) - resolved" in output


def test_walk_continues_when_checkpoint_unresolved():
    runner = CliRunner()
    result = runner.invoke(app, ["walk", str(FIXTURES / "graph.yaml")], input="laptop\nn\n")
    assert result.exit_code == 0, f"Command failed. Output: {result.stdout}"
    assert "Escalate (checkpoint) - continued" in result.stdout
    assert "Close ticket: Action executed" in result.stdout


def test_workflow_validate_applies_configured_limits(tmp_path):
    config = tmp_path / "limits.yaml"
    config.write_text("limits:\n  max_steps: 2\n")
    runner = CliRunner()
    result = runner.invoke(
        app, ["workflow", "validate", str(FIXTURES / "support.yaml"), "--config", str(config)]
    )
    assert result.exit_code == 1, f"Expected the step limit to fail. Output: {result.stdout}"
    assert "Workflow cannot exceed 2 steps (currently 4)" in result.stdout


def test_walk_shows_message_and_resolves():
    runner = CliRunner()
    result = runner.invoke(app, ["walk", str(FIXTURES / "support.yaml")], input="2\n")
    assert (
        result.exit_code == 0
    ), f"Command failed with exit code {result.exit_code}. Output: {result.stdout}"
    output = result.stdout
    assert "Ask the 2 affected user(s) to restart their session." in output
    assert "Status: completed" in output
    assert "Close incident (resolve) - resolved" in output


def test_run_escalates_widespread_outage():
    runner = CliRunner()
    result = runner.invoke(app, ["run", str(FIXTURES / "support.yaml"), "--input", "users=40"])
    assert result.exit_code == 0, f"Command failed. Output: {result.stdout}"
    assert "Page on-call: Escalated" in result.stdout
    assert "Page on-call (escalate) - routing to done - escalated" in result.stdout
