import json

import pytest
from click.testing import CliRunner

from autoflow.cli import cli


def write_graph(path, nodes, edges=()):
    path.write_text(json.dumps({
        "nodes": nodes,
        "edges": [{"source": s, "target": t} for s, t in edges],
    }), encoding="utf-8")
    return str(path)


@pytest.fixture
def runner(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}")
    return CliRunner()


@pytest.fixture
def log_graph(tmp_path):
    return write_graph(
        tmp_path / "log.json",
        [
            {"id": "start", "type": "trigger", "data": {"label": "Start"}},
            {"id": "log", "type": "action", "data": {"label": "Write log", "config": {"action": "log", "message": "hi"}}},
        ],
        [("start", "log")],
    )


def test_validate(runner, log_graph):
    result = runner.invoke(cli, ["validate", log_graph])
    assert result.exit_code == 0
    assert "Valid: 2 nodes, 1 edges" in result.output


def test_validate_reports_missing_trigger(runner, tmp_path):
    path = write_graph(tmp_path / "bad.json", [{"id": "log", "type": "action", "config": {"action": "log"}}])
    result = runner.invoke(cli, ["validate", path])
    assert result.exit_code == 1
    assert "No trigger node found" in result.output


def test_run_prints_log(runner, log_graph):
    result = runner.invoke(cli, ["run", log_graph, "--workflow-id", "demo"])
    assert result.exit_code == 0
    assert "Starting from: Start" in result.output
    assert "Workflow completed successfully" in result.output


def test_run_json_output(runner, log_graph):
    result = runner.invoke(cli, ["--log-level", "ERROR", "run", log_graph, "--json"])
    assert json.loads(result.output)["status"] == "completed"


def test_run_failure_exit_code(runner, tmp_path):
    path = write_graph(
        tmp_path / "fail.json",
        [{"id": "start", "type": "trigger"}, {"id": "x", "type": "action", "config": {"action": "sms"}}],
        [("start", "x")],
    )
    result = runner.invoke(cli, ["run", path])
    assert result.exit_code == 1
    assert "Error: Failed to execute x" in result.output


def test_run_unparseable_graph(runner, tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{nope", encoding="utf-8")
    result = runner.invoke(cli, ["run", str(path)])
    assert result.exit_code == 1
    assert "Could not decode" in result.output


def test_schedule_then_inspect(runner, log_graph):
    scheduled = runner.invoke(
        cli, ["schedule", log_graph, "--workflow-id", "demo", "--recurrence", "hourly", "--duration", "0"]
    )
    assert scheduled.exit_code == 0, scheduled.output
    assert "Scheduled demo (hourly)" in scheduled.output

    status = runner.invoke(cli, ["status", "demo"])
    assert status.exit_code == 0
    assert json.loads(status.output)["recurrence"] == "hourly"

    listed = runner.invoke(cli, ["list"])
    assert "demo\thourly\tactive" in listed.output

    assert runner.invoke(cli, ["unschedule", "demo"]).exit_code == 0
    assert "No schedules" in runner.invoke(cli, ["list"]).output
    assert "inactive" in runner.invoke(cli, ["list", "--all"]).output

    cleared = runner.invoke(cli, ["clear", "--yes"])
    assert "Cleared 1 schedules" in cleared.output


def test_status_unknown(runner):
    result = runner.invoke(cli, ["status", "missing"])
    assert result.exit_code == 1
    assert "not scheduled" in result.output
