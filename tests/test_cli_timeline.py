import json

import yaml
from typer.testing import CliRunner

from plan_timeline import cli
from plan_timeline.cli import app
from plan_timeline.core.errors import TimelineInvariantError


runner = CliRunner()


def test_cli_timeline_stdout_json():
    r = runner.invoke(app, ["timeline", "examples/basic-plan.yaml"])
    assert r.exit_code == 0, r.stdout + r.stderr
    payload = json.loads(r.stdout)
    assert [t["id"] for t in payload["data"]] == ["b", "b/only", "a", "c"]
    assert payload["links"] == []

    by_id = {t["id"]: t for t in payload["data"]}
    assert (by_id["b"]["start_date"], by_id["b"]["end_date"]) == (2, 6)
    assert (by_id["b/only"]["start_date"], by_id["b/only"]["end_date"]) == (3, 6)
    assert by_id["b/only"]["parent"] == "b"
    assert by_id["c"]["unscheduled"] is True
    assert "start_date" not in by_id["c"]


def test_cli_timeline_writes_file(tmp_path):
    out = tmp_path / "nested" / "timeline.json"
    r = runner.invoke(
        app,
        [
            "timeline",
            "examples/project-plan.yaml",
            "--settings",
            "examples/settings.yaml",
            "--out",
            str(out),
        ],
    )
    assert r.exit_code == 0, r.stdout + r.stderr
    assert "OK: wrote timeline" in r.stdout
    assert "tasks=9, links=1" in r.stdout

    payload = json.loads(out.read_text(encoding="utf-8"))
    assert payload["links"] == [{"id": 0, "source": "x", "target": "y/1", "type": "0"}]
    y = next(t for t in payload["data"] if t["id"] == "y")
    assert y["render"] == "split"
    assert y["issue"]["url"] == "https://tracker.example.com/issue/y"


def test_cli_timeline_yaml(tmp_path):
    out = tmp_path / "timeline.yaml"
    r = runner.invoke(
        app, ["timeline", "examples/basic-plan.yaml", "--out", str(out), "--format", "yaml"]
    )
    assert r.exit_code == 0, r.stdout + r.stderr
    payload = yaml.safe_load(out.read_text(encoding="utf-8"))
    assert [t["id"] for t in payload["data"]] == ["b", "b/only", "a", "c"]


def test_cli_timeline_unknown_format():
    r = runner.invoke(app, ["timeline", "examples/basic-plan.yaml", "--format", "csv"])
    assert r.exit_code == 2
    assert "E_TIMELINE_UNKNOWN_FORMAT" in (r.stdout + r.stderr)


def test_cli_timeline_invalid_plan():
    r = runner.invoke(app, ["timeline", "examples/invalid-parent-cycle.yaml"])
    assert r.exit_code == 2
    assert "E_PARENT_CYCLE" in (r.stdout + r.stderr)


def test_cli_timeline_missing_settings():
    r = runner.invoke(
        app, ["timeline", "examples/basic-plan.yaml", "--settings", "examples/nope.yaml"]
    )
    assert r.exit_code == 1
    assert "E_SETTINGS_FILE_NOT_FOUND" in (r.stdout + r.stderr)


def test_cli_timeline_invalid_settings(tmp_path):
    bad = tmp_path / "settings.yaml"
    bad.write_text("contributors:\n  - {id: ext, external: true}\n", encoding="utf-8")
    r = runner.invoke(app, ["timeline", "examples/basic-plan.yaml", "--settings", str(bad)])
    assert r.exit_code == 2
    assert "E_SETTINGS_FILE_INVALID" in (r.stdout + r.stderr)


def test_cli_show_table():
    r = runner.invoke(
        app, ["-v", "show", "examples/project-plan.yaml", "--settings", "examples/settings.yaml"]
    )
    assert r.exit_code == 0, r.stdout + r.stderr
    assert "b/only" in r.stdout
    assert "9 tasks (main=4, aggregate_only=1, activity=4), 1 links" in r.stdout
    assert "- x -> y/1" in r.stdout


def test_cli_timeline_rejects_id_colliding_with_task_id():
    r = runner.invoke(app, ["validate", "examples/invalid-reserved-id.yaml"])
    assert r.exit_code == 2
    assert "E_RESERVED_ID_CHAR" in (r.stdout + r.stderr)

    r = runner.invoke(app, ["timeline", "examples/invalid-reserved-id.yaml"])
    assert r.exit_code == 2
    assert r.exception is None or isinstance(r.exception, SystemExit)
    assert "E_RESERVED_ID_CHAR" in (r.stdout + r.stderr)


def test_cli_timeline_reports_engine_invariant_errors(monkeypatch):
    def broken_build(*args, **kwargs):
        raise TimelineInvariantError(
            code="I_DUPLICATE_TASK_ID", message="task id emitted more than once: a/0", path="a/0"
        )

    monkeypatch.setattr(cli, "build_timeline", broken_build)
    r = runner.invoke(app, ["timeline", "examples/basic-plan.yaml"])
    assert r.exit_code == 2
    assert isinstance(r.exception, SystemExit)
    out = r.stdout + r.stderr
    assert "examples/basic-plan.yaml:a/0: I_DUPLICATE_TASK_ID" in out
