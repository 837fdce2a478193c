import json
from typer.testing import CliRunner

from plan_timeline.cli import app

runner = CliRunner()


def test_cli_lint_json_success():
    r = runner.invoke(app, ["lint", "examples/basic-plan.yaml", "--format", "json"])
    assert r.exit_code == 0
    payload = json.loads(r.stdout)
    assert payload["command"] == "lint"
    assert payload["ok"] is True
    assert payload["error_count"] == 0
    assert payload["errors"] == []


def test_cli_lint_json_failure_contains_codes():
    r = runner.invoke(app, ["lint", "examples/invalid-duplicate-id.yaml", "--format", "json"])
    assert r.exit_code == 2
    payload = json.loads(r.stdout)
    assert payload["ok"] is False
    sources = {e["code"]: e["source"] for e in payload["errors"]}
    assert sources["L_DUPLICATE_ID"] == "lint"
    assert sources["E_DUPLICATE_ID"] == "validate"
