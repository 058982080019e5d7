import json
from pathlib import Path

from typer.testing import CliRunner

from techtree.cli import app

runner = CliRunner()

EXAMPLES = Path(__file__).resolve().parents[1] / "examples"


def test_cli_validate_success():
    r = runner.invoke(app, ["validate", str(EXAMPLES / "basic-tree.yaml")])
    assert r.exit_code == 0
    assert "OK: 4 nodes in 3 columns" in r.stdout
    assert "Focus: essay" in r.stdout


def test_cli_validate_failure():
    r = runner.invoke(app, ["validate", str(EXAMPLES / "invalid-bad-status.yaml")])
    assert r.exit_code == 2
    assert "E_INVALID_ENUM" in r.output
    assert "nodes[0].status" in r.output


def test_cli_validate_runs_lint_rules():
    r = runner.invoke(app, ["validate", str(EXAMPLES / "invalid-unplaced.yaml")])
    assert r.exit_code == 2
    assert "L_LAYOUT_MISSING_NODE" in r.output


def test_cli_validate_json_success():
    r = runner.invoke(app, ["validate", str(EXAMPLES / "basic-tree.yaml"), "--format", "json"])
    assert r.exit_code == 0
    payload = json.loads(r.stdout)
    assert payload["tool"] == "techtree"
    assert payload["command"] == "validate"
    assert payload["ok"] is True
    assert payload["error_count"] == 0
    assert payload["errors"] == []


def test_cli_validate_json_lint_failure():
    r = runner.invoke(app, ["validate", str(EXAMPLES / "invalid-cycle.yaml"), "--format", "json"])
    assert r.exit_code == 2
    payload = json.loads(r.stdout)
    assert payload["ok"] is False
    cycle = next(e for e in payload["errors"] if e["code"] == "L_CYCLE_DETECTED")
    assert cycle["source"] == "lint"
    assert cycle["severity"] == "error"
    assert cycle["file"].endswith("invalid-cycle.yaml")


def test_cli_validate_json_load_failure():
    r = runner.invoke(app, ["validate", str(EXAMPLES / "invalid-yaml.yaml"), "--format", "json"])
    assert r.exit_code == 1
    payload = json.loads(r.stdout)
    assert [e["code"] for e in payload["errors"]] == ["E_YAML_PARSE"]
    assert payload["errors"][0]["source"] == "load"


def test_cli_validate_unknown_format():
    r = runner.invoke(app, ["validate", str(EXAMPLES / "basic-tree.yaml"), "--format", "xml"])
    assert r.exit_code == 2
    assert "E_VALIDATE_UNKNOWN_FORMAT" in r.output


def test_cli_lint_stored_tree(tmp_path):
    store = str(tmp_path / "store.json")
    r = runner.invoke(app, ["--store", store, "lint"])
    assert r.exit_code == 0
    assert "OK: lint passed" in r.stdout

    r = runner.invoke(app, ["--store", store, "import", str(EXAMPLES / "invalid-unplaced.yaml"), "--force"])
    assert r.exit_code == 0

    r = runner.invoke(app, ["--store", store, "lint"])
    assert r.exit_code == 2
    assert "L_LAYOUT_MISSING_NODE" in r.output

    r = runner.invoke(app, ["--store", store, "lint", "--format", "json"])
    assert r.exit_code == 2
    payload = json.loads(r.stdout)
    assert payload["command"] == "lint"
    assert payload["error_count"] == 1
    assert payload["errors"][0]["code"] == "L_LAYOUT_MISSING_NODE"
