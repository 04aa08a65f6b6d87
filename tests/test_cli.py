"""Tests for the dev-rhythm command line."""

import csv

import pytest
from typer.testing import CliRunner

from dev_rhythm.cli import app


runner = CliRunner()


@pytest.fixture
def isolated_registry(tmp_path, monkeypatch):
    directory = tmp_path / "sessions"
    directory.mkdir()
    monkeypatch.setattr("dev_rhythm.engine.get_registry_dir", lambda: directory)
    return directory


def test_track_reads_inputs_from_stdin(project_root, ledger_path, isolated_registry):
    result = runner.invoke(
        app,
        ["track", "--root", str(project_root), "--ledger", str(ledger_path)],
        input="\n\ninput\nstatus\n",
    )
    assert result.exit_code == 0, result.output
    assert "Active Time" in result.output

    with ledger_path.open(newline="") as handle:
        rows = list(csv.DictReader(handle))
    assert len(rows) == 1
    assert rows[0]["Project"] == "myapp"
    assert list(isolated_registry.iterdir()) == []


def test_track_reports_conflicts(project_root, ledger_path, isolated_registry):
    (project_root / ".idea").mkdir()
    (project_root / "second" / ".idea").mkdir(parents=True)
    result = runner.invoke(
        app,
        ["track", "--root", str(project_root), "--ledger", str(ledger_path)],
        input="\n",
    )
    assert result.exit_code == 0
    assert ledger_path.exists()


def test_summary_of_missing_ledger(tmp_path):
    result = runner.invoke(app, ["summary", "--ledger", str(tmp_path / "missing.csv")])
    assert result.exit_code == 0
    assert "No sessions recorded" in result.output


def test_invalid_idle_threshold_is_rejected(project_root):
    result = runner.invoke(app, ["track", "--root", str(project_root), "--idle-threshold", "0"])
    assert result.exit_code != 0
