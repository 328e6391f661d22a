"""Tests for the ddd-sync command line."""

from click.testing import CliRunner

from ddd_sync import __version__
from ddd_sync.cli import main

runner = CliRunner()


def _drifted(project) -> str:
    project.add_flow("billing", "charge")
    project.add_flow("billing", "refund")
    project.write(project.spec_path("billing", "charge"), "changed\n")
    project.save_domains()
    project.save_mappings()
    return str(project.root)


def test_version():
    result = runner.invoke(main, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_help_lists_commands():
    result = runner.invoke(main, ["--help"])
    assert result.exit_code == 0
    for command in ("status", "drift", "resolve", "resolve-all", "history", "record"):
        assert command in result.output


def test_status_on_empty_project(tmp_path):
    result = runner.invoke(main, ["status", "--root", str(tmp_path)])
    assert result.exit_code == 0
    assert "No implemented flows" in result.output


def test_status_shows_flows_and_score(project):
    root = _drifted(project)
    result = runner.invoke(main, ["status", "-r", root])

    assert result.exit_code == 0
    assert "billing/charge" in result.output
    assert "spec ahead" in result.output
    assert "Sync Score" in result.output
    assert "50%" in result.output


def test_drift_lists_items(project):
    root = _drifted(project)
    result = runner.invoke(main, ["drift", "-r", root])

    assert result.exit_code == 0
    assert "DRIFT billing/charge" in result.output
    assert "forward" in result.output
    assert "billing/refund" not in result.output


def test_resolve_accept(project):
    root = _drifted(project)
    result = runner.invoke(main, ["resolve", "billing/charge", "--action", "accept", "-r", root])

    assert result.exit_code == 0
    assert "50% -> 100%" in result.output
    assert project.read_yaml(".ddd/mapping.yaml")["flows"]["billing/charge"]["syncState"] == "synced"

    again = runner.invoke(main, ["drift", "-r", root])
    assert "No drift detected" in again.output

    reports = runner.invoke(main, ["reports", "-r", root])
    assert "Reconciliations (1)" in reports.output


def test_resolve_reimpl_prints_command(project):
    root = _drifted(project)
    result = runner.invoke(main, ["resolve", "billing/charge", "-a", "reimpl", "-r", root])

    assert result.exit_code == 0
    assert "/ddd-implement billing/charge" in result.output


def test_resolve_without_drift(project):
    root = _drifted(project)
    result = runner.invoke(main, ["resolve", "billing/refund", "-a", "accept", "-r", root])

    assert result.exit_code == 0
    assert "No active drift for billing/refund" in result.output


def test_resolve_all_rejects_reimpl(project):
    root = _drifted(project)
    result = runner.invoke(main, ["resolve-all", "-a", "reimpl", "-r", root])
    assert result.exit_code == 2


def test_resolve_all_ignore(project):
    root = _drifted(project)
    result = runner.invoke(main, ["resolve-all", "-a", "ignore", "-r", root])

    assert result.exit_code == 0
    assert "billing/charge: ignore" in result.output


def test_record_history_and_implemented(project):
    project.write("specs/system.yaml", "name: shop\n")
    root = str(project.root)

    recorded = runner.invoke(main, ["record", "specs/system.yaml", "--level", "L1", "-r", root])
    assert recorded.exit_code == 0
    assert "chg-0001" in recorded.output

    unchanged = runner.invoke(main, ["record", "specs/system.yaml", "--level", "L1", "-r", root])
    assert "unchanged" in unchanged.output

    pending = runner.invoke(main, ["history", "--pending", "-r", root])
    assert "chg-0001" in pending.output

    done = runner.invoke(main, ["implemented", "chg-0001", "-f", "src/app.py", "-r", root])
    assert done.exit_code == 0
    assert "1 files" in done.output

    pending = runner.invoke(main, ["history", "--pending", "-r", root])
    assert "No recorded changes" in pending.output

    everything = runner.invoke(main, ["history", "-r", root])
    assert "chg-0001" in everything.output


def test_record_deleted_file(project):
    root = str(project.root)
    result = runner.invoke(
        main, ["record", "specs/gone.yaml", "--deleted", "-r", root]
    )
    assert result.exit_code == 0
    assert "chg-0001" in result.output


def test_record_missing_file_fails(project):
    result = runner.invoke(main, ["record", "specs/missing.yaml", "-r", str(project.root)])
    assert result.exit_code == 1
    assert "File not readable" in result.output


def test_implemented_unknown_id_fails(project):
    result = runner.invoke(main, ["implemented", "chg-0042", "-r", str(project.root)])
    assert result.exit_code == 1
    assert "No change with id chg-0042" in result.output
