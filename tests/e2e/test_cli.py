"""End-to-end tests for the stageload CLI."""

from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from stageload import __version__
from stageload.cli.app import app

runner = CliRunner()

FAST_RUN = ["--stage", "0.2s:3", "--stage", "0.2s:0", "--tick", "0.05", "--sleep", "0.01"]


# ---------------------------------------------------------------------------
# Tests: version and help
# ---------------------------------------------------------------------------


def test_version_flag():
    """--version prints version and exits 0."""
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert f"stageload {__version__}" in result.output


def test_version_short_flag():
    """-V also prints version."""
    result = runner.invoke(app, ["-V"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_help_output():
    """--help lists both commands."""
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "run" in result.output
    assert "plan" in result.output


def test_run_help():
    """stageload run --help shows run options."""
    result = runner.invoke(app, ["run", "--help"])
    assert result.exit_code == 0
    assert "--stage" in result.output
    assert "--check" in result.output
    assert "--sleep" in result.output


# ---------------------------------------------------------------------------
# Tests: stageload plan
# ---------------------------------------------------------------------------


def test_plan_prints_timeline():
    """stageload plan shows one row per tick and a summary line."""
    result = runner.invoke(app, ["plan", "--stage", "2s:4", "--stage", "2s:0"])
    assert result.exit_code == 0, result.output
    assert "Plan: 2s->4, 2s->0" in result.output
    assert "Total 4s, peak 4 users, 5 ticks" in result.output
    assert "+2" in result.output


def test_plan_default_profile():
    """Without --stage, plan shows the default ramp-hold-ramp profile."""
    result = runner.invoke(app, ["plan"])
    assert result.exit_code == 0, result.output
    assert "10s->50, 30s->50, 10s->0" in result.output
    assert "peak 50 users" in result.output


def test_plan_rejects_bad_tick():
    """A non-positive --tick is a usage error."""
    result = runner.invoke(app, ["plan", "--tick", "0"])
    assert result.exit_code != 0


def test_plan_rejects_bad_stage():
    """A malformed stage is a usage error."""
    result = runner.invoke(app, ["plan", "--stage", "fast:ten"])
    assert result.exit_code != 0


# ---------------------------------------------------------------------------
# Tests: stageload run
# ---------------------------------------------------------------------------


@pytest.mark.slow
def test_run_basic(sync_target_server: str):
    """stageload run executes the profile and prints the report."""
    result = runner.invoke(
        app,
        ["run", f"{sync_target_server}/search", "--query", "q=tech", *FAST_RUN],
    )
    assert result.exit_code == 0, result.output
    assert "Run Complete" in result.output
    assert "is status 200" in result.output
    assert "is fast" in result.output


@pytest.mark.slow
def test_run_json_output(sync_target_server: str):
    """--json prints a machine-readable report on stdout."""
    result = runner.invoke(
        app,
        ["run", f"{sync_target_server}/search", "--json", *FAST_RUN],
    )
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["total_requests"] > 0
    assert data["network_errors"] == 0
    assert data["checks"]["is status 200"]["pass_rate"] == 1.0
    assert set(data["status_counts"]) == {"200"}


@pytest.mark.slow
def test_run_custom_checks(sync_target_server: str):
    """--check replaces the default checks."""
    result = runner.invoke(
        app,
        [
            "run",
            f"{sync_target_server}/search",
            "--query",
            "q=tech",
            "--check",
            'mentions tech:body contains "tech"',
            "--check",
            "not server error:status < 500",
            "--json",
            *FAST_RUN,
        ],
    )
    assert result.exit_code == 0, result.output
    checks = json.loads(result.stdout)["checks"]
    assert set(checks) == {"mentions tech", "not server error"}
    assert checks["mentions tech"]["fails"] == 0


@pytest.mark.slow
def test_run_failing_checks_still_exit_zero(sync_target_server: str):
    """Server errors fail the status check but never the command."""
    result = runner.invoke(
        app,
        ["run", f"{sync_target_server}/error", "--json", *FAST_RUN],
    )
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["checks"]["is status 200"]["passes"] == 0
    assert data["status_counts"] == {"500": data["total_requests"]}


def test_run_unreachable_target(unreachable_url: str):
    """An unreachable target fails setup with exit code 1."""
    result = runner.invoke(app, ["run", unreachable_url, *FAST_RUN])
    assert result.exit_code == 1
    assert "Setup failed" in result.output


def test_run_invalid_url():
    """A non-http URL is rejected before any traffic."""
    result = runner.invoke(app, ["run", "ftp://example.com/search", *FAST_RUN])
    assert result.exit_code == 1
    assert "Error:" in result.output


def test_run_bad_stage():
    """A malformed --stage is a usage error."""
    result = runner.invoke(app, ["run", "http://127.0.0.1:9/search", "--stage", "10s"])
    assert result.exit_code != 0


def test_run_bad_check():
    """An unparseable --check is a usage error."""
    result = runner.invoke(
        app,
        ["run", "http://127.0.0.1:9/search", "--check", "fast:latency < 5"],
    )
    assert result.exit_code != 0


def test_run_bad_header():
    """A header without a colon is a usage error."""
    result = runner.invoke(
        app,
        ["run", "http://127.0.0.1:9/search", "--header", "no-colon"],
    )
    assert result.exit_code != 0


def test_run_bad_environment(monkeypatch: pytest.MonkeyPatch):
    """Invalid environment defaults are reported as configuration errors."""
    monkeypatch.setenv("STAGELOAD_POOL_SIZE", "lots")
    result = runner.invoke(app, ["run", "http://127.0.0.1:9/search", *FAST_RUN])
    assert result.exit_code == 1
    assert "STAGELOAD_POOL_SIZE" in result.output


@pytest.mark.parametrize("stage", ["inf:5", "nan:5", "10s:2.5"])
def test_plan_rejects_unbounded_or_fractional_stage(stage: str):
    """Infinite, NaN or fractional stages are usage errors, not endless plans."""
    result = runner.invoke(app, ["plan", "--stage", stage])
    assert result.exit_code != 0
