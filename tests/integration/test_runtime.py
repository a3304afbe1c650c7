"""Tests for the blocking run_load_test entry point."""

from __future__ import annotations

import io
import json
import logging
import sys

import pytest

from stageload import RunConfig, SetupError, Stage, run_load_test
from stageload.engine.runtime import _uvloop_factory
from stageload.metrics.models import MetricsSnapshot


def _config(url: str, **kwargs: object) -> RunConfig:
    kwargs.setdefault("stages", [Stage(0.2, 2), Stage(0.2, 0)])
    kwargs.setdefault("sleep_seconds", 0.01)
    kwargs.setdefault("tick_interval", 0.05)
    return RunConfig(target_url=url, **kwargs)  # type: ignore[arg-type]


@pytest.mark.slow
def test_run_load_test_returns_report(sync_target_server: str) -> None:
    snapshots: list[MetricsSnapshot] = []
    report = run_load_test(
        _config(f"{sync_target_server}/search", query={"q": "tech"}),
        on_snapshot=snapshots.append,
        log_level=logging.WARNING,
        handle_signals=False,
    )
    assert report.total_requests > 0
    assert report.checks["is status 200"].fails == 0
    assert snapshots


def test_run_load_test_setup_error(unreachable_url: str) -> None:
    with pytest.raises(SetupError):
        run_load_test(_config(unreachable_url), handle_signals=False)


@pytest.mark.slow
def test_run_load_test_json_logs(
    sync_target_server: str, monkeypatch: pytest.MonkeyPatch
) -> None:
    stream = io.StringIO()
    monkeypatch.setattr(sys, "stderr", stream)
    run_load_test(
        _config(f"{sync_target_server}/search", stages=[Stage(0, 1)]),
        log_level=logging.INFO,
        json_logs=True,
        handle_signals=False,
    )
    lines = [json.loads(line) for line in stream.getvalue().splitlines() if line]
    states = [line["run_state"] for line in lines if "run_state" in line]
    assert states[-1] == "DONE"
    assert all(line["logger"].startswith("stageload.") for line in lines)


def test_uvloop_factory_is_optional() -> None:
    factory = _uvloop_factory()
    if sys.platform == "win32":
        assert factory is None
    else:
        assert factory is None or callable(factory)
