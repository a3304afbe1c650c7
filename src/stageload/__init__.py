"""stageload — staged HTTP load generation with checks and latency percentiles."""

from __future__ import annotations

from stageload._internal.config import EngineSettings, RunConfig, load_settings
from stageload._internal.errors import ConfigError, EngineError, SetupError, StageLoadError
from stageload.engine.checks import (
    Check,
    CheckResult,
    body_contains,
    default_checks,
    duration_below,
    parse_check,
    status_is,
)
from stageload.engine.controller import RunController, RunState
from stageload.engine.executor import RequestResult, RequestSpec
from stageload.engine.runtime import run_load_test
from stageload.engine.stages import Stage, StageSchedule, parse_duration
from stageload.metrics.models import CheckTally, MetricsSnapshot, RunReport

__version__ = "0.1.0"

__all__ = [
    "Check",
    "CheckResult",
    "CheckTally",
    "ConfigError",
    "EngineError",
    "EngineSettings",
    "MetricsSnapshot",
    "RequestResult",
    "RequestSpec",
    "RunConfig",
    "RunController",
    "RunReport",
    "RunState",
    "SetupError",
    "Stage",
    "StageLoadError",
    "StageSchedule",
    "body_contains",
    "default_checks",
    "duration_below",
    "parse_check",
    "parse_duration",
    "run_load_test",
    "status_is",
]
