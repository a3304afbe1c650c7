"""Run configuration and environment defaults for stageload."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from stageload._internal.errors import ConfigError
from stageload.engine.checks import default_checks
from stageload.engine.stages import Stage, StageSchedule

if TYPE_CHECKING:
    from stageload._internal.types import Headers, Query
    from stageload.engine.checks import Check


@dataclass(frozen=True)
class EngineSettings:
    """Engine defaults that are not part of a test profile.

    Attributes:
        request_timeout: Per-request timeout in seconds.
        pool_size: Maximum simultaneous HTTP connections.
        tick_interval: Seconds between controller ticks.
    """

    request_timeout: float = 30.0
    pool_size: int = 100
    tick_interval: float = 1.0


def _read_float(name: str, default: str) -> float:
    raw = os.environ.get(name, default)
    try:
        value = float(raw)
    except ValueError:
        msg = f"{name} must be a number, got: {raw!r}"
        raise ConfigError(msg) from None
    if value <= 0:
        msg = f"{name} must be positive, got: {value}"
        raise ConfigError(msg)
    return value


def load_settings() -> EngineSettings:
    """Load engine defaults from environment variables.

    Environment variables:
        STAGELOAD_TIMEOUT: Request timeout in seconds (default: 30.0).
        STAGELOAD_POOL_SIZE: Connection pool size (default: 100).
        STAGELOAD_TICK_INTERVAL: Controller tick in seconds (default: 1.0).

    Returns:
        Populated EngineSettings instance.

    Raises:
        ConfigError: If an environment variable has an invalid value.
    """
    pool_size_str = os.environ.get("STAGELOAD_POOL_SIZE", "100")
    try:
        pool_size = int(pool_size_str)
    except ValueError:
        msg = f"STAGELOAD_POOL_SIZE must be an integer, got: {pool_size_str!r}"
        raise ConfigError(msg) from None
    if pool_size < 1:
        msg = f"STAGELOAD_POOL_SIZE must be >= 1, got: {pool_size}"
        raise ConfigError(msg)

    return EngineSettings(
        request_timeout=_read_float("STAGELOAD_TIMEOUT", "30.0"),
        pool_size=pool_size,
        tick_interval=_read_float("STAGELOAD_TICK_INTERVAL", "1.0"),
    )


@dataclass(frozen=True)
class RunConfig:
    """Everything one load test run needs, validated on construction.

    Attributes:
        stages: Ordered concurrency stages.
        target_url: Absolute http(s) URL of the endpoint under test.
        query: Query string or parameters appended to every request.
        checks: Named assertions evaluated against every result.
        sleep_seconds: Pause between a virtual user's iterations.
        method: HTTP method.
        headers: Extra request headers.
        request_timeout: Per-request timeout in seconds.
        pool_size: Maximum simultaneous HTTP connections.
        tick_interval: Seconds between controller ticks.
        drain_timeout: Seconds to wait for in-flight iterations at run end
            before cancelling them. Defaults to
            ``request_timeout + sleep_seconds + 1``.
        probe: Send one request before starting to fail fast on an
            unreachable target.

    Raises:
        ConfigError: If any field is out of range.
    """

    stages: tuple[Stage, ...]
    target_url: str
    query: Query | None = None
    checks: tuple[Check, ...] = field(default_factory=lambda: tuple(default_checks()))
    sleep_seconds: float = 1.0
    method: str = "GET"
    headers: Headers = field(default_factory=dict)
    request_timeout: float = 30.0
    pool_size: int = 100
    tick_interval: float = 1.0
    drain_timeout: float | None = None
    probe: bool = True

    def __post_init__(self) -> None:
        # Accept any sequence but store immutably.
        object.__setattr__(self, "stages", tuple(self.stages))
        object.__setattr__(self, "checks", tuple(self.checks))

        if not self.stages:
            msg = "stages must contain at least one stage"
            raise ConfigError(msg)
        for index, stage in enumerate(self.stages):
            if not isinstance(stage, Stage):
                msg = f"stages[{index}] must be a Stage, got {type(stage).__name__}"
                raise ConfigError(msg)

        parts = urlsplit(self.target_url)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            msg = f"target_url must be an absolute http(s) URL, got {self.target_url!r}"
            raise ConfigError(msg)

        names = [c.name for c in self.checks]
        if len(set(names)) != len(names):
            msg = f"check names must be unique, got {names}"
            raise ConfigError(msg)

        if self.sleep_seconds < 0:
            msg = f"sleep_seconds must be non-negative, got {self.sleep_seconds}"
            raise ConfigError(msg)
        if self.request_timeout <= 0:
            msg = f"request_timeout must be positive, got {self.request_timeout}"
            raise ConfigError(msg)
        if self.pool_size < 1:
            msg = f"pool_size must be >= 1, got {self.pool_size}"
            raise ConfigError(msg)
        if self.tick_interval <= 0:
            msg = f"tick_interval must be positive, got {self.tick_interval}"
            raise ConfigError(msg)
        if self.drain_timeout is not None and self.drain_timeout < 0:
            msg = f"drain_timeout must be non-negative, got {self.drain_timeout}"
            raise ConfigError(msg)

    @classmethod
    def from_settings(cls, settings: EngineSettings, **kwargs: object) -> RunConfig:
        """Build a RunConfig whose engine fields default to *settings*."""
        kwargs.setdefault("request_timeout", settings.request_timeout)
        kwargs.setdefault("pool_size", settings.pool_size)
        kwargs.setdefault("tick_interval", settings.tick_interval)
        return cls(**kwargs)  # type: ignore[arg-type]

    @property
    def schedule(self) -> StageSchedule:
        return StageSchedule(self.stages)

    @property
    def effective_drain_timeout(self) -> float:
        if self.drain_timeout is not None:
            return self.drain_timeout
        return self.request_timeout + self.sleep_seconds + 1.0
