"""Stage lists and the piecewise-linear concurrency schedule they describe."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from stageload._internal.errors import ConfigError

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: float | str) -> float:
    """Convert a duration to seconds.

    Accepts plain numbers (seconds) or strings made of ``<number><unit>``
    parts, where unit is one of ``ms``, ``s``, ``m`` or ``h``, e.g.
    ``"10s"``, ``"1m30s"`` or ``"500ms"``. A bare numeric string is read as
    seconds.

    Args:
        value: Duration as a number or string.

    Returns:
        Duration in seconds.

    Raises:
        ConfigError: If the string cannot be parsed or the duration is negative
            or not finite.
    """
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = value.strip().lower()
        try:
            seconds = float(text)
        except ValueError:
            pos = 0
            seconds = 0.0
            for match in _DURATION_PART.finditer(text):
                if match.start() != pos:
                    break
                seconds += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
                pos = match.end()
            if pos == 0 or pos != len(text):
                msg = f"invalid duration: {value!r}"
                raise ConfigError(msg) from None
    if not math.isfinite(seconds):
        msg = f"invalid duration: {value!r}"
        raise ConfigError(msg)
    if seconds < 0:
        msg = f"duration must be non-negative, got {value!r}"
        raise ConfigError(msg)
    return seconds


@dataclass(frozen=True)
class Stage:
    """A time interval over which concurrency moves linearly to *target*.

    Attributes:
        duration_seconds: Length of the stage. Zero means an instant jump.
        target: Virtual user count reached at the end of the stage.
    """

    duration_seconds: float
    target: int

    def __post_init__(self) -> None:
        if not math.isfinite(self.duration_seconds):
            msg = f"stage duration must be finite, got {self.duration_seconds}"
            raise ConfigError(msg)
        if self.duration_seconds < 0:
            msg = f"stage duration must be non-negative, got {self.duration_seconds}"
            raise ConfigError(msg)
        # bool is an int subclass but never a user count.
        if isinstance(self.target, bool) or not isinstance(self.target, int):
            msg = f"stage target must be an integer, got {self.target!r}"
            raise ConfigError(msg)
        if self.target < 0:
            msg = f"stage target must be non-negative, got {self.target}"
            raise ConfigError(msg)

    @classmethod
    def parse(cls, text: str) -> Stage:
        """Build a stage from ``"<duration>:<target>"``, e.g. ``"10s:50"``."""
        duration, sep, target = text.partition(":")
        if not sep:
            msg = f"stage must look like '<duration>:<target>', got {text!r}"
            raise ConfigError(msg)
        try:
            users = int(target)
        except ValueError:
            msg = f"stage target must be an integer, got {target!r}"
            raise ConfigError(msg) from None
        return cls(duration_seconds=parse_duration(duration), target=users)


class StageSchedule:
    """Target concurrency as a function of elapsed run time.

    The first stage ramps from 0 users; every later stage ramps from the
    previous stage's target. Within a stage the target is interpolated
    linearly, rounded half-up and clamped to the stage's own range.

    Args:
        stages: Ordered stages. Must contain at least one entry.

    Raises:
        ConfigError: If *stages* is empty.

    Example::

        schedule = StageSchedule([Stage(10, 50), Stage(30, 50), Stage(10, 0)])
        schedule.target_at(5.0)   # 25
        schedule.target_at(20.0)  # 50
        schedule.target_at(50.0)  # 0
    """

    def __init__(self, stages: Sequence[Stage]) -> None:
        if not stages:
            msg = "stage list must contain at least one stage"
            raise ConfigError(msg)
        self._stages = tuple(stages)

    @property
    def stages(self) -> tuple[Stage, ...]:
        return self._stages

    @property
    def total_duration(self) -> float:
        """Sum of all stage durations in seconds."""
        return sum(s.duration_seconds for s in self._stages)

    @property
    def max_target(self) -> int:
        """Highest target any stage reaches."""
        return max(s.target for s in self._stages)

    def stage_index_at(self, elapsed: float) -> int | None:
        """Return the index of the stage running at *elapsed*, or None once all have ended."""
        start = 0.0
        for index, stage in enumerate(self._stages):
            end = start + stage.duration_seconds
            if elapsed < end:
                return index
            start = end
        return None

    def start_target(self, index: int) -> int:
        """Return the concurrency a stage ramps from."""
        return 0 if index == 0 else self._stages[index - 1].target

    def target_at(self, elapsed: float) -> int:
        """Return the target concurrency at *elapsed* seconds into the run.

        Args:
            elapsed: Seconds since the run started.

        Returns:
            Interpolated virtual user count.
        """
        if elapsed < 0:
            return 0
        previous = 0
        start = 0.0
        for stage in self._stages:
            end = start + stage.duration_seconds
            if elapsed < end:
                fraction = (elapsed - start) / stage.duration_seconds
                raw = previous + (stage.target - previous) * fraction
                users = math.floor(raw + 0.5)
                return min(max(users, 0), max(previous, stage.target))
            previous = stage.target
            start = end
        return previous

    def iter_targets(self, tick_interval: float = 1.0) -> Iterator[tuple[float, int]]:
        """Yield ``(elapsed_seconds, target)`` every *tick_interval* seconds.

        The final instant of the schedule is always included, even when the
        total duration is not a multiple of the tick interval.

        Args:
            tick_interval: Seconds between samples. Must be > 0.

        Raises:
            ConfigError: If *tick_interval* is not positive.
        """
        if tick_interval <= 0:
            msg = f"tick_interval must be positive, got {tick_interval}"
            raise ConfigError(msg)
        total = self.total_duration
        tick = 0
        while True:
            elapsed = tick * tick_interval
            if elapsed >= total:
                break
            yield (elapsed, self.target_at(elapsed))
            tick += 1
        yield (total, self.target_at(total))

    def describe(self) -> str:
        """Return a short human-readable description, e.g. ``10s->50, 30s->50``."""
        parts = [f"{_format_seconds(s.duration_seconds)}->{s.target}" for s in self._stages]
        return ", ".join(parts)


def _format_seconds(seconds: float) -> str:
    if seconds == int(seconds):
        return f"{int(seconds)}s"
    return f"{seconds:g}s"
