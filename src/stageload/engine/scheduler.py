"""Concurrency scheduler that turns a stage schedule into scale commands."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from stageload.engine.stages import StageSchedule


class ScaleDirection(Enum):
    """Direction of a concurrency scale event."""

    UP = auto()
    DOWN = auto()
    HOLD = auto()


@dataclass(frozen=True)
class ScaleCommand:
    """A request to adjust the number of running virtual users.

    Attributes:
        elapsed_seconds: Time offset from run start.
        target_concurrency: Desired number of running virtual users.
        direction: Whether this scales up, down, or holds steady.
        delta: Absolute change from the previous command (always >= 0).
        ramping: True while the current stage's start and end targets differ.
        finished: True once every stage has elapsed.
    """

    elapsed_seconds: float
    target_concurrency: int
    direction: ScaleDirection
    delta: int
    ramping: bool = False
    finished: bool = False


class Scheduler:
    """Emits a ScaleCommand per controller tick.

    The controller calls :meth:`command_at` with real elapsed time on every
    tick; :meth:`iter_commands` produces the planned timeline for the same
    schedule without waiting.

    Args:
        schedule: Stage schedule defining the concurrency curve.
        tick_interval: Seconds between ticks.
    """

    def __init__(self, schedule: StageSchedule, tick_interval: float = 1.0) -> None:
        self._schedule = schedule
        self._tick_interval = tick_interval
        self._previous = 0

    @property
    def schedule(self) -> StageSchedule:
        return self._schedule

    @property
    def tick_interval(self) -> float:
        return self._tick_interval

    def command_at(self, elapsed: float) -> ScaleCommand:
        """Return the command for *elapsed* seconds and remember its target.

        Args:
            elapsed: Seconds since the run started.

        Returns:
            ScaleCommand relative to the previous call.
        """
        target = self._schedule.target_at(elapsed)
        index = self._schedule.stage_index_at(elapsed)
        ramping = False
        if index is not None:
            ramping = self._schedule.start_target(index) != self._schedule.stages[index].target

        delta = target - self._previous
        if delta > 0:
            direction = ScaleDirection.UP
        elif delta < 0:
            direction = ScaleDirection.DOWN
        else:
            direction = ScaleDirection.HOLD
        self._previous = target

        return ScaleCommand(
            elapsed_seconds=elapsed,
            target_concurrency=target,
            direction=direction,
            delta=abs(delta),
            ramping=ramping,
            finished=index is None,
        )

    def iter_commands(self) -> Iterator[ScaleCommand]:
        """Yield the planned command for every tick of the schedule.

        Uses a fresh previous-target so it can be called on a scheduler that
        is also driving a live run.

        Yields:
            One ScaleCommand per tick, ending at the schedule's total duration.
        """
        planner = Scheduler(self._schedule, self._tick_interval)
        for elapsed, _target in self._schedule.iter_targets(self._tick_interval):
            yield planner.command_at(elapsed)

    @property
    def total_ticks(self) -> int:
        """Return the number of ticks :meth:`iter_commands` yields."""
        return sum(1 for _ in self._schedule.iter_targets(self._tick_interval))
