"""Run controller: drives the virtual user pool from scheduler ticks."""

from __future__ import annotations

import asyncio
import signal
import sys
import time
from enum import Enum, auto
from typing import TYPE_CHECKING

from stageload._internal.errors import EngineError, StageLoadError
from stageload._internal.logging import get_logger
from stageload.engine.executor import RequestExecutor
from stageload.engine.iteration import Iteration
from stageload.engine.pool import VirtualUserPool
from stageload.engine.scheduler import Scheduler
from stageload.metrics.aggregator import MetricsAggregator

if TYPE_CHECKING:
    from collections.abc import Callable

    from stageload._internal.config import RunConfig
    from stageload.engine.scheduler import ScaleCommand
    from stageload.metrics.models import MetricsSnapshot, RunReport

logger = get_logger("engine.controller")


class RunState(Enum):
    """State machine for a run."""

    IDLE = auto()
    RAMPING = auto()
    STEADY = auto()
    STOPPING = auto()
    DONE = auto()
    FAILED = auto()


class RunController:
    """Owns one load test run from setup to final report.

    State machine::

        IDLE -> RAMPING <-> STEADY -> STOPPING -> DONE
          \\-> FAILED (setup error, before any user starts)

    Each tick computes the target for the real elapsed time and reconciles
    the pool to it. Once the last stage has elapsed, or :meth:`stop` is
    called, the controller stops adding users and drains the pool.

    Args:
        config: Validated run configuration.
        on_snapshot: Optional callback receiving a MetricsSnapshot every tick.
        install_signal_handlers: Turn SIGINT/SIGTERM into a graceful stop.
    """

    def __init__(
        self,
        config: RunConfig,
        *,
        on_snapshot: Callable[[MetricsSnapshot], None] | None = None,
        install_signal_handlers: bool = False,
    ) -> None:
        self._config = config
        self._on_snapshot = on_snapshot
        self._install_handlers = install_signal_handlers
        self._schedule = config.schedule
        self._scheduler = Scheduler(self._schedule, config.tick_interval)
        self._aggregator = MetricsAggregator()
        self._state = RunState.IDLE
        self._stop_event = asyncio.Event()
        self._pool: VirtualUserPool | None = None

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def aggregator(self) -> MetricsAggregator:
        return self._aggregator

    @property
    def pool(self) -> VirtualUserPool | None:
        return self._pool

    async def run(self) -> RunReport:
        """Execute the run and return its report.

        Returns:
            RunReport summarising every request made.

        Raises:
            SetupError: If the target is unreachable at start.
            EngineError: If the engine fails after users have started.
        """
        if self._state is not RunState.IDLE:
            msg = f"run() can only be called once, state is {self._state.name}"
            raise EngineError(msg)

        config = self._config
        logger.info(
            "Starting run: target=%s, stages=[%s], sleep=%.2fs",
            config.target_url,
            self._schedule.describe(),
            config.sleep_seconds,
        )

        async with RequestExecutor(
            timeout=config.request_timeout,
            pool_size=config.pool_size,
            headers=config.headers,
        ) as executor:
            iteration = Iteration(config, executor, self._aggregator)
            if config.probe:
                try:
                    await executor.probe(iteration.spec)
                except StageLoadError:
                    self._set_state(RunState.FAILED)
                    raise

            self._pool = VirtualUserPool(iteration, sleep_seconds=config.sleep_seconds)
            self._install_signal_handlers()
            start_time = time.monotonic()
            try:
                await self._tick_loop(self._pool, start_time)
            except Exception as exc:
                self._set_state(RunState.FAILED)
                logger.exception("Run failed")
                raise EngineError("Run failed") from exc
            finally:
                if self._state is not RunState.FAILED:
                    self._set_state(RunState.STOPPING)
                cancelled = await self._pool.drain(config.effective_drain_timeout)
                self._remove_signal_handlers()
                if cancelled:
                    logger.info("%d in-flight iterations were cancelled at shutdown", cancelled)

        duration = time.monotonic() - start_time
        report = self._aggregator.report(
            target_url=config.target_url,
            stages=self._schedule.describe(),
            duration_seconds=duration,
            peak_users=self._pool.peak_running,
        )
        self._set_state(RunState.DONE)
        logger.info(
            "Run completed: duration=%.1fs, requests=%d, network_errors=%d, p95=%.1fms",
            duration,
            report.total_requests,
            report.network_errors,
            report.latency_p95,
        )
        return report

    def stop(self) -> None:
        """Request a graceful stop; in-flight iterations are allowed to finish.

        A second call while the pool is draining cancels the remaining
        in-flight iterations instead of waiting for the drain timeout.
        """
        if self._state in (RunState.IDLE, RunState.RAMPING, RunState.STEADY):
            logger.info("Graceful shutdown requested")
            self._stop_event.set()
        elif self._state is RunState.STOPPING and self._pool is not None:
            cancelled = self._pool.cancel_all()
            logger.warning("Forced shutdown requested, cancelled %d virtual users", cancelled)

    async def _tick_loop(self, pool: VirtualUserPool, start_time: float) -> None:
        tick = 0
        while not self._stop_event.is_set():
            elapsed = time.monotonic() - start_time
            command = self._scheduler.command_at(elapsed)

            # The first tick always reconciles so a zero-length profile still runs once.
            if command.finished and tick > 0:
                break
            self._enter_stage_state(command)
            pool.reconcile(command.target_concurrency)
            self._emit_snapshot(pool, elapsed)
            if command.finished:
                break

            tick += 1
            delay = start_time + tick * self._config.tick_interval - time.monotonic()
            if delay > 0:
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                except TimeoutError:
                    pass

    def _enter_stage_state(self, command: ScaleCommand) -> None:
        state = RunState.RAMPING if command.ramping or command.finished else RunState.STEADY
        if self._state is RunState.IDLE:
            # Runs always pass through RAMPING first.
            self._set_state(RunState.RAMPING)
        if state is not self._state:
            self._set_state(state)

    def _emit_snapshot(self, pool: VirtualUserPool, elapsed: float) -> None:
        snapshot = self._aggregator.snapshot(
            elapsed_seconds=elapsed,
            active_users=pool.active_count,
        )
        logger.debug(
            "Tick %.1fs: running=%d, active=%d, requests=%d, p95=%.1fms",
            elapsed,
            pool.running_count,
            pool.active_count,
            snapshot.total_requests,
            snapshot.latency_p95,
        )
        if self._on_snapshot is not None:
            self._on_snapshot(snapshot)

    def _set_state(self, state: RunState) -> None:
        logger.info(
            "Run state: %s -> %s",
            self._state.name,
            state.name,
            extra={"run_state": state.name},
        )
        self._state = state

    def _install_signal_handlers(self) -> None:
        if not self._install_handlers:
            return
        if sys.platform != "win32":
            loop = asyncio.get_running_loop()
            loop.add_signal_handler(signal.SIGINT, self.stop)
            loop.add_signal_handler(signal.SIGTERM, self.stop)
        else:
            signal.signal(signal.SIGINT, lambda _s, _f: self.stop())
            signal.signal(signal.SIGTERM, lambda _s, _f: self.stop())

    def _remove_signal_handlers(self) -> None:
        if not self._install_handlers:
            return
        if sys.platform != "win32":
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)
        else:
            signal.signal(signal.SIGINT, signal.default_int_handler)
            signal.signal(signal.SIGTERM, signal.SIG_DFL)
