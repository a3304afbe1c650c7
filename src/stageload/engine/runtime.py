"""Blocking entry point that runs a RunController on a fresh event loop."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import TYPE_CHECKING

from stageload._internal.logging import get_logger, setup_logging
from stageload.engine.controller import RunController

if TYPE_CHECKING:
    from collections.abc import Callable

    from stageload._internal.config import RunConfig
    from stageload.metrics.models import MetricsSnapshot, RunReport

logger = get_logger("engine.runtime")


def _uvloop_factory() -> Callable[[], asyncio.AbstractEventLoop] | None:
    """Return uvloop's loop constructor where it is available.

    uvloop does not support Windows; there the default asyncio loop is used.
    """
    if sys.platform == "win32":
        return None

    try:
        import uvloop
    except ImportError:
        logger.debug("uvloop not available, using default asyncio event loop")
        return None

    logger.debug("Using uvloop event loop")
    return uvloop.new_event_loop


def run_load_test(
    config: RunConfig,
    *,
    on_snapshot: Callable[[MetricsSnapshot], None] | None = None,
    log_level: int = logging.INFO,
    json_logs: bool = False,
    handle_signals: bool = True,
) -> RunReport:
    """Run a load test to completion in the current process.

    Args:
        config: Validated run configuration.
        on_snapshot: Optional callback invoked with a snapshot every tick.
        log_level: Logging level for the ``stageload`` logger.
        json_logs: Emit structured JSON logs.
        handle_signals: Turn SIGINT/SIGTERM into a graceful stop.

    Returns:
        The final RunReport.

    Raises:
        SetupError: If the target is unreachable at start.
        EngineError: If the run fails after starting.
    """
    setup_logging(level=log_level, json_format=json_logs)

    async def _main() -> RunReport:
        controller = RunController(
            config,
            on_snapshot=on_snapshot,
            install_signal_handlers=handle_signals,
        )
        return await controller.run()

    with asyncio.Runner(loop_factory=_uvloop_factory()) as runner:
        return runner.run(_main())
