"""The unit of work a virtual user repeats: request, validate, record."""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

from stageload.engine.checks import evaluate
from stageload.engine.executor import RequestResult, RequestSpec

if TYPE_CHECKING:
    from stageload._internal.config import RunConfig
    from stageload.engine.executor import RequestExecutor
    from stageload.metrics.aggregator import MetricsAggregator


class Iteration:
    """One virtual-user iteration, bound to a run's configuration.

    Calling the instance takes no arguments: it sends the configured
    request, evaluates every check against the result, and records both in
    the aggregator. There is no retry; the next iteration is the next attempt.

    If the iteration is cancelled while its request is in flight (a forced
    drain at run end), the request is recorded as a ``"cancelled"`` network
    error before the cancellation propagates.
    """

    def __init__(
        self,
        config: RunConfig,
        executor: RequestExecutor,
        aggregator: MetricsAggregator,
    ) -> None:
        self._config = config
        self._executor = executor
        self._aggregator = aggregator
        self._spec = RequestSpec(
            url=config.target_url,
            method=config.method,
            query=config.query,
        )

    @property
    def spec(self) -> RequestSpec:
        return self._spec

    async def __call__(self) -> RequestResult:
        start = time.monotonic()
        try:
            result = await self._executor.execute(self._spec)
        except asyncio.CancelledError:
            duration_ms = (time.monotonic() - start) * 1000
            self._aggregator.record_request(
                RequestResult(status=None, duration_ms=duration_ms, error="cancelled")
            )
            raise

        self._aggregator.record_request(result)
        self._aggregator.record_checks(evaluate(result, self._config.checks))
        return result
