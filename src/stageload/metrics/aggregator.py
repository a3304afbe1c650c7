"""Thread-safe accumulation of request, check and duration metrics.

The ``MetricsAggregator`` is the only mutable object shared by virtual
users. Every mutation happens under a single ``threading.Lock`` so that
counters are never lost, whether callers are coroutines on one event loop
or threads.
"""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING

import numpy as np

from stageload.metrics.histogram import DurationHistogram
from stageload.metrics.models import CheckTally, MetricsSnapshot, RunReport

if TYPE_CHECKING:
    from collections.abc import Iterable

    from stageload.engine.checks import CheckResult
    from stageload.engine.executor import RequestResult

_REPORT_PERCENTILES = (50.0, 90.0, 95.0, 99.0)


def _compute_latency_stats(samples: list[float]) -> tuple[float, float, float, list[float]]:
    """Return ``(min, avg, max, [p50, p90, p95, p99])`` for *samples* in ms.

    Percentiles use numpy's linear interpolation, which is monotonic in the
    requested percentile, so p50 <= p90 <= p95 <= p99 always holds.
    """
    if not samples:
        return (0.0, 0.0, 0.0, [0.0] * len(_REPORT_PERCENTILES))

    arr = np.asarray(samples, dtype=np.float64)
    percentiles = np.percentile(arr, _REPORT_PERCENTILES)
    return (
        float(np.min(arr)),
        float(np.mean(arr)),
        float(np.max(arr)),
        [float(p) for p in percentiles],
    )


class MetricsAggregator:
    """Accumulates counters and duration samples for one run.

    Two views of durations are kept: an HDR histogram for cheap
    approximate percentiles in per-tick snapshots, and the raw samples for
    exact percentiles in the final report.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._total_requests = 0
        self._network_errors = 0
        self._status_counts: dict[int, int] = {}
        self._checks: dict[str, CheckTally] = {}
        self._histogram = DurationHistogram()
        self._samples: list[float] = []

    def record_request(self, result: RequestResult) -> None:
        """Count one completed request.

        Responses contribute their duration; network failures are counted
        separately and do not enter the latency distribution.
        """
        with self._lock:
            self._total_requests += 1
            if result.status is None:
                self._network_errors += 1
                return
            self._status_counts[result.status] = self._status_counts.get(result.status, 0) + 1
            self._record_duration_locked(result.duration_ms)

    def record_duration(self, duration_ms: float) -> None:
        """Add one duration sample in milliseconds."""
        with self._lock:
            self._record_duration_locked(duration_ms)

    def record_check(self, result: CheckResult) -> None:
        """Count one check outcome."""
        with self._lock:
            self._record_check_locked(result)

    def record_checks(self, results: Iterable[CheckResult]) -> None:
        """Count several check outcomes under one lock acquisition."""
        with self._lock:
            for result in results:
                self._record_check_locked(result)

    def snapshot(self, elapsed_seconds: float = 0.0, active_users: int = 0) -> MetricsSnapshot:
        """Return a consistent copy of the current counters.

        Args:
            elapsed_seconds: Seconds since the run started.
            active_users: Virtual users currently alive.

        Returns:
            A MetricsSnapshot that is not affected by later records.
        """
        with self._lock:
            p50, p90, p95, p99 = self._histogram.percentiles(*_REPORT_PERCENTILES).values()
            return MetricsSnapshot(
                timestamp=time.monotonic(),
                elapsed_seconds=elapsed_seconds,
                active_users=active_users,
                total_requests=self._total_requests,
                network_errors=self._network_errors,
                duration_count=self._histogram.count,
                status_counts=dict(self._status_counts),
                checks={
                    name: CheckTally(name=name, passes=t.passes, fails=t.fails)
                    for name, t in self._checks.items()
                },
                latency_p50=p50,
                latency_p90=p90,
                latency_p95=p95,
                latency_p99=p99,
            )

    def report(
        self,
        *,
        target_url: str,
        stages: str,
        duration_seconds: float,
        peak_users: int,
    ) -> RunReport:
        """Build the final report from every recorded sample.

        Args:
            target_url: Endpoint that was exercised.
            stages: Human-readable stage description.
            duration_seconds: Wall-clock run duration.
            peak_users: Highest running virtual user count seen.

        Returns:
            RunReport with exact latency percentiles.
        """
        with self._lock:
            samples = list(self._samples)
            total_requests = self._total_requests
            network_errors = self._network_errors
            status_counts = dict(self._status_counts)
            checks = {
                name: CheckTally(name=name, passes=t.passes, fails=t.fails)
                for name, t in self._checks.items()
            }

        lat_min, lat_avg, lat_max, (p50, p90, p95, p99) = _compute_latency_stats(samples)
        rps = total_requests / duration_seconds if duration_seconds > 0 else 0.0

        return RunReport(
            target_url=target_url,
            stages=stages,
            duration_seconds=duration_seconds,
            peak_users=peak_users,
            total_requests=total_requests,
            network_errors=network_errors,
            requests_per_second=rps,
            status_counts=status_counts,
            checks=checks,
            latency_min=lat_min,
            latency_avg=lat_avg,
            latency_max=lat_max,
            latency_p50=p50,
            latency_p90=p90,
            latency_p95=p95,
            latency_p99=p99,
        )

    def _record_duration_locked(self, duration_ms: float) -> None:
        self._histogram.record(duration_ms)
        self._samples.append(duration_ms)

    def _record_check_locked(self, result: CheckResult) -> None:
        tally = self._checks.get(result.name)
        if tally is None:
            tally = self._checks[result.name] = CheckTally(name=result.name)
        if result.passed:
            tally.passes += 1
        else:
            tally.fails += 1
