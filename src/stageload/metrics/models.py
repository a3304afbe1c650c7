"""Metric dataclasses produced by the aggregator."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field


@dataclass
class CheckTally:
    """Pass/fail counts for one named check.

    Attributes:
        name: Check name, e.g. ``"is fast"``.
        passes: Number of requests for which the check passed.
        fails: Number of requests for which the check failed.
    """

    name: str
    passes: int = 0
    fails: int = 0

    @property
    def total(self) -> int:
        return self.passes + self.fails

    @property
    def pass_rate(self) -> float:
        """Fraction of evaluations that passed (0.0 to 1.0); 0.0 if never evaluated."""
        return self.passes / self.total if self.total else 0.0


@dataclass(frozen=True)
class MetricsSnapshot:
    """Point-in-time view of the aggregator, emitted every controller tick.

    Percentiles come from the HDR histogram and are approximate.

    Attributes:
        timestamp: Monotonic time the snapshot was taken.
        elapsed_seconds: Seconds since the run started.
        active_users: Virtual users alive at snapshot time.
        total_requests: Requests completed so far, including network errors.
        network_errors: Requests that got no HTTP response.
        duration_count: Duration samples recorded.
        status_counts: Responses per HTTP status code.
        checks: Per-check tallies keyed by check name.
        latency_p50: 50th percentile duration (ms).
        latency_p90: 90th percentile duration (ms).
        latency_p95: 95th percentile duration (ms).
        latency_p99: 99th percentile duration (ms).
    """

    timestamp: float
    elapsed_seconds: float
    active_users: int
    total_requests: int = 0
    network_errors: int = 0
    duration_count: int = 0
    status_counts: dict[int, int] = field(default_factory=dict)
    checks: dict[str, CheckTally] = field(default_factory=dict)
    latency_p50: float = 0.0
    latency_p90: float = 0.0
    latency_p95: float = 0.0
    latency_p99: float = 0.0


@dataclass
class RunReport:
    """Final result of a load test run.

    Attributes:
        target_url: Endpoint that was exercised.
        stages: Human-readable stage description.
        duration_seconds: Wall-clock run duration.
        peak_users: Highest number of simultaneously running virtual users.
        total_requests: Requests completed, including network errors.
        network_errors: Requests that got no HTTP response.
        requests_per_second: ``total_requests / duration_seconds``.
        status_counts: Responses per HTTP status code.
        checks: Per-check tallies in the order checks were first recorded.
        latency_min: Fastest response (ms).
        latency_avg: Mean response time (ms).
        latency_max: Slowest response (ms).
        latency_p50: 50th percentile response time (ms).
        latency_p90: 90th percentile response time (ms).
        latency_p95: 95th percentile response time (ms).
        latency_p99: 99th percentile response time (ms).
    """

    target_url: str
    stages: str
    duration_seconds: float
    peak_users: int = 0
    total_requests: int = 0
    network_errors: int = 0
    requests_per_second: float = 0.0
    status_counts: dict[int, int] = field(default_factory=dict)
    checks: dict[str, CheckTally] = field(default_factory=dict)
    latency_min: float = 0.0
    latency_avg: float = 0.0
    latency_max: float = 0.0
    latency_p50: float = 0.0
    latency_p90: float = 0.0
    latency_p95: float = 0.0
    latency_p99: float = 0.0

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serialisable representation."""
        data = asdict(self)
        data["status_counts"] = {str(k): v for k, v in self.status_counts.items()}
        data["checks"] = {
            name: {
                "passes": tally.passes,
                "fails": tally.fails,
                "pass_rate": tally.pass_rate,
            }
            for name, tally in self.checks.items()
        }
        return data
