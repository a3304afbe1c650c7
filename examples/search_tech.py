"""Search endpoint load test — the standard ramp/hold/ramp-down profile.

Ramps to 50 virtual users over 10s, holds for 30s, ramps down over 10s.
Every iteration searches for "tech" and asserts a 200 response in under
200ms. Equivalent CLI invocation:

    stageload run http://localhost:8080/search --query q=tech

Run this file directly with:

    python examples/search_tech.py
"""

from __future__ import annotations

import sys

from stageload import RunConfig, SetupError, Stage, default_checks, run_load_test


def main() -> int:
    config = RunConfig(
        stages=(Stage(10, 50), Stage(30, 50), Stage(10, 0)),
        target_url="http://localhost:8080/search",
        query={"q": "tech"},
        checks=tuple(default_checks(expected_status=200, max_duration_ms=200)),
        sleep_seconds=1.0,
    )
    try:
        report = run_load_test(config)
    except SetupError as exc:
        print(f"setup failed: {exc}", file=sys.stderr)
        return 1

    for tally in report.checks.values():
        print(f"{tally.name}: {tally.pass_rate * 100:.1f}% ({tally.passes}/{tally.total})")
    print(f"p95={report.latency_p95:.1f}ms p99={report.latency_p99:.1f}ms")
    return 0


if __name__ == "__main__":
    sys.exit(main())
