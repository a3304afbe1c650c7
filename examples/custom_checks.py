"""Custom checks — assertions written as expressions and as plain callables.

Shows both ways of defining checks: the expression syntax understood by
``stageload run --check`` and arbitrary predicates over the RequestResult.
Run with:

    python examples/custom_checks.py
"""

from __future__ import annotations

import json

from stageload import Check, RequestResult, RunConfig, Stage, parse_check, run_load_test


def _has_results(result: RequestResult) -> bool:
    """Body must be a JSON object with a non-empty ``results`` list."""
    payload = json.loads(result.body)
    return bool(payload["results"])


config = RunConfig(
    stages=(Stage(5, 10), Stage(20, 10), Stage(5, 0)),
    target_url="http://localhost:8080/search",
    query="q=tech",
    checks=(
        parse_check("is status 200:status == 200"),
        parse_check("is fast:duration < 200"),
        parse_check("mentions tech:body contains \"tech\""),
        # A malformed body raises inside the predicate and counts as a failure.
        Check(name="has results", predicate=_has_results),
    ),
    sleep_seconds=0.5,
)

if __name__ == "__main__":
    report = run_load_test(config)
    print(json.dumps(report.to_dict(), indent=2))
