"""Named pass/fail assertions evaluated against every request result."""

from __future__ import annotations

import operator
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from stageload._internal.errors import ConfigError
from stageload._internal.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from stageload.engine.executor import RequestResult

    Predicate = Callable[[RequestResult], bool]

logger = get_logger("engine.checks")

_OPERATORS: dict[str, Callable[[float, float], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<=": operator.le,
    ">=": operator.ge,
    "<": operator.lt,
    ">": operator.gt,
}

_COMPARISON = re.compile(r"^\s*(status|duration|size)\s*(==|!=|<=|>=|<|>)\s*(-?\d+(?:\.\d+)?)\s*$")
_CONTAINS = re.compile(r'^\s*body\s+contains\s+"(.*)"\s*$')


@dataclass(frozen=True)
class Check:
    """A named boolean assertion.

    Attributes:
        name: Label used to tally results, e.g. ``"is status 200"``.
        predicate: Callable receiving a RequestResult and returning pass/fail.
    """

    name: str
    predicate: Predicate


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one check against one request."""

    name: str
    passed: bool


def evaluate(result: RequestResult, checks: Sequence[Check]) -> list[CheckResult]:
    """Run every check against *result*.

    All checks run even after a failure. A predicate that raises is
    logged and counted as failed.

    Args:
        result: The request result to validate.
        checks: Checks in reporting order.

    Returns:
        One CheckResult per check, in the same order.
    """
    outcomes: list[CheckResult] = []
    for check in checks:
        try:
            passed = bool(check.predicate(result))
        except Exception:
            logger.warning("Check %r raised; counting as failed", check.name, exc_info=True)
            passed = False
        outcomes.append(CheckResult(name=check.name, passed=passed))
    return outcomes


def status_is(code: int) -> Predicate:
    """Pass when the response status equals *code*. Network errors fail."""

    def _predicate(result: RequestResult) -> bool:
        return result.status is not None and result.status == code

    return _predicate


def duration_below(limit_ms: float) -> Predicate:
    """Pass when the request took less than *limit_ms* milliseconds."""

    def _predicate(result: RequestResult) -> bool:
        return result.duration_ms < limit_ms

    return _predicate


def body_contains(text: str) -> Predicate:
    """Pass when the response body contains *text* (UTF-8 encoded)."""
    needle = text.encode("utf-8")

    def _predicate(result: RequestResult) -> bool:
        return needle in result.body

    return _predicate


def _compare(field: str, op: Callable[[float, float], bool], value: float) -> Predicate:
    def _predicate(result: RequestResult) -> bool:
        if field == "status":
            if result.status is None:
                return False
            actual: float = result.status
        elif field == "duration":
            actual = result.duration_ms
        else:
            actual = len(result.body)
        return op(actual, value)

    return _predicate


def parse_check(text: str) -> Check:
    """Build a check from ``"<name>:<expression>"``.

    Supported expressions::

        status == 200
        duration < 200        (milliseconds)
        size >= 1024          (body bytes)
        body contains "tech"

    Args:
        text: Name and expression separated by the first colon.

    Returns:
        The parsed Check.

    Raises:
        ConfigError: If the name is empty or the expression is not understood.
    """
    name, sep, expression = text.partition(":")
    name = name.strip()
    if not sep or not name:
        msg = f"check must look like '<name>:<expression>', got {text!r}"
        raise ConfigError(msg)

    match = _COMPARISON.match(expression)
    if match is not None:
        field, op, number = match.groups()
        return Check(name=name, predicate=_compare(field, _OPERATORS[op], float(number)))

    match = _CONTAINS.match(expression)
    if match is not None:
        return Check(name=name, predicate=body_contains(match.group(1)))

    msg = f"unsupported check expression for {name!r}: {expression.strip()!r}"
    raise ConfigError(msg)


def default_checks(expected_status: int = 200, max_duration_ms: float = 200.0) -> list[Check]:
    """Return the standard status and latency checks."""
    return [
        Check(name=f"is status {expected_status}", predicate=status_is(expected_status)),
        Check(name="is fast", predicate=duration_below(max_duration_ms)),
    ]
