"""Parsing helpers shared by CLI commands."""

from __future__ import annotations

import typer

from stageload._internal.errors import ConfigError
from stageload.engine.checks import Check, parse_check
from stageload.engine.stages import Stage

# Ramp to 50 users over 10s, hold for 30s, ramp down over 10s.
DEFAULT_STAGES = ("10s:50", "30s:50", "10s:0")


def parse_stages(values: list[str] | None) -> list[Stage]:
    """Parse ``--stage`` values, falling back to the default profile.

    Raises:
        typer.BadParameter: If a value is malformed or out of range.
    """
    try:
        return [Stage.parse(v) for v in (values or DEFAULT_STAGES)]
    except ConfigError as exc:
        raise typer.BadParameter(str(exc), param_hint="--stage") from exc


def parse_checks(values: list[str] | None) -> list[Check] | None:
    """Parse ``--check`` values; None means use the default checks."""
    if not values:
        return None
    try:
        return [parse_check(v) for v in values]
    except ConfigError as exc:
        raise typer.BadParameter(str(exc), param_hint="--check") from exc


def parse_headers(values: list[str] | None) -> dict[str, str]:
    """Parse ``--header "Name: value"`` values."""
    headers: dict[str, str] = {}
    for value in values or []:
        name, sep, content = value.partition(":")
        if not sep or not name.strip():
            msg = f"header must look like 'Name: value', got {value!r}"
            raise typer.BadParameter(msg, param_hint="--header")
        headers[name.strip()] = content.strip()
    return headers
