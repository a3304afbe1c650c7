"""Main Typer application — entry point for the ``stageload`` CLI."""

from __future__ import annotations

import typer

from stageload import __version__
from stageload.cli.plan import plan_cmd
from stageload.cli.run import run_cmd

app = typer.Typer(
    name="stageload",
    help="Staged HTTP load generation with checks and latency percentiles.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("run", help="Run a staged load test against a URL.")(run_cmd)
app.command("plan", help="Print the concurrency timeline of a stage list.")(plan_cmd)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"stageload {__version__}")
        raise typer.Exit


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """stageload — staged HTTP load generation."""
