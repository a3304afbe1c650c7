"""``stageload plan`` — print the concurrency timeline without sending traffic."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from stageload._internal.errors import ConfigError
from stageload.cli._options import parse_stages
from stageload.engine.scheduler import Scheduler
from stageload.engine.stages import StageSchedule

console = Console()


def plan_cmd(
    stage: list[str] | None = typer.Option(
        None,
        "--stage",
        "-s",
        help="Stage as DURATION:TARGET (repeatable). Default: 10s:50 30s:50 10s:0.",
    ),
    tick: float = typer.Option(
        1.0,
        "--tick",
        help="Seconds between rows.",
    ),
) -> None:
    """Show the target virtual user count at every tick."""
    schedule = StageSchedule(parse_stages(stage))
    scheduler = Scheduler(schedule, tick_interval=tick)

    table = Table(
        title=f"Plan: {schedule.describe()}",
        show_header=True,
        header_style="bold cyan",
    )
    table.add_column("Elapsed", justify="right")
    table.add_column("Users", justify="right")
    table.add_column("Change", justify="right")

    try:
        for command in scheduler.iter_commands():
            sign = {"UP": "+", "DOWN": "-"}.get(command.direction.name, "")
            table.add_row(
                f"{command.elapsed_seconds:.1f}s",
                str(command.target_concurrency),
                f"{sign}{command.delta}" if command.delta else "",
            )
    except ConfigError as exc:
        raise typer.BadParameter(str(exc), param_hint="--tick") from exc

    console.print(table)
    console.print(
        f"Total {schedule.total_duration:g}s, peak {schedule.max_target} users, "
        f"{scheduler.total_ticks} ticks"
    )
