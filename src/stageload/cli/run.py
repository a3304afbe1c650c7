"""``stageload run`` — execute a staged load test with live terminal output."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from stageload._internal.config import RunConfig, load_settings
from stageload._internal.errors import SetupError, StageLoadError
from stageload.cli._options import parse_checks, parse_headers, parse_stages
from stageload.engine.checks import default_checks
from stageload.engine.runtime import run_load_test

if TYPE_CHECKING:
    from stageload.metrics.models import MetricsSnapshot, RunReport

console = Console(stderr=True)
report_console = Console()


# ---------------------------------------------------------------------------
# Rich rendering
# ---------------------------------------------------------------------------


def _make_live_table(snapshot: MetricsSnapshot | None) -> Table:
    """Build a Rich table summarising the latest tick."""
    table = Table(show_header=True, header_style="bold cyan", expand=True)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    if snapshot is None:
        table.add_row("Status", "Starting...")
        return table

    table.add_row("Elapsed", f"{snapshot.elapsed_seconds:.0f}s")
    table.add_row("Active Users", str(snapshot.active_users))
    table.add_row("Requests", str(snapshot.total_requests))
    table.add_row("Network Errors", str(snapshot.network_errors))
    table.add_row("p95 Duration", f"{snapshot.latency_p95:.1f}ms")
    for tally in snapshot.checks.values():
        table.add_row(f"✓ {tally.name}", f"{tally.pass_rate * 100:.1f}%")
    return table


def _print_report(report: RunReport) -> None:
    """Print the final report to stdout."""
    summary = Table(title="Run Complete", show_header=True, header_style="bold green", expand=True)
    summary.add_column("Metric", style="bold")
    summary.add_column("Value", justify="right")
    summary.add_row("Target", report.target_url)
    summary.add_row("Stages", report.stages)
    summary.add_row("Duration", f"{report.duration_seconds:.1f}s")
    summary.add_row("Peak Users", str(report.peak_users))
    summary.add_row("Total Requests", str(report.total_requests))
    summary.add_row("Requests/sec", f"{report.requests_per_second:.1f}")
    summary.add_row("Network Errors", str(report.network_errors))
    for status, count in sorted(report.status_counts.items()):
        summary.add_row(f"HTTP {status}", str(count))
    summary.add_row("Duration min/avg/max", _ms_triplet(report))
    summary.add_row("p50", f"{report.latency_p50:.1f}ms")
    summary.add_row("p90", f"{report.latency_p90:.1f}ms")
    summary.add_row("p95", f"{report.latency_p95:.1f}ms")
    summary.add_row("p99", f"{report.latency_p99:.1f}ms")
    report_console.print(summary)

    if report.checks:
        checks = Table(title="Checks", show_header=True, header_style="bold cyan", expand=True)
        checks.add_column("Check")
        checks.add_column("Passed", justify="right")
        checks.add_column("Failed", justify="right")
        checks.add_column("Pass %", justify="right")
        for tally in report.checks.values():
            style = "green" if tally.fails == 0 else "red"
            checks.add_row(
                tally.name,
                str(tally.passes),
                str(tally.fails),
                f"[{style}]{tally.pass_rate * 100:.2f}%[/{style}]",
            )
        report_console.print(checks)


def _ms_triplet(report: RunReport) -> str:
    return f"{report.latency_min:.1f} / {report.latency_avg:.1f} / {report.latency_max:.1f}ms"


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------


def run_cmd(
    url: str = typer.Argument(
        ...,
        help="URL of the endpoint under test, e.g. http://localhost:8080/search.",
    ),
    stage: list[str] | None = typer.Option(
        None,
        "--stage",
        "-s",
        help="Stage as DURATION:TARGET (repeatable). Default: 10s:50 30s:50 10s:0.",
    ),
    query: str | None = typer.Option(
        None,
        "--query",
        "-q",
        help="Query string appended to every request, e.g. 'q=tech'.",
    ),
    check: list[str] | None = typer.Option(
        None,
        "--check",
        "-c",
        help="Check as NAME:EXPR (repeatable), e.g. 'is fast:duration < 200'.",
    ),
    expect_status: int = typer.Option(
        200,
        "--expect-status",
        help="Status asserted by the default status check.",
    ),
    max_duration_ms: float = typer.Option(
        200.0,
        "--max-duration-ms",
        help="Latency bound asserted by the default 'is fast' check.",
    ),
    sleep: float = typer.Option(
        1.0,
        "--sleep",
        help="Seconds each virtual user waits between iterations.",
        min=0.0,
    ),
    method: str = typer.Option(
        "GET",
        "--method",
        "-X",
        help="HTTP method.",
    ),
    header: list[str] | None = typer.Option(
        None,
        "--header",
        "-H",
        help="Extra request header as 'Name: value' (repeatable).",
    ),
    timeout: float | None = typer.Option(
        None,
        "--timeout",
        help="Per-request timeout in seconds (default: STAGELOAD_TIMEOUT or 30).",
    ),
    tick: float | None = typer.Option(
        None,
        "--tick",
        help="Seconds between concurrency adjustments (default: 1).",
    ),
    drain_timeout: float | None = typer.Option(
        None,
        "--drain-timeout",
        help="Seconds to wait for in-flight requests at the end of the run.",
    ),
    no_probe: bool = typer.Option(
        False,
        "--no-probe",
        help="Skip the reachability check before starting.",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Print the report as JSON instead of tables.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Emit structured JSON logs on stderr.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose (DEBUG) logging.",
    ),
) -> None:
    """Execute a staged load test. Check failures never change the exit code."""
    stages = parse_stages(stage)
    checks = parse_checks(check)
    if checks is None:
        checks = default_checks(expected_status=expect_status, max_duration_ms=max_duration_ms)

    overrides: dict[str, object] = {}
    if timeout is not None:
        overrides["request_timeout"] = timeout
    if tick is not None:
        overrides["tick_interval"] = tick

    try:
        config = RunConfig.from_settings(
            load_settings(),
            stages=stages,
            target_url=url,
            query=query,
            checks=checks,
            sleep_seconds=sleep,
            method=method.upper(),
            headers=parse_headers(header),
            drain_timeout=drain_timeout,
            probe=not no_probe,
            **overrides,
        )
    except StageLoadError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    if not json_output:
        console.print(
            Panel(
                f"[bold]Target:[/bold] {config.target_url}\n"
                f"[bold]Stages:[/bold] {config.schedule.describe()}\n"
                f"[bold]Checks:[/bold] {', '.join(c.name for c in config.checks)}",
                title="stageload",
                border_style="cyan",
            )
        )

    log_level = logging.DEBUG if verbose else logging.WARNING

    try:
        if console.is_terminal and not json_output:
            with Live(
                _make_live_table(None),
                console=console,
                refresh_per_second=2,
                transient=True,
            ) as live:

                def _live_snapshot(snapshot: MetricsSnapshot) -> None:
                    live.update(_make_live_table(snapshot))

                report = run_load_test(
                    config,
                    on_snapshot=_live_snapshot,
                    log_level=log_level,
                    json_logs=json_logs,
                )
        else:
            report = run_load_test(config, log_level=log_level, json_logs=json_logs)
    except SetupError as exc:
        console.print(f"[red]Setup failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc
    except StageLoadError as exc:
        console.print(f"[red]Load test failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    if json_output:
        typer.echo(json.dumps(report.to_dict(), indent=2))
    else:
        _print_report(report)
