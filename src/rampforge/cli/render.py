"""Rich rendering of live progress and the final run report."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.panel import Panel
from rich.table import Table

if TYPE_CHECKING:
    from rich.console import Console

    from rampforge._internal.config import RunConfig
    from rampforge.metrics.models import ProgressSnapshot, RunReport


def make_header(config: RunConfig) -> Panel:
    """Build the panel printed before a run starts."""
    min_ms, max_ms = config.think_time_ms
    return Panel(
        f"[bold]Target:[/bold]    {config.base_url}\n"
        f"[bold]Users:[/bold]     {config.concurrency}\n"
        f"[bold]Duration:[/bold]  {config.duration_seconds:g}s per user\n"
        f"[bold]Ramp-up:[/bold]   {config.ramp_up_seconds:g}s\n"
        f"[bold]Timeout:[/bold]   {config.request_timeout_ms:g}ms\n"
        f"[bold]Think:[/bold]     {min_ms:g}-{max_ms:g}ms\n"
        f"[bold]Endpoints:[/bold] {len(config.endpoints)}"
        + (" (+ login)" if config.auth is not None else ""),
        title="RampForge",
        border_style="cyan",
    )


def make_progress_table(progress: ProgressSnapshot | None) -> Table:
    """Build the live table refreshed during a run.

    Args:
        progress: Latest reading, or None before the first tick.
    """
    table = Table(show_header=True, header_style="bold cyan", expand=True)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    if progress is None:
        table.add_row("Status", "Starting...")
        return table

    table.add_row("Elapsed", f"{progress.elapsed_seconds:.0f}s")
    table.add_row("Active Users", str(progress.active_users))
    table.add_row("In Flight", str(progress.in_flight))
    table.add_row("Requests/sec", f"{progress.requests_per_second:.1f}")
    table.add_row("p95 (interval)", f"{progress.interval_p95_ms:.1f}ms")
    table.add_row("Completed", str(progress.total_requests))
    table.add_row("Errors", str(progress.total_errors))
    return table


def print_report(console: Console, report: RunReport) -> None:
    """Print the summary, breakdown tables and verdict for *report*."""
    title = "Run Interrupted (partial results)" if report.interrupted else "Run Complete"
    summary = Table(title=title, show_header=True, header_style="bold green", expand=True)
    summary.add_column("Metric", style="bold")
    summary.add_column("Value", justify="right")
    summary.add_row("Duration", f"{report.duration_seconds:.2f}s")
    summary.add_row("Total Requests", str(report.total_requests))
    summary.add_row("Responses", str(report.total_responses))
    summary.add_row("Errors", f"{report.total_errors} ({report.error_rate_percent:.2f}%)")
    summary.add_row("Timeouts", str(report.timeouts))
    summary.add_row("Requests/sec", f"{report.requests_per_second:.2f}")
    summary.add_row("Avg Latency", f"{report.avg_latency_ms:.2f}ms")
    summary.add_row("Min Latency", f"{report.min_latency_ms:.2f}ms")
    summary.add_row("Max Latency", f"{report.max_latency_ms:.2f}ms")
    summary.add_row("p50", f"{report.p50:.2f}ms")
    summary.add_row("p95", f"{report.p95:.2f}ms")
    summary.add_row("p99", f"{report.p99:.2f}ms")
    console.print(summary)

    if report.endpoints:
        endpoints = Table(
            title="Per-Endpoint Breakdown",
            show_header=True,
            header_style="bold cyan",
            expand=True,
        )
        endpoints.add_column("Endpoint")
        endpoints.add_column("Requests", justify="right")
        endpoints.add_column("Errors", justify="right")
        endpoints.add_column("Error %", justify="right")
        endpoints.add_column("Avg", justify="right")
        for ep in report.endpoints:
            endpoints.add_row(
                ep.name,
                str(ep.requests),
                str(ep.errors),
                f"{ep.error_rate_percent:.2f}%",
                f"{ep.avg_latency_ms:.1f}ms",
            )
        console.print(endpoints)

    if report.status_codes or report.error_types:
        breakdown = Table(title="Status Codes & Errors", show_header=True, expand=True)
        breakdown.add_column("Kind")
        breakdown.add_column("Key")
        breakdown.add_column("Count", justify="right")
        for code, count in report.status_codes.items():
            breakdown.add_row("status", str(code), str(count))
        for error_type, count in report.error_types.items():
            breakdown.add_row("error", error_type, str(count))
        console.print(breakdown)

    for check in report.checks:
        mark = "[green]ok[/green]  " if check.passed else "[red]FAIL[/red]"
        console.print(f"  {mark} {check.description} (observed {check.observed:.2f})")

    if report.passed:
        console.print("[bold green]Verdict: PASS[/bold green]")
    else:
        console.print("[bold red]Verdict: FAIL[/bold red]")
