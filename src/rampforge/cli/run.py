"""``rampforge run`` — execute a load test with live terminal output."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.live import Live

from rampforge._internal.config import Thresholds, load_config
from rampforge._internal.errors import ConfigurationError, RampForgeError, ReportingError
from rampforge.cli.render import make_header, make_progress_table, print_report
from rampforge.engine.runner import run_load_test
from rampforge.metrics.export import write_json_report

if TYPE_CHECKING:
    from rampforge.metrics.models import ProgressSnapshot

console = Console(stderr=True)
stdout_console = Console()


def _build_thresholds(
    max_error_rate: float | None,
    max_p95: float | None,
    min_rps: float | None,
) -> Thresholds | None:
    """Return Thresholds from CLI flags, or None if no flag was given."""
    values = {
        "max_error_rate_percent": max_error_rate,
        "max_p95_ms": max_p95,
        "min_rps": min_rps,
    }
    given = {key: value for key, value in values.items() if value is not None}
    if not given:
        return None
    return Thresholds(**given)


def run_cmd(
    base_url: str | None = typer.Option(
        None,
        "--base-url",
        "-t",
        help="Target base URL (env: RAMPFORGE_BASE_URL).",
    ),
    users: int | None = typer.Option(
        None,
        "--users",
        "-u",
        help="Concurrent virtual users (env: RAMPFORGE_USERS).",
    ),
    duration: float | None = typer.Option(
        None,
        "--duration",
        "-d",
        help="Seconds each user runs its request loop (env: RAMPFORGE_DURATION).",
    ),
    ramp_up: float | None = typer.Option(
        None,
        "--ramp-up",
        "-r",
        help="Seconds over which user starts are staggered (env: RAMPFORGE_RAMP_UP).",
    ),
    timeout_ms: float | None = typer.Option(
        None,
        "--timeout-ms",
        help="Per-request timeout in milliseconds (env: RAMPFORGE_TIMEOUT_MS).",
    ),
    think_min: float | None = typer.Option(
        None,
        "--think-min",
        help="Minimum think time between requests, in ms.",
    ),
    think_max: float | None = typer.Option(
        None,
        "--think-max",
        help="Maximum think time between requests, in ms.",
    ),
    endpoints: Path | None = typer.Option(
        None,
        "--endpoints",
        "-e",
        help="Endpoint table JSON file (env: RAMPFORGE_ENDPOINTS).",
    ),
    no_auth: bool = typer.Option(
        False,
        "--no-auth",
        help="Skip the per-user registration/login phase.",
    ),
    seed: int | None = typer.Option(
        None,
        "--seed",
        help="Seed for reproducible endpoint and think-time draws.",
    ),
    max_error_rate: float | None = typer.Option(
        None,
        "--max-error-rate",
        help="FAIL unless the error rate (%) stays below this (default: 1).",
    ),
    max_p95: float | None = typer.Option(
        None,
        "--max-p95",
        help="FAIL unless p95 latency (ms) stays below this (default: 1000).",
    ),
    min_rps: float | None = typer.Option(
        None,
        "--min-rps",
        help="FAIL unless throughput (req/s) exceeds this (default: 50).",
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Also write the report as JSON to this file.",
    ),
    live: bool = typer.Option(
        True,
        "--live/--no-live",
        help="Show a live progress table while the run is in progress.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose (DEBUG) logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Emit structured JSON logs on stderr.",
    ),
) -> None:
    """Run a load test and exit non-zero if the verdict is FAIL."""
    think_time: tuple[float, float] | None = None
    if think_min is not None or think_max is not None:
        low = think_min if think_min is not None else 0.0
        high = think_max if think_max is not None else max(low, 0.0)
        think_time = (low, high)

    try:
        config = load_config(
            base_url=base_url,
            concurrency=users,
            duration_seconds=duration,
            ramp_up_seconds=ramp_up,
            request_timeout_ms=timeout_ms,
            think_time_ms=think_time,
            endpoints_path=str(endpoints) if endpoints is not None else None,
            thresholds=_build_thresholds(max_error_rate, max_p95, min_rps),
            auth=False if no_auth else None,
            seed=seed,
        )
    except ConfigurationError as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    console.print(make_header(config))
    log_level = logging.DEBUG if verbose else logging.INFO

    try:
        if live:
            with Live(
                make_progress_table(None),
                console=console,
                refresh_per_second=2,
                transient=True,
            ) as display:

                def _on_progress(progress: ProgressSnapshot) -> None:
                    display.update(make_progress_table(progress))

                report = run_load_test(
                    config,
                    on_progress=_on_progress,
                    log_level=log_level,
                    json_logs=json_logs,
                )
        else:
            report = run_load_test(config, log_level=log_level, json_logs=json_logs)
    except RampForgeError as exc:
        console.print(f"[red]Load test failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    print_report(stdout_console, report)

    if output is not None:
        try:
            write_json_report(report, config, output)
        except ReportingError as exc:
            console.print(f"[yellow]Warning:[/yellow] {exc}; report shown on stdout only")

    if not report.passed:
        raise typer.Exit(code=1)
