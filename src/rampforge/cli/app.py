"""Main Typer application — entry point for the ``rampforge`` CLI."""

from __future__ import annotations

import typer

from rampforge import __version__
from rampforge.cli.init_cmd import init_cmd
from rampforge.cli.run import run_cmd

app = typer.Typer(
    name="rampforge",
    help="Ramp virtual users against an HTTP service and judge the result.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("run", help="Run a load test against a target service.")(run_cmd)
app.command("init", help="Scaffold an endpoint table file.")(init_cmd)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"rampforge {__version__}")
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
    """RampForge — concurrent HTTP load generation with a PASS/FAIL verdict."""
