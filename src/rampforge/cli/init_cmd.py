"""``rampforge init`` — scaffold an endpoint table file."""

from __future__ import annotations

import json
from pathlib import Path

import typer
from rich.console import Console

from rampforge.dsl.endpoints import DEFAULT_AUTH_FLOW, DEFAULT_ENDPOINTS, EndpointSpec

console = Console(stderr=True)


def _entry(endpoint: EndpointSpec) -> dict[str, object]:
    """Return the table-file form of *endpoint*."""
    entry: dict[str, object] = {
        "path": endpoint.path,
        "method": endpoint.method,
        "weight": endpoint.weight,
    }
    if endpoint.name:
        entry["name"] = endpoint.name
    if endpoint.body is not None:
        entry["body"] = endpoint.body
    return entry


def scaffold_document(*, auth: bool = True) -> dict[str, object]:
    """Return the starter endpoint table written by ``rampforge init``."""
    document: dict[str, object] = {"endpoints": [_entry(ep) for ep in DEFAULT_ENDPOINTS]}
    if auth:
        flow = DEFAULT_AUTH_FLOW
        auth_section: dict[str, object] = {"login": _entry(flow.login)}
        if flow.register is not None:
            auth_section["register"] = _entry(flow.register)
        auth_section["token_fields"] = list(flow.token_fields)
        document["auth"] = auth_section
    return document


def init_cmd(
    name: str = typer.Argument(
        "endpoints",
        help="Name of the endpoint table (written as NAME.json).",
    ),
    no_auth: bool = typer.Option(
        False,
        "--no-auth",
        help="Leave out the registration/login section.",
    ),
) -> None:
    """Scaffold an endpoint table in the current directory."""
    safe_name = "".join(c if c.isalnum() or c in "_-" else "_" for c in name).lower()
    if not safe_name:
        safe_name = "endpoints"

    filename = f"{safe_name}.json"
    target = Path.cwd() / filename
    if target.exists():
        console.print(f"[red]File already exists:[/red] {filename}")
        raise typer.Exit(code=1)

    target.write_text(json.dumps(scaffold_document(auth=not no_auth), indent=2) + "\n")
    console.print(f"[green]Created endpoint table:[/green] {filename}")
    console.print(f"Run it with: rampforge run --endpoints {filename}")
