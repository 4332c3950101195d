"""Load an endpoint table (weighted endpoints plus optional auth flow) from JSON."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

from rampforge._internal.errors import ConfigurationError
from rampforge._internal.logging import get_logger
from rampforge.dsl.endpoints import AuthFlow, EndpointSpec

logger = get_logger("dsl.loader")


@dataclass(frozen=True)
class EndpointTable:
    """Parsed contents of an endpoint table file.

    Attributes:
        endpoints: Weighted endpoints, in file order.
        auth: Optional per-user registration/login sequence.
    """

    endpoints: tuple[EndpointSpec, ...]
    auth: AuthFlow | None = None


def parse_endpoint_table(data: object, *, source: str = "<data>") -> EndpointTable:
    """Validate decoded JSON and build an EndpointTable.

    Accepts either ``{"endpoints": [...], "auth": {...}}`` or a bare list of
    endpoint entries.

    Args:
        data: Decoded JSON document.
        source: Name used in error messages.

    Returns:
        The parsed EndpointTable.

    Raises:
        ConfigurationError: If the document shape or any entry is invalid.
    """
    if isinstance(data, list):
        data = {"endpoints": data}
    if not isinstance(data, dict):
        msg = f"{source}: expected an object or a list of endpoints"
        raise ConfigurationError(msg)

    entries = data.get("endpoints")
    if not isinstance(entries, list) or not entries:
        msg = f"{source}: 'endpoints' must be a non-empty list"
        raise ConfigurationError(msg)

    endpoints = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            msg = f"{source}: endpoint #{index} must be an object"
            raise ConfigurationError(msg)
        endpoints.append(EndpointSpec.from_dict(entry))

    auth_data = data.get("auth")
    auth = None
    if auth_data:
        if not isinstance(auth_data, dict):
            msg = f"{source}: 'auth' must be an object"
            raise ConfigurationError(msg)
        auth = AuthFlow.from_dict(auth_data)

    return EndpointTable(endpoints=tuple(endpoints), auth=auth)


def load_endpoint_table(path: str | Path) -> EndpointTable:
    """Read and parse an endpoint table file.

    Args:
        path: Path to a JSON endpoint table.

    Returns:
        The parsed EndpointTable.

    Raises:
        ConfigurationError: If the file is missing, is not valid JSON, or
            describes an invalid table.
    """
    file_path = Path(path)
    if not file_path.is_file():
        msg = f"Endpoint table not found: {file_path}"
        raise ConfigurationError(msg)

    try:
        data = json.loads(file_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        msg = f"{file_path}: invalid JSON ({exc.msg} at line {exc.lineno})"
        raise ConfigurationError(msg) from None

    table = parse_endpoint_table(data, source=str(file_path))
    logger.debug(
        "Loaded %d endpoints from %s (auth=%s)",
        len(table.endpoints),
        file_path,
        table.auth is not None,
    )
    return table
