"""Structured logging setup for RampForge."""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import TextIO

_ROOT_LOGGER = "rampforge"

# Attributes passed through ``extra=`` that the JSON formatter keeps.
_CONTEXT_FIELDS = ("user_id", "endpoint", "error_class")


class _JsonFormatter(logging.Formatter):
    """One-line JSON log formatter.

    Emits keys: timestamp, level, logger, message, plus any virtual-user
    context fields attached to the record via ``extra=``.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as a JSON string.

        Args:
            record: The log record to format.

        Returns:
            A single-line JSON string.
        """
        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(
    level: int = logging.INFO,
    *,
    json_format: bool = False,
    stream: TextIO | None = None,
) -> logging.Logger:
    """Configure and return the ``rampforge`` root logger.

    Calling this again only updates the level; handlers are never
    duplicated, so the CLI and the engine can both call it.

    Args:
        level: Logging level, e.g. ``logging.DEBUG``.
        json_format: Emit one JSON object per line instead of plain text.
        stream: Output stream. Defaults to stderr so that stdout stays free
            for the run report.

    Returns:
        The configured ``rampforge`` logger.
    """
    logger = logging.getLogger(_ROOT_LOGGER)
    logger.setLevel(level)

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(level)

    if json_format:
        formatter: logging.Formatter = _JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s %(levelname)-7s %(name)s | %(message)s",
            datefmt="%H:%M:%S",
        )
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a child logger, e.g. ``get_logger("engine.scheduler")``.

    Args:
        name: Dotted suffix appended to ``rampforge.``.

    Returns:
        The ``rampforge.<name>`` logger.
    """
    return logging.getLogger(f"{_ROOT_LOGGER}.{name}")
