"""Persist a finished run report as JSON."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

from rampforge._internal.errors import ReportingError
from rampforge._internal.logging import get_logger

if TYPE_CHECKING:
    from rampforge._internal.config import RunConfig
    from rampforge.metrics.models import RunReport

logger = get_logger("metrics.export")


def report_document(report: RunReport, config: RunConfig) -> dict[str, object]:
    """Return the JSON document written for *report*.

    The document carries the run parameters next to the statistics so a
    saved report can be read without the command line that produced it.
    """
    return {
        "generated_at": datetime.now(tz=UTC).isoformat(),
        "config": {
            "base_url": config.base_url,
            "concurrency": config.concurrency,
            "duration_seconds": config.duration_seconds,
            "ramp_up_seconds": config.ramp_up_seconds,
            "request_timeout_ms": config.request_timeout_ms,
            "think_time_ms": list(config.think_time_ms),
            "endpoints": [
                {"name": ep.label, "method": ep.method, "path": ep.path, "weight": ep.weight}
                for ep in config.endpoints
            ],
            "thresholds": {
                "max_error_rate_percent": config.thresholds.max_error_rate_percent,
                "max_p95_ms": config.thresholds.max_p95_ms,
                "min_rps": config.thresholds.min_rps,
            },
        },
        "report": report.to_dict(),
    }


def write_json_report(report: RunReport, config: RunConfig, path: str | Path) -> Path:
    """Write *report* to *path* as indented JSON.

    Parent directories are created as needed.

    Args:
        report: The finished report.
        config: Configuration of the run that produced it.
        path: Destination file.

    Returns:
        The path written.

    Raises:
        ReportingError: If the file cannot be written.
    """
    target = Path(path)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(
            json.dumps(report_document(report, config), indent=2) + "\n",
            encoding="utf-8",
        )
    except OSError as exc:
        logger.warning("Report write to %s failed: %s", target, exc)
        msg = f"Could not write report to {target}: {exc}"
        raise ReportingError(msg) from exc

    logger.info("Report written to %s", target)
    return target
