"""Blocking entry point: run a load test on a fresh (uvloop) event loop."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import TYPE_CHECKING

from rampforge._internal.logging import get_logger, setup_logging
from rampforge.engine.session import RunSession

if TYPE_CHECKING:
    from collections.abc import Callable

    from rampforge._internal.config import RunConfig
    from rampforge.metrics.models import ProgressSnapshot, RunReport

logger = get_logger("engine.runner")


def _uvloop_factory() -> Callable[[], asyncio.AbstractEventLoop] | None:
    """Return uvloop's loop constructor if available.

    Returns None on Windows or when uvloop is not installed, in which case
    the default asyncio loop is used. The global loop policy is left alone.
    """
    if sys.platform == "win32":
        return None

    try:
        import uvloop
    except ImportError:
        logger.debug("uvloop not available, using default asyncio event loop")
        return None
    logger.debug("Running on uvloop")
    return uvloop.new_event_loop


def run_load_test(
    config: RunConfig,
    *,
    on_progress: Callable[[ProgressSnapshot], None] | None = None,
    progress_interval: float = 1.0,
    log_level: int = logging.INFO,
    json_logs: bool = False,
) -> RunReport:
    """Execute a load test in the current process and return its report.

    Blocks for roughly ``ramp_up_seconds + duration_seconds``. SIGINT and
    SIGTERM end the run early with a partial report.

    Args:
        config: Validated run configuration.
        on_progress: Optional callback for live progress readings.
        progress_interval: Seconds between progress readings.
        log_level: Logging level for the ``rampforge`` logger.
        json_logs: Emit structured JSON logs.

    Returns:
        The RunReport.

    Raises:
        EngineError: If the run fails for an unexpected reason.
    """
    setup_logging(level=log_level, json_format=json_logs)

    session = RunSession(
        config,
        on_progress=on_progress,
        progress_interval=progress_interval,
    )
    with asyncio.Runner(loop_factory=_uvloop_factory()) as runner:
        return runner.run(session.run())
