"""Run session lifecycle: scheduling, live progress, signals, and the final report."""

from __future__ import annotations

import asyncio
import contextlib
import signal
import sys
from enum import Enum, auto
from typing import TYPE_CHECKING

from rampforge._internal.errors import EngineError
from rampforge._internal.logging import get_logger
from rampforge.engine.scheduler import RampUpScheduler
from rampforge.engine.virtual_user import VirtualUser
from rampforge.metrics.recorder import MetricsRecorder
from rampforge.metrics.report import build_report

if TYPE_CHECKING:
    from collections.abc import Callable

    from rampforge._internal.config import RunConfig
    from rampforge.engine.scheduler import UserFactory
    from rampforge.metrics.models import ProgressSnapshot, RunReport

logger = get_logger("engine.session")


class SessionState(Enum):
    """State machine for a run session."""

    CREATED = auto()
    RUNNING = auto()
    STOPPING = auto()
    COMPLETED = auto()
    FAILED = auto()


class RunSession:
    """Executes one load test run in the current event loop.

    Creates the recorder and the ramp-up scheduler, emits a progress
    reading every ``progress_interval`` seconds, and builds the report once
    every virtual user has returned.

    SIGINT/SIGTERM (or :meth:`stop`) stop users from starting new
    iterations; the session still waits for them and returns a partial
    report flagged ``interrupted``.

    State machine: CREATED -> RUNNING -> STOPPING -> COMPLETED
                                      -> FAILED (on error)
    """

    def __init__(
        self,
        config: RunConfig,
        *,
        on_progress: Callable[[ProgressSnapshot], None] | None = None,
        progress_interval: float = 1.0,
        handle_signals: bool = True,
        user_factory: UserFactory | None = None,
    ) -> None:
        """Initialize a session.

        Args:
            config: Validated run configuration.
            on_progress: Called with a ProgressSnapshot every tick.
            progress_interval: Seconds between progress ticks.
            handle_signals: Install SIGINT/SIGTERM handlers for the run.
            user_factory: Alternative VirtualUser constructor, for tests.
        """
        self._config = config
        self._on_progress = on_progress
        self._progress_interval = progress_interval
        self._handle_signals = handle_signals
        self._user_factory = user_factory

        self._state = SessionState.CREATED
        self._stop_event = asyncio.Event()
        self._interrupted = False
        self.recorder = MetricsRecorder()
        self._scheduler: RampUpScheduler | None = None

    @property
    def state(self) -> SessionState:
        """Return the current session state."""
        return self._state

    @property
    def interrupted(self) -> bool:
        """Return True if the run was stopped before users finished."""
        return self._interrupted

    async def run(self) -> RunReport:
        """Run the load test to completion and return its report.

        Raises:
            EngineError: If the session fails for an unexpected reason.
        """
        config = self._config
        logger.info(
            "Starting run: target=%s, users=%d, duration=%.0fs, ramp_up=%.0fs, endpoints=%d",
            config.base_url,
            config.concurrency,
            config.duration_seconds,
            config.ramp_up_seconds,
            len(config.endpoints),
        )

        self.recorder = MetricsRecorder()
        scheduler = RampUpScheduler(
            config,
            self.recorder,
            self._stop_event,
            user_factory=self._user_factory or VirtualUser,
        )
        self._scheduler = scheduler

        if self._handle_signals:
            self._install_signal_handlers()
        self._state = SessionState.RUNNING
        progress_task = asyncio.create_task(self._progress_loop(), name="progress")

        try:
            await scheduler.run()
        except Exception as exc:
            self._state = SessionState.FAILED
            logger.exception("Run failed")
            raise EngineError("Run failed") from exc
        finally:
            progress_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await progress_task
            if self._handle_signals:
                self._remove_signal_handlers()

        self._state = SessionState.STOPPING
        report = build_report(self.recorder.snapshot(), config, interrupted=self._interrupted)
        self._state = SessionState.COMPLETED

        logger.info(
            "Run %s: duration=%.1fs, requests=%d, rps=%.1f, p95=%.1fms, "
            "error_rate=%.2f%%, verdict=%s",
            "interrupted" if self._interrupted else "completed",
            report.duration_seconds,
            report.total_requests,
            report.requests_per_second,
            report.p95,
            report.error_rate_percent,
            report.verdict.value,
        )
        return report

    def stop(self) -> None:
        """Request a graceful stop; running users finish their current request."""
        if self._state is SessionState.RUNNING and not self._stop_event.is_set():
            logger.info("Stop requested, waiting for in-flight requests")
            self._interrupted = True
            self._state = SessionState.STOPPING
            self._stop_event.set()

    async def _progress_loop(self) -> None:
        """Emit a progress reading every interval until cancelled."""
        while True:
            await asyncio.sleep(self._progress_interval)
            active = self._scheduler.active_users if self._scheduler is not None else 0
            progress = self.recorder.interval_snapshot(active_users=active)
            if self._on_progress is not None:
                self._on_progress(progress)

    def _install_signal_handlers(self) -> None:
        """Route SIGINT and SIGTERM to :meth:`stop`."""
        if sys.platform == "win32":
            signal.signal(signal.SIGINT, lambda _s, _f: self.stop())
            signal.signal(signal.SIGTERM, lambda _s, _f: self.stop())
            return
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self.stop)

    def _remove_signal_handlers(self) -> None:
        """Restore default signal handling."""
        if sys.platform == "win32":
            signal.signal(signal.SIGINT, signal.default_int_handler)
            signal.signal(signal.SIGTERM, signal.SIG_DFL)
            return
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
