"""Integration tests for the ramp-up scheduler and run session."""

from __future__ import annotations

import asyncio
import functools
import time
from typing import TYPE_CHECKING

import pytest

from rampforge._internal.errors import EngineError
from rampforge.engine import scheduler as scheduler_module
from rampforge.engine.scheduler import RampUpScheduler
from rampforge.engine.session import RunSession, SessionState
from rampforge.metrics.models import Verdict
from rampforge.metrics.recorder import MetricsRecorder

if TYPE_CHECKING:
    from collections.abc import Callable

    from rampforge._internal.config import RunConfig


class _NullUser:
    """Stand-in virtual user that only notes when it ran."""

    started: list[tuple[int, float]] = []

    def __init__(
        self,
        user_id: int,
        config: RunConfig,
        recorder: MetricsRecorder,
        stop_event: asyncio.Event,
    ) -> None:
        self.user_id = user_id

    async def run(self) -> None:
        _NullUser.started.append((self.user_id, time.monotonic()))
        await asyncio.sleep(0.01)


class _BrokenUser(_NullUser):
    async def run(self) -> None:
        msg = "boom"
        raise RuntimeError(msg)


class _SlowToCancelUser(_NullUser):
    """Keeps running for a while after its first cancellation."""

    async def run(self) -> None:
        try:
            await asyncio.sleep(30)
        except asyncio.CancelledError:
            await asyncio.sleep(0.3)
            raise


class TestRampUpScheduler:
    async def test_users_start_on_stagger(self, fast_config: Callable[..., RunConfig]) -> None:
        _NullUser.started = []
        config = fast_config("http://unused.test", concurrency=4, ramp_up_seconds=0.4)
        scheduler = RampUpScheduler(
            config, MetricsRecorder(), asyncio.Event(), user_factory=_NullUser
        )
        await scheduler.run()

        assert scheduler.delays == pytest.approx([0.0, 0.1, 0.2, 0.3])
        assert scheduler.finished_users == 4
        assert scheduler.active_users == 0
        for user_id, planned in enumerate(scheduler.delays):
            observed = scheduler.start_offsets[user_id]
            assert planned - 0.01 <= observed < planned + 0.15
        order = [user_id for user_id, _ in sorted(_NullUser.started, key=lambda item: item[1])]
        assert order == [0, 1, 2, 3]

    async def test_stop_before_start_skips_pending_users(
        self, fast_config: Callable[..., RunConfig]
    ) -> None:
        _NullUser.started = []
        config = fast_config("http://unused.test", concurrency=3, ramp_up_seconds=3.0)
        stop = asyncio.Event()
        scheduler = RampUpScheduler(config, MetricsRecorder(), stop, user_factory=_NullUser)
        asyncio.get_running_loop().call_later(0.2, stop.set)

        start = time.monotonic()
        await scheduler.run()
        assert time.monotonic() - start < 1.5
        assert [user_id for user_id, _ in _NullUser.started] == [0]
        assert scheduler.finished_users == 1

    async def test_user_exception_is_logged_not_raised(
        self, fast_config: Callable[..., RunConfig]
    ) -> None:
        config = fast_config("http://unused.test", concurrency=2)
        scheduler = RampUpScheduler(
            config, MetricsRecorder(), asyncio.Event(), user_factory=_BrokenUser
        )
        await scheduler.run()
        assert scheduler.finished_users == 2

    async def test_user_still_unwinding_after_cancel_is_skipped(
        self, fast_config: Callable[..., RunConfig], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(scheduler_module, "_SHUTDOWN_GRACE_SECONDS", 0.0)
        monkeypatch.setattr(
            scheduler_module,
            "shutdown_tasks",
            functools.partial(scheduler_module.shutdown_tasks, cancel_grace=0.05),
        )
        config = fast_config(
            "http://unused.test", concurrency=1, duration_seconds=0.1, request_timeout_ms=100
        )
        scheduler = RampUpScheduler(
            config, MetricsRecorder(), asyncio.Event(), user_factory=_SlowToCancelUser
        )

        start = time.monotonic()
        await scheduler.run()
        assert time.monotonic() - start < 1.0

        # Let the lingering task finish before the loop closes.
        await asyncio.sleep(0.4)


class TestRunSession:
    async def test_short_run_produces_report(
        self, target_server: str, fast_config: Callable[..., RunConfig]
    ) -> None:
        progress: list[object] = []
        config = fast_config(target_server, concurrency=3, ramp_up_seconds=0.2, duration_seconds=0.6)
        session = RunSession(
            config,
            on_progress=progress.append,
            progress_interval=0.2,
            handle_signals=False,
        )
        report = await session.run()

        assert session.state is SessionState.COMPLETED
        assert report.total_requests > 0
        assert report.total_errors == 0
        assert report.status_codes == {200: report.total_requests}
        assert report.verdict is Verdict.PASS
        assert not report.interrupted
        assert report.duration_seconds >= 0.6
        assert progress

    async def test_stop_returns_partial_report(
        self, target_server: str, fast_config: Callable[..., RunConfig]
    ) -> None:
        config = fast_config(target_server, concurrency=2, duration_seconds=30)
        session = RunSession(config, handle_signals=False)
        asyncio.get_running_loop().call_later(0.4, session.stop)

        start = time.monotonic()
        report = await session.run()

        assert time.monotonic() - start < 5.0
        assert report.interrupted
        assert session.interrupted
        assert report.total_requests > 0
        assert session.state is SessionState.COMPLETED

    async def test_stop_before_run_is_ignored(self, fast_config: Callable[..., RunConfig]) -> None:
        session = RunSession(fast_config("http://unused.test"), handle_signals=False)
        session.stop()
        assert not session.interrupted
        assert session.state is SessionState.CREATED

    async def test_all_errors_fail_verdict(
        self, closed_port_url: str, fast_config: Callable[..., RunConfig]
    ) -> None:
        config = fast_config(closed_port_url, duration_seconds=0.3)
        report = await RunSession(config, handle_signals=False).run()
        assert report.error_rate_percent == 100.0
        assert report.error_types.get("network", 0) == report.total_errors
        assert report.total_responses == 0
        assert report.verdict is Verdict.FAIL

    async def test_scheduler_failure_raises_engine_error(
        self, fast_config: Callable[..., RunConfig], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        async def _explode(self: RampUpScheduler) -> None:
            msg = "scheduler broke"
            raise RuntimeError(msg)

        monkeypatch.setattr(RampUpScheduler, "run", _explode)
        session = RunSession(fast_config("http://unused.test"), handle_signals=False)
        with pytest.raises(EngineError, match="Run failed"):
            await session.run()
        assert session.state is SessionState.FAILED
