"""Ramp-up scheduler: starts virtual users on a linear stagger and joins them."""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

from rampforge._internal.errors import ConfigurationError
from rampforge._internal.logging import get_logger
from rampforge.engine._user_utils import shutdown_tasks, wait_or_stop
from rampforge.engine.virtual_user import VirtualUser

if TYPE_CHECKING:
    from collections.abc import Callable

    from rampforge._internal.config import RunConfig
    from rampforge.metrics.recorder import MetricsRecorder

    UserFactory = Callable[[int, RunConfig, MetricsRecorder, asyncio.Event], VirtualUser]

logger = get_logger("engine.scheduler")

# Extra seconds allowed past the expected run bound before users are cancelled.
_SHUTDOWN_GRACE_SECONDS = 5.0


def start_delays(concurrency: int, ramp_up_seconds: float) -> list[float]:
    """Return each user's start offset: ``i * ramp_up_seconds / concurrency``.

    Args:
        concurrency: Number of users to start.
        ramp_up_seconds: Length of the ramp-up window.

    Returns:
        One non-decreasing offset per user, all below *ramp_up_seconds*
        (or all zero without a ramp-up).

    Raises:
        ConfigurationError: If *concurrency* is not positive or the ramp-up
            is negative.
    """
    if concurrency <= 0:
        msg = f"concurrency must be positive, got {concurrency}"
        raise ConfigurationError(msg)
    if ramp_up_seconds < 0:
        msg = f"ramp_up_seconds must be non-negative, got {ramp_up_seconds}"
        raise ConfigurationError(msg)
    return [i * ramp_up_seconds / concurrency for i in range(concurrency)]


class RampUpScheduler:
    """Spawns one task per virtual user at its staggered delay.

    :meth:`run` returns only once every user task has returned, so the
    recorder has no writers left when the caller snapshots it. The
    scheduler itself records no metrics.

    Attributes:
        delays: Planned start offset of each user, in seconds.
        start_offsets: Observed start offset of each user that started.
    """

    def __init__(
        self,
        config: RunConfig,
        recorder: MetricsRecorder,
        stop_event: asyncio.Event,
        *,
        user_factory: UserFactory = VirtualUser,
    ) -> None:
        self._config = config
        self._recorder = recorder
        self._stop_event = stop_event
        self._user_factory = user_factory
        self.delays = start_delays(config.concurrency, config.ramp_up_seconds)
        self.start_offsets: dict[int, float] = {}
        self._active_users = 0
        self._finished_users = 0
        self._origin = 0.0

    @property
    def active_users(self) -> int:
        """Return the number of users currently inside their loop."""
        return self._active_users

    @property
    def finished_users(self) -> int:
        """Return the number of users whose loop has returned."""
        return self._finished_users

    async def run(self) -> None:
        """Start all users on the ramp-up schedule and wait for them."""
        self._origin = time.monotonic()
        logger.info(
            "Ramping up %d users over %.1fs",
            self._config.concurrency,
            self._config.ramp_up_seconds,
        )

        tasks = [
            asyncio.create_task(self._launch(user_id, delay), name=f"virtual-user-{user_id}")
            for user_id, delay in enumerate(self.delays)
        ]
        cancelled = await shutdown_tasks(
            tasks,
            timeout=self._config.expected_run_seconds + _SHUTDOWN_GRACE_SECONDS,
        )

        for task in tasks:
            # A cancelled task may still be unwinding after the grace period.
            if not task.done() or task.cancelled():
                continue
            exc = task.exception()
            if exc is not None:
                logger.error(
                    "Virtual user task %s failed",
                    task.get_name(),
                    exc_info=(type(exc), exc, exc.__traceback__),
                )

        logger.info(
            "All users finished: started=%d, cancelled=%d",
            len(self.start_offsets),
            cancelled,
        )

    async def _launch(self, user_id: int, delay: float) -> None:
        """Wait for the user's start offset, then run it to completion."""
        target = self._origin + delay
        if await wait_or_stop(self._stop_event, target - time.monotonic()):
            logger.debug("User %d not started: run stopping", user_id)
            return

        user = self._user_factory(user_id, self._config, self._recorder, self._stop_event)
        self.start_offsets[user_id] = time.monotonic() - self._origin
        self._active_users += 1
        try:
            await user.run()
        finally:
            self._active_users -= 1
            self._finished_users += 1
