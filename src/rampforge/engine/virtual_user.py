"""A single simulated client: optional login, then a timed request loop."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from rampforge._internal.logging import get_logger
from rampforge.dsl.http_client import RequestExecutor
from rampforge.dsl.selector import EndpointSelector
from rampforge.engine._user_utils import make_user_tag, user_rng, wait_or_stop

if TYPE_CHECKING:
    import asyncio
    from collections.abc import Callable

    from rampforge._internal.config import RunConfig
    from rampforge.metrics.recorder import MetricsRecorder

logger = get_logger("engine.virtual_user")


class VirtualUser:
    """Runs one user's request loop until its own deadline.

    The deadline is ``start + duration_seconds``, measured from the moment
    :meth:`run` is entered, so staggered users each get the full duration.
    Requests within a user are strictly sequential and think time always
    follows the previous request. No request is retried.

    Attributes:
        user_id: Identifier of this user (0-based).
        auth_token: Session token obtained by the login phase, if any.
        iterations: Number of loop iterations completed.
    """

    def __init__(
        self,
        user_id: int,
        config: RunConfig,
        recorder: MetricsRecorder,
        stop_event: asyncio.Event,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.user_id = user_id
        self.auth_token: str | None = None
        self.iterations = 0
        self._config = config
        self._recorder = recorder
        self._stop_event = stop_event
        self._clock = clock
        self._rng = user_rng(config.seed, user_id)
        self._selector = EndpointSelector(rng=self._rng)
        self._tag = make_user_tag(self._rng)

    async def run(self) -> None:
        """Log in (if configured), then loop until the deadline or stop."""
        loop_deadline = self._clock() + self._config.duration_seconds
        logger.debug("User %d started", self.user_id, extra={"user_id": self.user_id})

        async with RequestExecutor(
            base_url=self._config.base_url,
            timeout_ms=self._config.request_timeout_ms,
            headers=self._config.headers,
            on_dispatch=self._recorder.mark_started,
            template_context={"user_id": self.user_id, "user_tag": self._tag},
        ) as executor:
            if self._config.auth is not None and not self._stop_event.is_set():
                await self._login(executor)

            while not self._stop_event.is_set() and self._clock() < loop_deadline:
                endpoint = self._selector.select(self._config.endpoints)
                outcome = await executor.execute(endpoint, self.auth_token)
                self._recorder.record(outcome)
                self.iterations += 1

                remaining = loop_deadline - self._clock()
                if remaining <= 0:
                    break
                await wait_or_stop(self._stop_event, min(self._think_time(), remaining))

        logger.debug(
            "User %d finished after %d requests",
            self.user_id,
            self.iterations,
            extra={"user_id": self.user_id},
        )

    def _think_time(self) -> float:
        """Draw a think time in seconds from the configured ms range."""
        min_ms, max_ms = self._config.think_time_ms
        return self._rng.uniform(min_ms, max_ms) / 1000.0

    async def _login(self, executor: RequestExecutor) -> None:
        """Run the registration/login sequence and keep the token.

        Failures are logged and the user continues unauthenticated. The
        auth requests are recorded like any other request.
        """
        auth = self._config.auth
        if auth is None:
            return

        if auth.register is not None:
            outcome = await executor.execute(auth.register)
            self._recorder.record(outcome)
            if not outcome.success:
                logger.debug(
                    "User %d registration failed (%s)",
                    self.user_id,
                    outcome.error_class.value if outcome.error_class else "unknown",
                    extra={"user_id": self.user_id},
                )

        outcome, payload = await executor.execute_json(auth.login)
        self._recorder.record(outcome)
        if not outcome.success:
            logger.warning(
                "User %d login failed (%s, status=%s); continuing unauthenticated",
                self.user_id,
                outcome.error_class.value if outcome.error_class else "unknown",
                outcome.status_code,
                extra={"user_id": self.user_id},
            )
            return

        self.auth_token = auth.extract_token(payload)
        if self.auth_token is None:
            logger.warning(
                "User %d login returned no token in %s; continuing unauthenticated",
                self.user_id,
                list(auth.token_fields),
                extra={"user_id": self.user_id},
            )
        else:
            logger.debug("User %d logged in", self.user_id, extra={"user_id": self.user_id})
