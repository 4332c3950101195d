"""Thread-safe accumulator of per-request outcomes."""

from __future__ import annotations

import threading
import time
from collections import defaultdict
from typing import TYPE_CHECKING

from rampforge._internal.logging import get_logger
from rampforge.metrics.histogram import IntervalHistogram
from rampforge.metrics.models import (
    EndpointTally,
    ErrorClass,
    MetricsState,
    ProgressSnapshot,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from rampforge.metrics.models import RequestOutcome

logger = get_logger("metrics.recorder")


class MetricsRecorder:
    """Folds ``RequestOutcome`` objects into run-wide aggregates.

    Every mutation happens under a single ``threading.Lock``, so ``record``
    is atomic whether it is called from asyncio tasks on one loop or from
    several OS threads. Only in-memory updates run under the lock.

    Raw latencies are kept in an append-only list for exact percentiles;
    everything else about an outcome is reduced to counters.

    ``record`` is meant to be fed by the virtual user right after
    ``RequestExecutor.execute`` returns; ``mark_started`` is the executor's
    ``on_dispatch`` hook.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize an empty recorder.

        Args:
            clock: Monotonic time source. The run's elapsed time is
                measured from recorder creation.
        """
        self._clock = clock
        self._lock = threading.Lock()
        self._started_at = clock()

        self._requests_started = 0
        self._requests_completed = 0
        self._errors = 0
        self._timeouts = 0
        self._latencies: list[float] = []
        self._status_codes: dict[int, int] = defaultdict(int)
        self._error_types: dict[str, int] = defaultdict(int)
        self._endpoint_requests: dict[str, int] = defaultdict(int)
        self._endpoint_errors: dict[str, int] = defaultdict(int)
        self._endpoint_latency: dict[str, float] = defaultdict(float)

        # Interval state for live progress, reset by interval_snapshot().
        self._interval_histogram = IntervalHistogram()
        self._interval_completed = 0
        self._interval_started_at = self._started_at

    @property
    def elapsed_seconds(self) -> float:
        """Return seconds since the recorder was created."""
        return self._clock() - self._started_at

    def mark_started(self) -> None:
        """Count a request as dispatched, before its outcome is known."""
        with self._lock:
            self._requests_started += 1

    def record(self, outcome: RequestOutcome) -> None:
        """Fold one completed request into the aggregates.

        Args:
            outcome: The request's outcome.
        """
        with self._lock:
            self._requests_completed += 1
            self._interval_completed += 1
            self._latencies.append(outcome.latency_ms)
            self._interval_histogram.record_ms(outcome.latency_ms)

            if outcome.status_code is not None:
                self._status_codes[outcome.status_code] += 1

            if not outcome.success:
                self._errors += 1
                error_class = outcome.error_class or ErrorClass.NETWORK
                self._error_types[error_class.value] += 1
                if error_class is ErrorClass.TIMEOUT:
                    self._timeouts += 1
                self._endpoint_errors[outcome.name] += 1

            self._endpoint_requests[outcome.name] += 1
            self._endpoint_latency[outcome.name] += outcome.latency_ms

    def snapshot(self) -> MetricsState:
        """Return an immutable copy of the current state.

        Safe to call while virtual users are still recording; the copy is
        consistent because it is taken under the lock.

        Returns:
            The MetricsState at this instant.
        """
        with self._lock:
            endpoints = {
                name: EndpointTally(
                    requests=count,
                    errors=self._endpoint_errors.get(name, 0),
                    latency_total_ms=self._endpoint_latency.get(name, 0.0),
                )
                for name, count in self._endpoint_requests.items()
            }
            return MetricsState(
                requests_started=self._requests_started,
                requests_completed=self._requests_completed,
                errors=self._errors,
                timeouts=self._timeouts,
                latencies=tuple(self._latencies),
                status_codes=dict(self._status_codes),
                error_types=dict(self._error_types),
                endpoints=endpoints,
                elapsed_seconds=self._clock() - self._started_at,
            )

    def interval_snapshot(self, active_users: int) -> ProgressSnapshot:
        """Return a live reading and start a new progress interval.

        Args:
            active_users: Virtual users currently running, supplied by the
                scheduler.

        Returns:
            ProgressSnapshot covering the time since the previous call.
        """
        with self._lock:
            now = self._clock()
            interval = max(now - self._interval_started_at, 0.001)
            progress = ProgressSnapshot(
                elapsed_seconds=now - self._started_at,
                active_users=active_users,
                in_flight=max(self._requests_started - self._requests_completed, 0),
                total_requests=self._requests_completed,
                total_errors=self._errors,
                requests_per_second=self._interval_completed / interval,
                interval_p95_ms=self._interval_histogram.percentile_ms(95.0),
            )
            self._interval_histogram.reset()
            self._interval_completed = 0
            self._interval_started_at = now

        logger.debug(
            "Progress %.1fs: users=%d, in_flight=%d, rps=%.1f, p95~%.1fms, errors=%d",
            progress.elapsed_seconds,
            progress.active_users,
            progress.in_flight,
            progress.requests_per_second,
            progress.interval_p95_ms,
            progress.total_errors,
        )
        return progress
