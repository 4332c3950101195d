"""Metric dataclasses for RampForge: outcomes, recorder state, and reports."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum

__all__ = [
    "EndpointSummary",
    "EndpointTally",
    "ErrorClass",
    "MetricsState",
    "ProgressSnapshot",
    "RequestOutcome",
    "RunReport",
    "ThresholdCheck",
    "Verdict",
]


class ErrorClass(str, Enum):
    """Transport-level classification of a failed request."""

    TIMEOUT = "timeout"
    HTTP_4XX = "http_4xx"
    HTTP_5XX = "http_5xx"
    NETWORK = "network"

    @classmethod
    def from_status(cls, status_code: int) -> ErrorClass | None:
        """Classify an HTTP status code.

        Args:
            status_code: The response status.

        Returns:
            ``HTTP_4XX`` or ``HTTP_5XX`` for statuses >= 400, else None.
        """
        if status_code >= 500:
            return cls.HTTP_5XX
        if status_code >= 400:
            return cls.HTTP_4XX
        return None


class Verdict(str, Enum):
    """Overall pass/fail outcome of a run against its thresholds."""

    PASS = "PASS"
    FAIL = "FAIL"


@dataclass(frozen=True)
class RequestOutcome:
    """Result of a single request, folded into the recorder and discarded.

    Attributes:
        success: True if a response with status < 400 was received.
        latency_ms: Monotonic wall time from dispatch to the terminal
            response or error, in milliseconds.
        status_code: HTTP status, or None if no response arrived.
        error_class: Failure class, or None on success.
        name: Label of the endpoint that was called.
    """

    success: bool
    latency_ms: float
    status_code: int | None = None
    error_class: ErrorClass | None = None
    name: str = ""


@dataclass(frozen=True)
class EndpointTally:
    """Per-endpoint counters kept by the recorder.

    Attributes:
        requests: Completed requests for this endpoint.
        errors: Failed requests for this endpoint.
        latency_total_ms: Sum of latencies, for the mean.
    """

    requests: int = 0
    errors: int = 0
    latency_total_ms: float = 0.0


@dataclass(frozen=True)
class MetricsState:
    """Immutable point-in-time copy of the recorder's state.

    Attributes:
        requests_started: Requests dispatched (including in-flight ones).
        requests_completed: Requests with a terminal outcome.
        errors: Completed requests that failed.
        timeouts: Failed requests classified as ``timeout``.
        latencies: Every recorded latency in milliseconds, in record order.
        status_codes: Count of outcomes per HTTP status code.
        error_types: Count of failures per ErrorClass value.
        endpoints: Per-endpoint tallies keyed by endpoint label.
        elapsed_seconds: Seconds between recorder creation and snapshot.
    """

    requests_started: int = 0
    requests_completed: int = 0
    errors: int = 0
    timeouts: int = 0
    latencies: tuple[float, ...] = ()
    status_codes: dict[int, int] = field(default_factory=dict)
    error_types: dict[str, int] = field(default_factory=dict)
    endpoints: dict[str, EndpointTally] = field(default_factory=dict)
    elapsed_seconds: float = 0.0

    @property
    def successes(self) -> int:
        """Return the number of completed requests that succeeded."""
        return self.requests_completed - self.errors

    @property
    def in_flight(self) -> int:
        """Return the number of requests dispatched but not yet completed."""
        return max(self.requests_started - self.requests_completed, 0)


@dataclass(frozen=True)
class ProgressSnapshot:
    """Live reading emitted once per progress tick during a run.

    Attributes:
        elapsed_seconds: Seconds since the run started.
        active_users: Virtual users currently inside their request loop.
        in_flight: Requests dispatched but not yet completed.
        total_requests: Requests completed so far.
        total_errors: Failures so far.
        requests_per_second: Completion rate over the last interval.
        interval_p95_ms: Approximate p95 latency over the last interval.
    """

    elapsed_seconds: float
    active_users: int
    in_flight: int
    total_requests: int
    total_errors: int
    requests_per_second: float
    interval_p95_ms: float


@dataclass(frozen=True)
class EndpointSummary:
    """Per-endpoint line of the final report."""

    name: str
    requests: int
    errors: int
    error_rate_percent: float
    avg_latency_ms: float


@dataclass(frozen=True)
class ThresholdCheck:
    """Result of comparing one observed value to its configured limit.

    Attributes:
        name: Metric being checked (``error_rate_percent``, ``p95_ms``, ``rps``).
        observed: Value measured during the run.
        limit: Configured threshold.
        passed: Whether the observed value satisfied the threshold.
        description: Human-readable condition, e.g. ``"p95 < 1000 ms"``.
    """

    name: str
    observed: float
    limit: float
    passed: bool
    description: str


@dataclass(frozen=True)
class RunReport:
    """Aggregate statistics and verdict for a finished (or interrupted) run.

    Latency fields are in milliseconds. Percentiles use the nearest-rank
    method, see :func:`rampforge.metrics.report.nearest_rank`.
    """

    duration_seconds: float
    total_requests: int
    total_responses: int
    total_errors: int
    timeouts: int
    error_rate_percent: float
    requests_per_second: float
    avg_latency_ms: float
    min_latency_ms: float
    max_latency_ms: float
    p50: float
    p95: float
    p99: float
    status_codes: dict[int, int]
    error_types: dict[str, int]
    endpoints: tuple[EndpointSummary, ...]
    checks: tuple[ThresholdCheck, ...]
    verdict: Verdict
    interrupted: bool = False

    @property
    def passed(self) -> bool:
        """Return True when the verdict is PASS."""
        return self.verdict is Verdict.PASS

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serialisable representation of the report."""
        data = asdict(self)
        data["verdict"] = self.verdict.value
        data["status_codes"] = {str(code): count for code, count in self.status_codes.items()}
        data["endpoints"] = [asdict(ep) for ep in self.endpoints]
        data["checks"] = [asdict(check) for check in self.checks]
        return data
