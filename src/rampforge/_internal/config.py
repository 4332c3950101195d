"""Run configuration for RampForge and its environment-variable loader."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from rampforge._internal.errors import ConfigurationError
from rampforge._internal.validation import (
    _validate_int,
    _validate_non_negative,
    _validate_positive,
)
from rampforge.dsl.endpoints import DEFAULT_AUTH_FLOW, DEFAULT_ENDPOINTS

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from rampforge._internal.types import Headers, ThinkTimeMs
    from rampforge.dsl.endpoints import AuthFlow, EndpointSpec

DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_CONCURRENCY = 10
DEFAULT_DURATION_SECONDS = 60
DEFAULT_RAMP_UP_SECONDS = 10
DEFAULT_TIMEOUT_MS = 10_000
DEFAULT_THINK_TIME_MS: ThinkTimeMs = (1000.0, 3000.0)


@dataclass(frozen=True)
class Thresholds:
    """Service-level limits a run must satisfy to PASS.

    Attributes:
        max_error_rate_percent: Error rate must be strictly below this.
        max_p95_ms: p95 latency must be strictly below this.
        min_rps: Throughput must be strictly above this.
    """

    max_error_rate_percent: float = 1.0
    max_p95_ms: float = 1000.0
    min_rps: float = 50.0

    def __post_init__(self) -> None:
        _validate_non_negative(self.max_error_rate_percent, "max_error_rate_percent")
        _validate_positive(self.max_p95_ms, "max_p95_ms")
        _validate_non_negative(self.min_rps, "min_rps")


@dataclass(frozen=True)
class RunConfig:
    """Immutable description of one load test run.

    Created once at harness start and validated on construction, so an
    invalid run never dispatches a request.

    Attributes:
        base_url: Target base URL; endpoint paths are appended to it.
        concurrency: Number of virtual users to start.
        duration_seconds: How long each virtual user runs its loop.
        ramp_up_seconds: Window over which user starts are staggered.
        request_timeout_ms: Hard per-request timeout.
        endpoints: Weighted endpoint table, stored as a tuple.
        think_time_ms: ``(min, max)`` pause between a user's requests.
        thresholds: Limits used for the verdict.
        auth: Optional registration/login sequence run by every user.
        seed: Optional PRNG seed for reproducible endpoint/think-time draws.
        headers: Headers sent with every request.

    Raises:
        ConfigurationError: If any value is out of range.
    """

    base_url: str = DEFAULT_BASE_URL
    concurrency: int = DEFAULT_CONCURRENCY
    duration_seconds: float = DEFAULT_DURATION_SECONDS
    ramp_up_seconds: float = DEFAULT_RAMP_UP_SECONDS
    request_timeout_ms: float = DEFAULT_TIMEOUT_MS
    endpoints: Sequence[EndpointSpec] = DEFAULT_ENDPOINTS
    think_time_ms: ThinkTimeMs = DEFAULT_THINK_TIME_MS
    thresholds: Thresholds = field(default_factory=Thresholds)
    auth: AuthFlow | None = None
    seed: int | None = None
    headers: Headers = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.base_url:
            msg = "base_url must not be empty"
            raise ConfigurationError(msg)
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

        _validate_int(self.concurrency, "concurrency")
        _validate_positive(self.concurrency, "concurrency")
        _validate_positive(self.duration_seconds, "duration_seconds")
        _validate_non_negative(self.ramp_up_seconds, "ramp_up_seconds")
        _validate_positive(self.request_timeout_ms, "request_timeout_ms")

        endpoints = tuple(self.endpoints)
        if not endpoints:
            msg = "At least one endpoint is required"
            raise ConfigurationError(msg)
        object.__setattr__(self, "endpoints", endpoints)

        if len(self.think_time_ms) != 2:
            msg = f"think_time_ms must be a (min, max) pair, got {self.think_time_ms!r}"
            raise ConfigurationError(msg)
        min_ms, max_ms = self.think_time_ms
        _validate_non_negative(min_ms, "think_time_ms min")
        if max_ms < min_ms:
            msg = f"think_time_ms max ({max_ms}) must be >= min ({min_ms})"
            raise ConfigurationError(msg)
        object.__setattr__(self, "think_time_ms", (float(min_ms), float(max_ms)))

    @property
    def request_timeout_seconds(self) -> float:
        """Return the per-request timeout in seconds."""
        return self.request_timeout_ms / 1000.0

    @property
    def expected_run_seconds(self) -> float:
        """Return the upper bound on wall-clock run time.

        Every user starts within the ramp-up window, runs for the duration,
        and may finish one last in-flight request.
        """
        return self.ramp_up_seconds + self.duration_seconds + self.request_timeout_seconds


def _parse_number(env: Mapping[str, str], key: str, default: float, *, integer: bool) -> float:
    """Read a numeric environment variable.

    Raises:
        ConfigurationError: If the value does not parse.
    """
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw) if integer else float(raw)
    except ValueError:
        kind = "an integer" if integer else "a number"
        msg = f"{key} must be {kind}, got: {raw!r}"
        raise ConfigurationError(msg) from None


def _parse_think_time(raw: str | None) -> ThinkTimeMs:
    """Parse ``"min,max"`` milliseconds.

    Raises:
        ConfigurationError: If the value is not two comma-separated numbers.
    """
    if raw is None or raw.strip() == "":
        return DEFAULT_THINK_TIME_MS
    parts = [part.strip() for part in raw.split(",")]
    try:
        low, high = (float(part) for part in parts)
    except ValueError:
        msg = f"RAMPFORGE_THINK_TIME_MS must be 'min,max' in milliseconds, got: {raw!r}"
        raise ConfigurationError(msg) from None
    return (low, high)


def load_config(env: Mapping[str, str] | None = None, **overrides: object) -> RunConfig:
    """Build a RunConfig from environment variables, defaults and overrides.

    Environment variables:
        RAMPFORGE_BASE_URL: Target base URL (default: http://localhost:8000).
        RAMPFORGE_USERS: Concurrent virtual users (default: 10).
        RAMPFORGE_DURATION: Per-user run duration in seconds (default: 60).
        RAMPFORGE_RAMP_UP: Ramp-up window in seconds (default: 10).
        RAMPFORGE_TIMEOUT_MS: Per-request timeout in ms (default: 10000).
        RAMPFORGE_THINK_TIME_MS: ``"min,max"`` think time in ms
            (default: ``1000,3000``).
        RAMPFORGE_ENDPOINTS: Path to an endpoint table file. Without it the
            built-in table and auth flow are used.

    Args:
        env: Mapping to read instead of ``os.environ``.
        **overrides: RunConfig fields that take precedence over the
            environment. ``None`` values are ignored.

    Returns:
        The validated RunConfig.

    Raises:
        ConfigurationError: If a variable has an invalid value or the
            resulting configuration is invalid.
    """
    from rampforge.dsl.loader import load_endpoint_table

    env = os.environ if env is None else env

    values: dict[str, object] = {
        "base_url": env.get("RAMPFORGE_BASE_URL") or DEFAULT_BASE_URL,
        "concurrency": _parse_number(env, "RAMPFORGE_USERS", DEFAULT_CONCURRENCY, integer=True),
        "duration_seconds": _parse_number(
            env, "RAMPFORGE_DURATION", DEFAULT_DURATION_SECONDS, integer=False
        ),
        "ramp_up_seconds": _parse_number(
            env, "RAMPFORGE_RAMP_UP", DEFAULT_RAMP_UP_SECONDS, integer=False
        ),
        "request_timeout_ms": _parse_number(
            env, "RAMPFORGE_TIMEOUT_MS", DEFAULT_TIMEOUT_MS, integer=False
        ),
        "think_time_ms": _parse_think_time(env.get("RAMPFORGE_THINK_TIME_MS")),
    }

    endpoints_path = overrides.pop("endpoints_path", None) or env.get("RAMPFORGE_ENDPOINTS")
    if endpoints_path:
        table = load_endpoint_table(str(endpoints_path))
        values["endpoints"] = table.endpoints
        values["auth"] = table.auth
    else:
        values["endpoints"] = DEFAULT_ENDPOINTS
        values["auth"] = DEFAULT_AUTH_FLOW

    # ``auth=False`` disables the login phase even when a table defines one.
    if overrides.get("auth") is False:
        overrides.pop("auth")
        values["auth"] = None

    values.update({key: value for key, value in overrides.items() if value is not None})
    try:
        return RunConfig(**values)  # type: ignore[arg-type]
    except TypeError as exc:
        msg = f"Invalid configuration override: {exc}"
        raise ConfigurationError(msg) from None
