"""Report generator: turns a recorder snapshot into statistics and a verdict.

Percentiles use the nearest-rank rule ``sorted[floor(p * count)]`` with no
interpolation. Thresholds tuned against this rule would silently shift
under an interpolating definition, so it is kept as is.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

import numpy as np

from rampforge.metrics.models import (
    EndpointSummary,
    RunReport,
    ThresholdCheck,
    Verdict,
)

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from rampforge._internal.config import RunConfig, Thresholds
    from rampforge.metrics.models import MetricsState


def nearest_rank(sorted_latencies: NDArray[np.float64], fraction: float) -> float:
    """Return ``sorted_latencies[floor(fraction * count)]``.

    The index is clamped to the last element, so ``fraction=1.0`` yields
    the maximum.

    Args:
        sorted_latencies: Latencies sorted ascending.
        fraction: Percentile as a fraction, e.g. ``0.95``.

    Returns:
        The selected latency, or 0.0 for an empty sample.
    """
    count = len(sorted_latencies)
    if count == 0:
        return 0.0
    index = min(math.floor(fraction * count), count - 1)
    return float(sorted_latencies[index])


def evaluate_thresholds(
    thresholds: Thresholds,
    *,
    error_rate_percent: float,
    p95_ms: float,
    requests_per_second: float,
) -> tuple[ThresholdCheck, ...]:
    """Compare observed values to the configured limits.

    Returns:
        One ThresholdCheck per limit, in a fixed order.
    """
    return (
        ThresholdCheck(
            name="error_rate_percent",
            observed=error_rate_percent,
            limit=thresholds.max_error_rate_percent,
            passed=error_rate_percent < thresholds.max_error_rate_percent,
            description=f"error rate < {thresholds.max_error_rate_percent:g}%",
        ),
        ThresholdCheck(
            name="p95_ms",
            observed=p95_ms,
            limit=thresholds.max_p95_ms,
            passed=p95_ms < thresholds.max_p95_ms,
            description=f"p95 < {thresholds.max_p95_ms:g} ms",
        ),
        ThresholdCheck(
            name="rps",
            observed=requests_per_second,
            limit=thresholds.min_rps,
            passed=requests_per_second > thresholds.min_rps,
            description=f"throughput > {thresholds.min_rps:g} req/s",
        ),
    )


def build_report(
    snapshot: MetricsState,
    config: RunConfig,
    *,
    interrupted: bool = False,
) -> RunReport:
    """Compute the run report for *snapshot*.

    Pure: the snapshot is not modified and equal inputs give equal reports.
    It also accepts snapshots taken before every user finished, which is
    how interrupted runs still get a partial report.

    Args:
        snapshot: Recorder state to summarise.
        config: Run configuration; only its thresholds are read.
        interrupted: Mark the report as covering an aborted run.

    Returns:
        The RunReport, including the PASS/FAIL verdict.
    """
    latencies = np.sort(np.asarray(snapshot.latencies, dtype=np.float64))
    count = len(latencies)

    duration = snapshot.elapsed_seconds
    requests_per_second = snapshot.requests_completed / duration if duration > 0 else 0.0

    # Recorded-only snapshots (no dispatch hook) still get a sane denominator.
    attempted = max(snapshot.requests_started, snapshot.requests_completed)
    error_rate_percent = snapshot.errors / attempted * 100 if attempted > 0 else 0.0

    p50 = nearest_rank(latencies, 0.50)
    p95 = nearest_rank(latencies, 0.95)
    p99 = nearest_rank(latencies, 0.99)

    checks = evaluate_thresholds(
        config.thresholds,
        error_rate_percent=error_rate_percent,
        p95_ms=p95,
        requests_per_second=requests_per_second,
    )
    verdict = Verdict.PASS if all(check.passed for check in checks) else Verdict.FAIL

    endpoints = tuple(
        EndpointSummary(
            name=name,
            requests=tally.requests,
            errors=tally.errors,
            error_rate_percent=tally.errors / tally.requests * 100 if tally.requests else 0.0,
            avg_latency_ms=tally.latency_total_ms / tally.requests if tally.requests else 0.0,
        )
        for name, tally in sorted(snapshot.endpoints.items())
    )

    return RunReport(
        duration_seconds=duration,
        total_requests=attempted,
        total_responses=sum(snapshot.status_codes.values()),
        total_errors=snapshot.errors,
        timeouts=snapshot.timeouts,
        error_rate_percent=error_rate_percent,
        requests_per_second=requests_per_second,
        avg_latency_ms=float(np.mean(latencies)) if count else 0.0,
        min_latency_ms=float(latencies[0]) if count else 0.0,
        max_latency_ms=float(latencies[-1]) if count else 0.0,
        p50=p50,
        p95=p95,
        p99=p99,
        status_codes=dict(sorted(snapshot.status_codes.items())),
        error_types=dict(sorted(snapshot.error_types.items())),
        endpoints=endpoints,
        checks=checks,
        verdict=verdict,
        interrupted=interrupted,
    )
