"""Tests for the interval HDR histogram."""

from __future__ import annotations

import pytest

from rampforge.metrics.histogram import IntervalHistogram


def test_empty_percentile_is_zero() -> None:
    assert IntervalHistogram().percentile_ms(95.0) == 0.0


def test_percentiles_within_precision() -> None:
    histogram = IntervalHistogram()
    for value in range(1, 101):
        histogram.record_ms(float(value))
    assert histogram.count == 100
    assert histogram.percentile_ms(50.0) == pytest.approx(50.0, rel=0.01)
    assert histogram.percentile_ms(95.0) == pytest.approx(95.0, rel=0.01)
    assert histogram.percentile_ms(100.0) == pytest.approx(100.0, rel=0.01)


def test_reset_clears_values() -> None:
    histogram = IntervalHistogram()
    histogram.record_ms(10.0)
    histogram.reset()
    assert histogram.count == 0
    assert histogram.percentile_ms(99.0) == 0.0


@pytest.mark.parametrize("latency_ms", [0.0, -5.0, 10_000_000.0])
def test_out_of_range_values_are_clamped(latency_ms: float) -> None:
    histogram = IntervalHistogram()
    histogram.record_ms(latency_ms)
    assert histogram.count == 1
