"""HDR histogram used for live, per-interval latency readings.

The final report sorts the full latency list; this histogram only backs the
approximate p95 shown while a run is in progress, so its memory stays
constant no matter how many requests an interval sees.
"""

from __future__ import annotations

from hdrh.histogram import HdrHistogram  # type: ignore[import-untyped]

# Trackable range: 1 microsecond to 2 minutes, in microseconds.
_LOWEST_US = 1
_HIGHEST_US = 120_000_000
_SIGNIFICANT_DIGITS = 3


class IntervalHistogram:
    """Millisecond-facing wrapper around ``HdrHistogram``.

    Values are stored as integer microseconds and clamped into the
    trackable range, so a pathological latency never raises.
    """

    def __init__(
        self,
        lowest_us: int = _LOWEST_US,
        highest_us: int = _HIGHEST_US,
        significant_digits: int = _SIGNIFICANT_DIGITS,
    ) -> None:
        self._lowest_us = lowest_us
        self._highest_us = highest_us
        self._histogram: HdrHistogram = HdrHistogram(  # type: ignore[no-any-unimported]
            lowest_us, highest_us, significant_digits
        )

    @property
    def count(self) -> int:
        """Return the number of values recorded since the last reset."""
        return int(self._histogram.total_count)

    def record_ms(self, latency_ms: float) -> None:
        """Record one latency value given in milliseconds."""
        value_us = min(max(int(latency_ms * 1000), self._lowest_us), self._highest_us)
        self._histogram.record_value(value_us)

    def percentile_ms(self, percentile: float) -> float:
        """Return the value at *percentile* (0-100) in ms, or 0.0 if empty."""
        if self._histogram.total_count == 0:
            return 0.0
        return float(self._histogram.get_value_at_percentile(percentile)) / 1000.0

    def reset(self) -> None:
        """Clear all recorded values."""
        self._histogram.reset()
