"""HDR histogram of request durations.

Wraps ``hdrh.histogram.HdrHistogram``, which only accepts integers, by
storing durations as integer microseconds. The public API works in
milliseconds.
"""

from __future__ import annotations

from hdrh.histogram import HdrHistogram  # type: ignore[import-untyped]

# 1 microsecond to 10 minutes, enough for any configurable request timeout.
_LOWEST_TRACKABLE_US = 1
_HIGHEST_TRACKABLE_US = 600_000_000
_SIGNIFICANT_DIGITS = 3


class DurationHistogram:
    """Bucketed request durations with approximate percentiles.

    Not synchronised; the aggregator holds its lock around every call.
    """

    def __init__(self, significant_digits: int = _SIGNIFICANT_DIGITS) -> None:
        self._histogram: HdrHistogram = HdrHistogram(  # type: ignore[no-any-unimported]
            _LOWEST_TRACKABLE_US, _HIGHEST_TRACKABLE_US, significant_digits
        )

    def record(self, duration_ms: float) -> None:
        """Record one duration, clamped into the trackable range."""
        value_us = int(duration_ms * 1000)
        value_us = max(_LOWEST_TRACKABLE_US, min(value_us, _HIGHEST_TRACKABLE_US))
        self._histogram.record_value(value_us)

    @property
    def count(self) -> int:
        return int(self._histogram.total_count)

    def percentile(self, percentile: float) -> float:
        """Return the duration in milliseconds at *percentile* (0-100), or 0.0 when empty."""
        if self._histogram.total_count == 0:
            return 0.0
        return float(self._histogram.get_value_at_percentile(percentile)) / 1000.0

    def percentiles(self, *percentiles: float) -> dict[float, float]:
        return {p: self.percentile(p) for p in percentiles}

