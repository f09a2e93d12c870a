"""
Progress reporting: percentages in [0, 100], never decreasing within one run.
"""
from typing import Callable, Optional
import logging

logger = logging.getLogger("degrade")

ProgressCallback = Callable[[float], None]

# Checkpoints of one process() call
DECODED_PCT = 10.0
CHAIN_END_PCT = 95.0


class ProgressReporter:
    """
    Wraps an optional caller callback. Values are clamped to [0, 100] and
    held at the previous maximum, so callers always see a non-decreasing series.
    """

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self._callback = callback
        self._last: Optional[float] = None

    @property
    def last(self) -> float:
        return 0.0 if self._last is None else self._last

    def report(self, percent: float) -> float:
        value = min(100.0, max(0.0, float(percent)))
        if self._last is not None:
            value = max(value, self._last)
        self._last = value
        logger.debug("progress %.1f%%", value)
        if self._callback is not None:
            self._callback(value)
        return value

    def report_fraction(self, fraction: float, start: float, end: float) -> float:
        """Map a 0..1 fraction onto the [start, end] percent span."""
        fraction = min(1.0, max(0.0, fraction))
        return self.report(start + (end - start) * fraction)

    def finish(self) -> float:
        return self.report(100.0)
