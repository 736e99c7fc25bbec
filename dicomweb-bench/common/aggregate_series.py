"""
Descriptive statistics over a growing series of scalar measurements.
"""

import logging
from typing import Dict, Iterable, Optional

import numpy as np

from configuration import REPORT_PERCENTILES

logger = logging.getLogger(__name__)


def percentile_key(p: float) -> str:
    """Report key for a percentile, e.g. 50.0 -> 'p50'."""
    return f"p{p:g}"


class AggregateSeries:
    """Accumulates values of one measured quantity and computes statistics.

    The buffer is pre-sized to the expected number of samples and grows by
    half when full. Mean and the sorted copy used for percentiles are cached
    until the next add_value(). An empty series reports 0 for every
    statistic.

    Not thread-safe: values are appended by the controller thread only.
    """

    def __init__(self, name: str, capacity: int = 128):
        """Initialize the series.

        Args:
            name: Quantity being tracked (used in reports)
            capacity: Expected number of samples
        """
        self.name = name
        self._values = np.empty(max(1, capacity), dtype=np.float64)
        self._count = 0
        self._mean: Optional[float] = None
        self._sorted: Optional[np.ndarray] = None

    def reserve(self, capacity: int) -> None:
        """Make room for at least capacity samples without further growth."""
        if capacity > len(self._values):
            self._resize(capacity)

    def _resize(self, capacity: int) -> None:
        grown = np.empty(capacity, dtype=np.float64)
        grown[:self._count] = self._values[:self._count]
        self._values = grown

    def add_value(self, value: float) -> None:
        """Append a sample and invalidate cached statistics."""
        if self._count == len(self._values):
            self._resize(self._count * 3 // 2 + 1)
        self._values[self._count] = value
        self._count += 1
        self._mean = None
        self._sorted = None

    def extend(self, values: Iterable[float]) -> None:
        for value in values:
            self.add_value(value)

    @property
    def count(self) -> int:
        return self._count

    @property
    def capacity(self) -> int:
        return len(self._values)

    @property
    def values(self) -> np.ndarray:
        """Copy of the samples in insertion order."""
        return self._values[:self._count].copy()

    def __len__(self) -> int:
        return self._count

    def min(self) -> float:
        if self._count == 0:
            return 0.0
        return float(self._values[:self._count].min())

    def max(self) -> float:
        if self._count == 0:
            return 0.0
        return float(self._values[:self._count].max())

    def mean(self) -> float:
        if self._count == 0:
            return 0.0
        if self._mean is None:
            self._mean = float(self._values[:self._count].mean())
        return self._mean

    def stddev(self) -> float:
        """Population standard deviation (divides by n, not n - 1)."""
        if self._count == 0:
            return 0.0
        deviations = self._values[:self._count] - self.mean()
        return float(np.sqrt(np.mean(deviations * deviations)))

    def percentile(self, p: float) -> float:
        """Evaluate percentile p with linear interpolation between order statistics.

        For n sorted samples the rank is h = p/100 * (n - 1) and the result is
        x[floor(h)] + (h - floor(h)) * (x[ceil(h)] - x[floor(h)]).
        """
        if not 0.0 <= p <= 100.0:
            raise ValueError(f"Percentile must be within [0, 100], got {p}")
        if self._count == 0:
            return 0.0
        if self._sorted is None:
            self._sorted = np.sort(self._values[:self._count])

        h = (p / 100.0) * (self._count - 1)
        lower = int(np.floor(h))
        upper = int(np.ceil(h))
        low_value = self._sorted[lower]
        return float(low_value + (h - lower) * (self._sorted[upper] - low_value))

    def summary(self) -> Dict[str, float]:
        """All reported statistics for this series."""
        stats = {
            'min': self.min(),
            'max': self.max(),
            'mean': self.mean(),
            'stddev': self.stddev(),
        }
        for p in REPORT_PERCENTILES:
            stats[percentile_key(p)] = self.percentile(p)
        return stats

    def __repr__(self) -> str:
        return f"AggregateSeries(name='{self.name}', count={self._count})"
