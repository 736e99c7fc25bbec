"""
Metrics aggregator for per-iteration and per-request statistics.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Mapping, Optional

import pandas as pd

from common.aggregate_series import AggregateSeries
from configuration import MILLIS_PER_SECOND

logger = logging.getLogger(__name__)


@dataclass
class IterationMetrics:
    """Numbers measured during one iteration.

    Latencies are milliseconds relative to the moment the index query was
    sent. Fan-out fields stay at zero for benchmarks without a fan-out.
    """

    iteration: int
    query_response_latency_ms: float = 0.0
    query_latency_ms: float = 0.0
    first_response_latency_ms: float = 0.0
    first_item_latency_ms: float = 0.0
    total_latency_ms: float = 0.0
    total_bytes: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    successful_requests: int = 0
    failed_requests: int = 0

    @property
    def transfer_rate(self) -> float:
        """Bytes per second over the whole iteration."""
        if self.total_latency_ms <= 0:
            return 0.0
        return self.total_bytes / self.total_latency_ms * MILLIS_PER_SECOND

    def to_row(self) -> Dict[str, Any]:
        row = asdict(self)
        row['transfer_rate_bps'] = self.transfer_rate
        return row


# Report label -> attribute of IterationMetrics
FAN_OUT_ITERATION_QUANTITIES: Dict[str, str] = {
    'query_latency_ms': 'query_latency_ms',
    'first_response_latency_ms': 'first_response_latency_ms',
    'first_item_latency_ms': 'first_item_latency_ms',
    'total_latency_ms': 'total_latency_ms',
    'total_bytes': 'total_bytes',
    'transfer_rate_bps': 'transfer_rate',
    'cache_hits': 'cache_hits',
    'cache_misses': 'cache_misses',
}

QUERY_ITERATION_QUANTITIES: Dict[str, str] = {
    'first_byte_latency_ms': 'query_response_latency_ms',
    'total_latency_ms': 'query_latency_ms',
}

# Report label -> attribute of MetricSample
REQUEST_QUANTITIES: Dict[str, str] = {
    'response_latency_ms': 'response_latency',
    'read_latency_ms': 'read_latency',
    'total_latency_ms': 'total_latency',
    'bytes_read': 'bytes_read',
    'transfer_rate_bps': 'transfer_rate',
}


class MetricsAggregator:
    """One AggregateSeries per tracked quantity of a record type.

    Records are added by the controller thread after a batch has joined;
    the aggregator is never written from worker threads.
    """

    def __init__(self, quantities: Mapping[str, str], capacity: int = 128):
        """Initialize the aggregator.

        Args:
            quantities: Mapping of report label to record attribute
            capacity: Expected number of records
        """
        self.quantities: Dict[str, str] = dict(quantities)
        self.series: Dict[str, AggregateSeries] = {
            label: AggregateSeries(label, capacity) for label in self.quantities
        }
        self.record_count = 0

        logger.debug(f"Initialized MetricsAggregator for {list(self.quantities)} "
                     f"(capacity={capacity})")

    def add(self, record: Any) -> None:
        """Append every tracked quantity of the record."""
        for label, attribute in self.quantities.items():
            self.series[label].add_value(float(getattr(record, attribute)))
        self.record_count += 1

    def reserve(self, capacity: int) -> None:
        for series in self.series.values():
            series.reserve(capacity)

    def __getitem__(self, label: str) -> AggregateSeries:
        return self.series[label]

    def report(self) -> Dict[str, Dict[str, float]]:
        """Summary statistics per quantity, in declaration order."""
        return {label: series.summary() for label, series in self.series.items()}

    def to_frame(self) -> pd.DataFrame:
        """Report as a DataFrame indexed by quantity."""
        report = self.report()
        if not report:
            return pd.DataFrame()
        frame = pd.DataFrame.from_dict(report, orient='index')
        frame.index.name = 'quantity'
        return frame


class BenchmarkAggregates:
    """Aggregates owned by the lifecycle controller for one benchmark run."""

    def __init__(self, iterations: int, iteration_quantities: Mapping[str, str],
                 track_requests: bool = True):
        self.iterations = MetricsAggregator(iteration_quantities, iterations)
        self.requests: Optional[MetricsAggregator] = None
        if track_requests:
            # Resized by reserve_requests() once the fan-out width is known
            self.requests = MetricsAggregator(REQUEST_QUANTITIES, iterations)
        self.history: List[IterationMetrics] = []

    def add_iteration(self, metrics: IterationMetrics) -> None:
        self.iterations.add(metrics)
        self.history.append(metrics)

    def reserve_requests(self, additional: int) -> None:
        """Pre-size the per-request series for this many more samples."""
        if self.requests is not None:
            self.requests.reserve(self.requests.record_count + additional)

    def add_request(self, sample) -> None:
        if self.requests is not None:
            self.requests.add(sample)

    @property
    def completed_iterations(self) -> int:
        return self.iterations.record_count

    def totals(self) -> Dict[str, int]:
        return {
            'successful_requests': sum(m.successful_requests for m in self.history),
            'failed_requests': sum(m.failed_requests for m in self.history),
            'cache_hits': sum(m.cache_hits for m in self.history),
            'cache_misses': sum(m.cache_misses for m in self.history),
        }

    def report(self) -> Dict[str, Dict[str, float]]:
        """Summary of the iteration quantities."""
        return self.iterations.report()

    def to_frame(self) -> pd.DataFrame:
        return self.iterations.to_frame()
