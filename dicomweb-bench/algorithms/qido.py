"""
QIDO benchmark: one search request per iteration.
"""

import logging

from algorithms.base import Benchmark
from common.exceptions import ConfigurationError
from persistence.metrics_aggregator import QUERY_ITERATION_QUANTITIES, IterationMetrics
from persistence.record import CacheStatus
from persistence.report import format_query_iteration
from systems.dicomweb import DicomStoreConfig, DicomWebRequestFactory

logger = logging.getLogger(__name__)


class QidoBenchmark(Benchmark):
    """Reports first-byte and total latency of a single QIDO query.

    The response body is read in full but not decoded.
    """

    name = "qido"
    iteration_quantities = QUERY_ITERATION_QUANTITIES
    track_requests = False

    def __init__(self, store: DicomStoreConfig, request_path: str, api_root: str = None,
                 **kwargs):
        super().__init__(**kwargs)
        self.store = store
        self.request_path = request_path
        self.factory = DicomWebRequestFactory(store, api_root)

    def validate_config(self) -> None:
        if not self.request_path or not self.request_path.strip("/"):
            raise ConfigurationError("QIDO request path must not be empty")
        super().validate_config()

    def run_iteration(self, iteration: int) -> IterationMetrics:
        sample = self.profiler.execute(self.factory.qido(self.request_path))
        self.persistence.store_request(iteration, sample)

        return IterationMetrics(
            iteration=iteration,
            query_response_latency_ms=sample.response_latency,
            query_latency_ms=sample.total_latency,
            total_latency_ms=sample.total_latency,
            total_bytes=sample.bytes_read,
            cache_hits=1 if sample.cache_status is CacheStatus.HIT else 0,
            cache_misses=1 if sample.cache_status is CacheStatus.MISS else 0,
            successful_requests=1,
        )

    def format_iteration(self, metrics: IterationMetrics) -> str:
        return format_query_iteration(metrics)
