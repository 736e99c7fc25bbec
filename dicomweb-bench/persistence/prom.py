"""
Simple Prometheus metrics exporter for the DICOMweb benchmark.
"""

import logging
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server

from configuration import MILLIS_PER_SECOND

logger = logging.getLogger(__name__)


class PrometheusExporter:
    """Exposes live request metrics while a benchmark is running."""

    def __init__(self, port: int = 9100, registry: Optional[CollectorRegistry] = None):
        self.port = port
        self.server_started = False
        self.registry = registry or CollectorRegistry()

        # Define metrics
        self.requests_total = Counter('dicomweb_benchmark_requests_total', 'Total requests',
                                      ['status'], registry=self.registry)
        self.first_byte_latency = Histogram('dicomweb_benchmark_first_byte_seconds',
                                            'Time to first byte', registry=self.registry)
        self.request_duration = Histogram('dicomweb_benchmark_request_duration_seconds',
                                          'Request duration', registry=self.registry)
        self.bytes_read = Counter('dicomweb_benchmark_bytes_read_total', 'Total bytes read',
                                  registry=self.registry)
        self.iteration = Gauge('dicomweb_benchmark_iteration', 'Current iteration',
                               registry=self.registry)
        self.concurrency = Gauge('dicomweb_benchmark_concurrency', 'Worker thread limit',
                                 registry=self.registry)

    def start_server(self):
        """Start the Prometheus HTTP server."""
        if not self.server_started:
            try:
                start_http_server(self.port, registry=self.registry)
                self.server_started = True
                logger.info(f"Prometheus server started on port {self.port}")
            except OSError as e:
                logger.error(f"Failed to start Prometheus server: {e}")

    def record_request(self, status: Optional[int], sample=None):
        """Record a completed or failed request.

        Args:
            status: HTTP status, None for transport failures
            sample: MetricSample of a successful request
        """
        self.requests_total.labels(status=str(status) if status else "error").inc()
        if sample is not None:
            self.first_byte_latency.observe(sample.response_latency / MILLIS_PER_SECOND)
            self.request_duration.observe(sample.total_latency / MILLIS_PER_SECOND)
            self.bytes_read.inc(sample.bytes_read)

    def update_iteration(self, iteration: int):
        self.iteration.set(iteration)

    def update_concurrency(self, concurrency: int):
        self.concurrency.set(concurrency)
