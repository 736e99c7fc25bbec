"""
Benchmark lifecycle controller: validate, authorize, iterate, aggregate, report.
"""

import logging
import sys
from typing import Callable, List, Mapping, Optional

from common.exceptions import (
    AuthorizationError,
    BenchmarkError,
    BenchmarkIOError,
    ConfigurationError,
    IterationError,
)
from common.phase_manager import BenchmarkState, PhaseManager
from common.race_tracker import FirstArrivalTrackers
from common.worker_pool import TaskResult, WorkerPool
from configuration import DEFAULT_ITERATIONS, DEFAULT_MAX_THREADS
from persistence.metrics_aggregator import (
    FAN_OUT_ITERATION_QUANTITIES,
    BenchmarkAggregates,
    IterationMetrics,
)
from persistence.parquet import ResultsPersistence
from persistence.record import CacheStatus, MetricSample
from persistence.report import format_iteration, format_report
from systems.base import HttpRequestProfiler, RequestDescriptor, create_session

logger = logging.getLogger(__name__)


class Benchmark:
    """Drives a benchmark run through its lifecycle.

    CREATED -> CONFIG_VALIDATED -> AUTHORIZED -> RUNNING(1..N) -> AGGREGATED
    -> REPORTED, or FAILED from any state. A failed iteration aborts the
    whole run; no report is emitted after a failure.
    """

    name = "benchmark"
    iteration_quantities: Mapping[str, str] = FAN_OUT_ITERATION_QUANTITIES
    track_requests = True

    def __init__(
        self,
        iterations: int = DEFAULT_ITERATIONS,
        max_threads: int = DEFAULT_MAX_THREADS,
        auth_context=None,
        persistence: Optional[ResultsPersistence] = None,
        profiler: Optional[HttpRequestProfiler] = None,
        exporter=None,
        show_progress: bool = False,
    ):
        """Initialize the benchmark.

        Args:
            iterations: Number of iterations to run (>= 1)
            max_threads: Maximum number of requests in flight (>= 1)
            auth_context: AuthorizationContext owned by this run
            persistence: Optional sink for per-request and per-iteration rows
            profiler: Request profiler (default: one built on a pooled session)
            exporter: Optional PrometheusExporter
            show_progress: Print a dot per completed request to stderr
        """
        self.iterations = iterations
        self.max_threads = max_threads
        self.auth_context = auth_context
        self.persistence = persistence or ResultsPersistence()
        self.exporter = exporter
        self.show_progress = show_progress

        self._owns_session = profiler is None
        self.profiler = profiler
        self.phase_manager = PhaseManager()
        self.aggregates: Optional[BenchmarkAggregates] = None
        self.worker_pool: Optional[WorkerPool] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> BenchmarkAggregates:
        """Execute the complete benchmark and return the final aggregates."""
        logger.info(f"Starting {self.name} benchmark: {self.iterations} iterations, "
                    f"{self.max_threads} threads")
        try:
            self.validate_config()
            self.authorize()
            self.run_iterations()
            self.phase_manager.transition(BenchmarkState.AGGREGATED)
            self.save_results()
            self.report()
            self.phase_manager.transition(BenchmarkState.REPORTED)
            return self.aggregates
        except BenchmarkError as e:
            self.phase_manager.fail(e)
            logger.error(f"{self.name} benchmark failed: {e}")
            raise
        except Exception as e:
            self.phase_manager.fail(e)
            logger.error(f"{self.name} benchmark failed with an unexpected error: {e}")
            raise
        finally:
            self._close()

    def validate_config(self) -> None:
        if not isinstance(self.iterations, int) or self.iterations < 1:
            raise ConfigurationError(f"Iterations must be at least 1, got {self.iterations}")
        if not isinstance(self.max_threads, int) or self.max_threads < 1:
            raise ConfigurationError(f"Max threads must be at least 1, got {self.max_threads}")
        if self.auth_context is None:
            raise ConfigurationError("No authorization context configured")

        self.persistence.check_writable()
        self.aggregates = BenchmarkAggregates(
            self.iterations, self.iteration_quantities, track_requests=self.track_requests,
        )
        if self.profiler is None:
            self.profiler = HttpRequestProfiler(create_session(self.max_threads),
                                                self.auth_context, exporter=self.exporter)
        self.phase_manager.transition(BenchmarkState.CONFIG_VALIDATED)

    def authorize(self) -> None:
        """Acquire credentials once before the first iteration."""
        try:
            self.auth_context.authorize()
        except AuthorizationError:
            raise
        except Exception as e:
            raise AuthorizationError(f"Authorization failed: {e}") from e
        self.phase_manager.transition(BenchmarkState.AUTHORIZED)

    def run_iterations(self) -> None:
        if self.exporter is not None:
            self.exporter.update_concurrency(self.max_threads)

        with WorkerPool(self.max_threads) as pool:
            self.worker_pool = pool
            for iteration in range(1, self.iterations + 1):
                self.phase_manager.transition(BenchmarkState.RUNNING, iteration)
                if self.exporter is not None:
                    self.exporter.update_iteration(iteration)
                logger.info(f"Iteration {iteration}/{self.iterations} started")

                try:
                    metrics = self.run_iteration(iteration)
                except (AuthorizationError, BenchmarkIOError):
                    raise
                except Exception as e:
                    raise IterationError(iteration, e) from e

                self.aggregates.add_iteration(metrics)
                self.persistence.store_iteration(metrics)
                logger.info(self.format_iteration(metrics))

        logger.info(f"{self.name} benchmark completed {self.iterations} iterations")

    def run_iteration(self, iteration: int) -> IterationMetrics:
        raise NotImplementedError

    def save_results(self) -> None:
        request_file, iteration_file = self.persistence.save()
        if request_file:
            logger.info(f"Detailed results saved to: {request_file}, {iteration_file}")

    def report(self) -> None:
        """Emit the final aggregates; no further computation happens here."""
        logger.info(format_report(self.aggregates.iterations,
                                  f"=== {self.name} aggregates over {self.iterations} iterations ==="))
        if self.aggregates.requests is not None and self.aggregates.requests.record_count:
            logger.info(format_report(self.aggregates.requests,
                                      f"=== {self.name} per-request aggregates ==="))
        totals = self.aggregates.totals()
        logger.info(f"Requests: {totals['successful_requests']} succeeded, "
                    f"{totals['failed_requests']} failed")

    def format_iteration(self, metrics: IterationMetrics) -> str:
        return format_iteration(metrics)

    def _close(self) -> None:
        self.worker_pool = None
        if self._owns_session and self.profiler is not None:
            self.profiler.session.close()


class FanOutBenchmark(Benchmark):
    """One iteration: an index query followed by parallel retrieval of every item."""

    def index_request(self) -> RequestDescriptor:
        raise NotImplementedError

    def item_requests(self, body: bytes) -> List[RequestDescriptor]:
        """Decode the index response into one request per item."""
        raise NotImplementedError

    def run_iteration(self, iteration: int) -> IterationMetrics:
        query_sample, body = self.profiler.fetch(self.index_request())
        descriptors = self.item_requests(body)
        # Assume every remaining iteration fans out to the same number of items
        self.aggregates.reserve_requests(len(descriptors) * (self.iterations - iteration + 1))
        logger.info(f"Found {len(descriptors)} items in {query_sample.total_latency:.0f} ms, "
                    f"retrieving with {min(len(descriptors), self.max_threads)} threads")

        trackers = FirstArrivalTrackers()
        units = [self._retrieval_unit(descriptor, trackers) for descriptor in descriptors]
        on_complete = self._print_progress if self.show_progress else None
        results = self.worker_pool.run_batch(units, on_complete=on_complete)
        if self.show_progress and units:
            sys.stderr.write("\n")

        # Batch has joined: everything below runs on the controller thread only
        for failure in results.failures():
            if isinstance(failure.error, AuthorizationError):
                raise failure.error
            logger.warning(f"Request failed: {descriptors[failure.index]}: {failure.error}")

        samples: List[MetricSample] = results.successes()
        for sample in samples:
            self.aggregates.add_request(sample)
            self.persistence.store_request(iteration, sample)

        return self._iteration_metrics(iteration, query_sample, samples,
                                       len(results) - len(samples), trackers)

    def _retrieval_unit(self, descriptor: RequestDescriptor,
                        trackers: FirstArrivalTrackers) -> Callable[[], MetricSample]:
        def unit() -> MetricSample:
            sample = self.profiler.execute(descriptor)
            trackers.offer(sample)
            return sample
        return unit

    @staticmethod
    def _print_progress(result: TaskResult) -> None:
        sys.stderr.write("." if result.ok else "x")
        sys.stderr.flush()

    @staticmethod
    def _iteration_metrics(iteration: int, query_sample: MetricSample,
                           samples: List[MetricSample], failed: int,
                           trackers: FirstArrivalTrackers) -> IterationMetrics:
        start = query_sample.send_time
        first_response = trackers.first_response.best
        first_item = trackers.first_item.best
        finished = max([query_sample.last_byte_time] + [s.last_byte_time for s in samples])

        return IterationMetrics(
            iteration=iteration,
            query_response_latency_ms=query_sample.response_latency,
            query_latency_ms=query_sample.total_latency,
            first_response_latency_ms=first_response.first_byte_time - start if first_response else 0.0,
            first_item_latency_ms=first_item.last_byte_time - start if first_item else 0.0,
            total_latency_ms=finished - start,
            total_bytes=sum(s.bytes_read for s in samples),
            cache_hits=sum(1 for s in samples if s.cache_status is CacheStatus.HIT),
            cache_misses=sum(1 for s in samples if s.cache_status is CacheStatus.MISS),
            successful_requests=len(samples),
            failed_requests=failed,
        )
