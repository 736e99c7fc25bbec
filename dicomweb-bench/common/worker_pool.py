"""
Bounded thread pool that runs a batch of independent requests and collects per-unit results.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Generic, List, Optional, Sequence, TypeVar

from common.exceptions import ConfigurationError
from configuration import DEFAULT_MAX_THREADS, PROGRESS_INTERVAL

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass(frozen=True)
class TaskResult(Generic[T]):
    """Outcome of one unit of work: either a value or the error it raised."""

    index: int
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BatchResult(list):
    """Results of a batch, in the order the units were submitted."""

    def successes(self) -> List[Any]:
        return [result.value for result in self if result.ok]

    def failures(self) -> List[TaskResult]:
        return [result for result in self if not result.ok]


class WorkerPool:
    """Fixed-size thread pool for fan-out batches.

    A batch always runs to completion: a failing unit is captured as a
    TaskResult with its error and never cancels its siblings. At most
    max_workers units are active at any time.
    """

    def __init__(self, max_workers: int = None):
        """Initialize the worker pool.

        Args:
            max_workers: Maximum number of concurrently running units (default: from configuration)
        """
        self.max_workers = DEFAULT_MAX_THREADS if max_workers is None else max_workers
        if self.max_workers < 1:
            raise ConfigurationError(f"Concurrency limit must be at least 1, got {self.max_workers}")

        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()
        self.completed_units = 0
        self.failed_units = 0

        logger.info(f"Initialized WorkerPool with max {self.max_workers} workers")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()

    def start(self) -> None:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.max_workers,
                thread_name_prefix="fanout",
            )

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
            logger.debug(f"WorkerPool shut down after {self.completed_units} units "
                         f"({self.failed_units} failed)")

    def run_batch(
        self,
        units: Sequence[Callable[[], T]],
        on_complete: Optional[Callable[[TaskResult], None]] = None,
    ) -> BatchResult:
        """Run every unit and wait for all of them.

        Args:
            units: Zero-argument callables, each producing a value or raising
            on_complete: Called once per unit as soon as it finishes, from the
                worker thread, whether the unit succeeded or failed

        Returns:
            BatchResult with one TaskResult per unit, in submission order
        """
        if not units:
            return BatchResult()

        self.start()
        futures = [
            self._executor.submit(self._run_unit, index, unit, on_complete)
            for index, unit in enumerate(units)
        ]
        results = BatchResult(future.result() for future in futures)

        failed = len(results.failures())
        logger.debug(f"Batch completed: {len(results) - failed}/{len(results)} units succeeded")
        return results

    def _run_unit(self, index: int, unit: Callable[[], T],
                  on_complete: Optional[Callable[[TaskResult], None]]) -> TaskResult:
        try:
            result = TaskResult(index=index, value=unit())
        except Exception as e:
            result = TaskResult(index=index, error=e)

        with self._lock:
            self.completed_units += 1
            if not result.ok:
                self.failed_units += 1
            completed = self.completed_units

        if completed % PROGRESS_INTERVAL == 0:
            logger.debug(f"{completed} units completed")

        if on_complete is not None:
            try:
                on_complete(result)
            except Exception as e:
                logger.warning(f"Completion callback failed for unit {index}: {e}")
        return result

    def __repr__(self) -> str:
        return f"WorkerPool(max_workers={self.max_workers}, completed={self.completed_units})"
