"""
Parquet/CSV persistence for benchmark results.
"""

import os
import logging
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from common.exceptions import BenchmarkIOError
from persistence.metrics_aggregator import IterationMetrics
from persistence.record import MetricSample

logger = logging.getLogger(__name__)


class ResultsPersistence:
    """Collects per-request and per-iteration rows and writes them to disk.

    Rows are appended by the controller thread after each batch joins.
    The file format follows the output suffix: '.parquet' writes Parquet,
    anything else CSV. Per-request rows go to the output path, iteration
    rows to a sibling file with an '_iterations' suffix.

    Attributes:
        output_path: Target file, or None to keep results in memory only
        request_rows: One row per successful request
        iteration_rows: One row per completed iteration
    """

    def __init__(self, output_path: Optional[str] = None):
        """Initialize persistence.

        Args:
            output_path: File for per-request results (default: no output)
        """
        self.output_path: Optional[str] = output_path
        self.request_rows: List[Dict[str, Any]] = []
        self.iteration_rows: List[Dict[str, Any]] = []

    @property
    def enabled(self) -> bool:
        return bool(self.output_path)

    def store_request(self, iteration: int, sample: MetricSample) -> None:
        self.request_rows.append(sample.to_row(iteration))

    def store_iteration(self, metrics: IterationMetrics) -> None:
        self.iteration_rows.append(metrics.to_row())

    def iteration_path(self) -> Optional[str]:
        if not self.output_path:
            return None
        root, ext = os.path.splitext(self.output_path)
        return f"{root}_iterations{ext or '.csv'}"

    def check_writable(self) -> None:
        """Fail before the run if the output directory cannot be used."""
        if not self.output_path:
            return
        directory = os.path.dirname(os.path.abspath(self.output_path))
        try:
            os.makedirs(directory, exist_ok=True)
        except OSError as e:
            raise BenchmarkIOError(f"Cannot create output directory {directory}: {e}") from e
        if not os.access(directory, os.W_OK):
            raise BenchmarkIOError(f"Output directory is not writable: {directory}")

    def save(self) -> Tuple[Optional[str], Optional[str]]:
        """Write both tables.

        Returns:
            Paths of the request and iteration files, (None, None) when disabled

        Raises:
            BenchmarkIOError: If a file cannot be written
        """
        if not self.output_path:
            return None, None

        self.check_writable()
        request_file = self._write(pd.DataFrame(self.request_rows), self.output_path)
        iteration_file = self._write(pd.DataFrame(self.iteration_rows), self.iteration_path())
        logger.info(f"Saved {len(self.request_rows)} request rows to {request_file} and "
                    f"{len(self.iteration_rows)} iteration rows to {iteration_file}")
        return request_file, iteration_file

    @staticmethod
    def _write(df: pd.DataFrame, path: str) -> str:
        try:
            if path.endswith(".parquet"):
                df.to_parquet(path, index=False)
            else:
                df.to_csv(path, index=False)
        except (OSError, ValueError, TypeError, ImportError) as e:
            raise BenchmarkIOError(f"Failed to write {path}: {e}") from e
        return path
