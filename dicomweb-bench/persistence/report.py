"""
Text rendering of iteration metrics and final aggregates.
"""

from typing import Dict, List

from common.aggregate_series import percentile_key
from configuration import BYTES_PER_MB, REPORT_PERCENTILES
from persistence.metrics_aggregator import IterationMetrics, MetricsAggregator

STAT_COLUMNS: List[str] = ['min', 'max', 'mean', 'stddev'] + [
    percentile_key(p) for p in REPORT_PERCENTILES
]


def format_iteration(metrics: IterationMetrics) -> str:
    """One-line summary of a fan-out iteration."""
    line = (
        f"Iteration {metrics.iteration}: "
        f"query {metrics.query_latency_ms:.0f} ms, "
        f"first response {metrics.first_response_latency_ms:.0f} ms, "
        f"first item {metrics.first_item_latency_ms:.0f} ms, "
        f"total {metrics.total_latency_ms:.0f} ms, "
        f"{metrics.total_bytes} bytes "
        f"({metrics.transfer_rate / BYTES_PER_MB:.2f} MB/s), "
        f"{metrics.successful_requests} ok / {metrics.failed_requests} failed"
    )
    if metrics.cache_hits or metrics.cache_misses:
        line += f", cache {metrics.cache_hits} hits / {metrics.cache_misses} misses"
    return line


def format_query_iteration(metrics: IterationMetrics) -> str:
    return (
        f"Iteration {metrics.iteration}: "
        f"first byte {metrics.query_response_latency_ms:.0f} ms, "
        f"total {metrics.query_latency_ms:.0f} ms"
    )


def format_table(title: str, report: Dict[str, Dict[str, float]]) -> str:
    """Fixed-width table: one row per quantity, one column per statistic."""
    label_width = max([len(label) for label in report] + [len("quantity")])
    header = f"{'quantity':<{label_width}}" + "".join(f"{col:>14}" for col in STAT_COLUMNS)
    lines = [title, header, "-" * len(header)]
    for label, stats in report.items():
        lines.append(
            f"{label:<{label_width}}" + "".join(f"{stats[col]:>14.2f}" for col in STAT_COLUMNS)
        )
    return "\n".join(lines)


def format_report(aggregator: MetricsAggregator, title: str) -> str:
    return format_table(title, aggregator.report())
