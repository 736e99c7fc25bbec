"""
Tests for result persistence, aggregation tables and report formatting.
"""

import sys
import os
from unittest.mock import patch

import pandas as pd
import pytest

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from common.exceptions import BenchmarkIOError
from persistence.metrics_aggregator import (
    FAN_OUT_ITERATION_QUANTITIES,
    BenchmarkAggregates,
    IterationMetrics,
)
from persistence.parquet import ResultsPersistence
from persistence.prom import PrometheusExporter
from persistence.record import CacheStatus, MetricSample
from persistence.report import format_iteration, format_report


def filled_persistence(path):
    persistence = ResultsPersistence(path)
    persistence.store_request(1, MetricSample(0.0, 10.0, 30.0, 100, CacheStatus.HIT))
    persistence.store_request(1, MetricSample(0.0, 12.0, 40.0, 200))
    persistence.store_iteration(IterationMetrics(iteration=1, total_latency_ms=40.0,
                                                 total_bytes=300, successful_requests=2))
    return persistence


def test_csv_output(tmp_path):
    path = str(tmp_path / "results" / "run.csv")
    request_file, iteration_file = filled_persistence(path).save()

    assert request_file == path
    assert iteration_file == str(tmp_path / "results" / "run_iterations.csv")

    requests_df = pd.read_csv(request_file)
    assert len(requests_df) == 2
    assert list(requests_df['cache_status']) == ['hit', 'unknown']

    iterations_df = pd.read_csv(iteration_file)
    assert iterations_df.loc[0, 'total_bytes'] == 300
    assert iterations_df.loc[0, 'transfer_rate_bps'] == pytest.approx(7500.0)


def test_parquet_output(tmp_path):
    path = str(tmp_path / "run.parquet")
    request_file, iteration_file = filled_persistence(path).save()

    assert iteration_file.endswith("run_iterations.parquet")
    df = pd.read_parquet(request_file)
    assert list(df['bytes_read']) == [100, 200]


def test_no_output_path_writes_nothing(tmp_path):
    persistence = filled_persistence(None)
    assert not persistence.enabled
    assert persistence.save() == (None, None)
    assert list(tmp_path.iterdir()) == []


def test_write_failure_becomes_benchmark_io_error(tmp_path):
    persistence = filled_persistence(str(tmp_path / "run.csv"))
    with patch.object(pd.DataFrame, 'to_csv', side_effect=OSError("disk full")):
        with pytest.raises(BenchmarkIOError):
            persistence.save()


def test_parquet_type_error_becomes_benchmark_io_error(tmp_path):
    persistence = filled_persistence(str(tmp_path / "run.parquet"))
    with patch.object(pd.DataFrame, 'to_parquet', side_effect=TypeError("unsupported column type")):
        with pytest.raises(BenchmarkIOError):
            persistence.save()


def test_unusable_output_directory(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")
    persistence = ResultsPersistence(str(blocker / "run.csv"))
    with pytest.raises(BenchmarkIOError):
        persistence.check_writable()


def test_aggregates_report_and_frame():
    aggregates = BenchmarkAggregates(3, FAN_OUT_ITERATION_QUANTITIES)
    for i, total in enumerate([100.0, 200.0, 300.0], start=1):
        aggregates.add_iteration(IterationMetrics(iteration=i, total_latency_ms=total,
                                                  total_bytes=1000, cache_hits=1,
                                                  successful_requests=4, failed_requests=1))
    aggregates.add_request(MetricSample(0.0, 5.0, 15.0, 10))

    report = aggregates.report()
    assert list(report) == list(FAN_OUT_ITERATION_QUANTITIES)
    assert report['total_latency_ms']['p50'] == 200.0
    assert report['total_latency_ms']['mean'] == 200.0
    assert aggregates.requests['total_latency_ms'].count == 1
    assert aggregates.completed_iterations == 3
    assert aggregates.totals() == {'successful_requests': 12, 'failed_requests': 3,
                                   'cache_hits': 3, 'cache_misses': 0}

    frame = aggregates.to_frame()
    assert frame.index.name == 'quantity'
    assert frame.loc['total_latency_ms', 'max'] == 300.0


def test_report_formatting():
    aggregates = BenchmarkAggregates(1, FAN_OUT_ITERATION_QUANTITIES)
    metrics = IterationMetrics(iteration=1, query_latency_ms=12.0, total_latency_ms=250.0,
                               total_bytes=2048, cache_hits=2, cache_misses=1,
                               successful_requests=3)
    aggregates.add_iteration(metrics)

    line = format_iteration(metrics)
    assert line.startswith("Iteration 1:")
    assert "total 250 ms" in line
    assert "cache 2 hits / 1 misses" in line

    table = format_report(aggregates.iterations, "Summary")
    lines = table.splitlines()
    assert lines[0] == "Summary"
    assert "p99" in lines[1]
    assert any(row.startswith("total_latency_ms") for row in lines[3:])


def test_prometheus_exporter_records_requests():
    exporter = PrometheusExporter(port=0)
    exporter.record_request(200, MetricSample(0.0, 100.0, 600.0, 4096))
    exporter.record_request(500)
    exporter.record_request(None)
    exporter.update_iteration(2)

    registry = exporter.registry
    assert registry.get_sample_value('dicomweb_benchmark_requests_total', {'status': '200'}) == 1
    assert registry.get_sample_value('dicomweb_benchmark_requests_total', {'status': '500'}) == 1
    assert registry.get_sample_value('dicomweb_benchmark_requests_total', {'status': 'error'}) == 1
    assert registry.get_sample_value('dicomweb_benchmark_bytes_read_total') == 4096
    assert registry.get_sample_value('dicomweb_benchmark_request_duration_seconds_sum') == pytest.approx(0.6)
    assert registry.get_sample_value('dicomweb_benchmark_iteration') == 2
