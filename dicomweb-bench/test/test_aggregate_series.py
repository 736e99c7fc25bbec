"""
Tests for AggregateSeries statistics.
"""

import sys
import os
import math

import numpy as np
import pytest

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from common.aggregate_series import AggregateSeries, percentile_key


def make_series(values, capacity=4):
    series = AggregateSeries("latency", capacity)
    series.extend(values)
    return series


def test_median_of_odd_count():
    assert make_series([10, 20, 30]).percentile(50) == 20.0


def test_median_interpolates_between_neighbours():
    assert make_series([10, 20]).percentile(50) == 15.0


def test_percentile_is_order_independent():
    series = make_series([30, 10, 20, 40])
    # R-7: position (4 - 1) * 0.9 = 2.7 between 30 and 40
    assert series.percentile(90) == pytest.approx(37.0)
    assert series.percentile(0) == 10.0
    assert series.percentile(100) == 40.0


def test_percentile_matches_numpy_linear_method():
    values = [3.5, 1.0, 9.25, 4.0, 7.0, 2.5, 11.0]
    series = make_series(values)
    for p in (1, 2, 5, 10, 50, 90, 95, 98, 99):
        assert series.percentile(p) == pytest.approx(np.percentile(values, p))


def test_mean_and_population_stddev():
    series = make_series([2, 4, 4, 4, 5, 5, 7, 9])
    assert series.mean() == 5.0
    assert series.stddev() == 2.0


def test_empty_series_reports_zeros():
    series = AggregateSeries("empty")
    assert series.count == 0
    assert series.min() == 0.0
    assert series.max() == 0.0
    assert series.mean() == 0.0
    assert series.stddev() == 0.0
    assert series.percentile(99) == 0.0
    assert all(value == 0.0 for value in series.summary().values())


def test_single_value_is_every_percentile():
    series = make_series([42.0])
    for p in (0, 1, 50, 99, 100):
        assert series.percentile(p) == 42.0
    assert series.stddev() == 0.0


def test_percentile_out_of_range():
    series = make_series([1, 2, 3])
    with pytest.raises(ValueError):
        series.percentile(-1)
    with pytest.raises(ValueError):
        series.percentile(100.5)


def test_buffer_grows_past_capacity():
    series = AggregateSeries("growing", capacity=2)
    series.extend(range(10))
    assert series.count == 10
    assert series.capacity >= 10
    assert list(series.values) == [float(v) for v in range(10)]


def test_add_value_invalidates_cached_statistics():
    series = make_series([1, 2, 3])
    assert series.mean() == 2.0
    assert series.percentile(100) == 3.0

    series.add_value(10)
    assert series.mean() == 4.0
    assert series.percentile(100) == 10.0


def test_values_is_a_copy():
    series = make_series([1, 2])
    values = series.values
    values[0] = 100
    assert series.min() == 1.0


def test_summary_keys():
    summary = make_series([1, 2, 3]).summary()
    assert list(summary)[:4] == ['min', 'max', 'mean', 'stddev']
    assert percentile_key(50) in summary
    assert percentile_key(99) in summary
    assert percentile_key(50.0) == 'p50'
    assert percentile_key(99.9) == 'p99.9'
    assert not any(math.isnan(v) for v in summary.values())


def test_reserve_presizes_without_changing_values():
    series = make_series([1, 2], capacity=2)
    series.reserve(50)
    assert series.capacity == 50
    assert list(series.values) == [1.0, 2.0]

    series.reserve(10)
    assert series.capacity == 50
