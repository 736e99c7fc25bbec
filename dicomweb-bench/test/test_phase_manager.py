"""
Tests for lifecycle state tracking.
"""

import sys
import os

import pytest

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from common import BenchmarkState, PhaseManager


def advance_to_running(manager, iteration=1):
    manager.transition(BenchmarkState.CONFIG_VALIDATED)
    manager.transition(BenchmarkState.AUTHORIZED)
    manager.transition(BenchmarkState.RUNNING, iteration)


def test_full_lifecycle():
    manager = PhaseManager()
    assert manager.state is BenchmarkState.CREATED

    advance_to_running(manager)
    manager.transition(BenchmarkState.RUNNING, 2)
    assert manager.iteration == 2
    manager.transition(BenchmarkState.AGGREGATED)
    manager.transition(BenchmarkState.REPORTED)

    assert manager.is_terminal()
    assert [state for state, _ in manager.history] == [
        BenchmarkState.CREATED,
        BenchmarkState.CONFIG_VALIDATED,
        BenchmarkState.AUTHORIZED,
        BenchmarkState.RUNNING,
        BenchmarkState.RUNNING,
        BenchmarkState.AGGREGATED,
        BenchmarkState.REPORTED,
    ]


def test_cannot_skip_authorization():
    manager = PhaseManager()
    manager.transition(BenchmarkState.CONFIG_VALIDATED)
    with pytest.raises(RuntimeError):
        manager.transition(BenchmarkState.RUNNING, 1)


def test_cannot_report_before_aggregating():
    manager = PhaseManager()
    advance_to_running(manager)
    with pytest.raises(RuntimeError):
        manager.transition(BenchmarkState.REPORTED)


def test_fail_from_running():
    manager = PhaseManager()
    advance_to_running(manager, 3)
    error = RuntimeError("connection reset")
    manager.fail(error)

    assert manager.state is BenchmarkState.FAILED
    assert manager.error is error
    assert manager.is_terminal()
    info = manager.get_phase_info()
    assert info['state'] == 'failed'
    assert info['iteration'] == 3
    assert info['error'] == 'connection reset'


def test_failed_is_terminal():
    manager = PhaseManager()
    manager.fail(RuntimeError("bad config"))
    with pytest.raises(RuntimeError):
        manager.transition(BenchmarkState.CONFIG_VALIDATED)


def test_failed_only_through_fail():
    manager = PhaseManager()
    with pytest.raises(RuntimeError):
        manager.transition(BenchmarkState.FAILED)
