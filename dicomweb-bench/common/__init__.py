"""
Common utilities for the DICOMweb benchmark.
"""

from .phase_manager import BenchmarkState, PhaseManager
from .worker_pool import BatchResult, TaskResult, WorkerPool

__all__ = ['BenchmarkState', 'PhaseManager', 'BatchResult', 'TaskResult', 'WorkerPool']
