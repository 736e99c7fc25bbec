"""
Tests for the bounded WorkerPool.
"""

import unittest
import sys
import os
import threading
import time

# Add the parent directory to Python path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from common import TaskResult, WorkerPool
from common.exceptions import ConfigurationError, RequestError


class TestWorkerPool(unittest.TestCase):

    def test_failing_unit_does_not_cancel_siblings(self):
        def unit(i):
            def run():
                if i == 3:
                    raise RequestError("HTTP 500", status=500)
                return i * 10
            return run

        with WorkerPool(2) as pool:
            results = pool.run_batch([unit(i) for i in range(5)])

        self.assertEqual(len(results), 5)
        self.assertEqual(results.successes(), [0, 10, 20, 40])
        failures = results.failures()
        self.assertEqual(len(failures), 1)
        self.assertEqual(failures[0].index, 3)
        self.assertIsInstance(failures[0].error, RequestError)
        self.assertEqual(pool.failed_units, 1)
        self.assertEqual(pool.completed_units, 5)

    def test_results_in_submission_order(self):
        def unit(i):
            def run():
                time.sleep(0.01 * (5 - i))
                return i
            return run

        with WorkerPool(5) as pool:
            results = pool.run_batch([unit(i) for i in range(5)])

        self.assertEqual([r.index for r in results], list(range(5)))
        self.assertEqual(results.successes(), list(range(5)))

    def test_concurrency_never_exceeds_limit(self):
        lock = threading.Lock()
        active = [0]
        peak = [0]

        def run():
            with lock:
                active[0] += 1
                peak[0] = max(peak[0], active[0])
            time.sleep(0.01)
            with lock:
                active[0] -= 1

        with WorkerPool(3) as pool:
            pool.run_batch([run] * 20)

        self.assertLessEqual(peak[0], 3)
        self.assertGreaterEqual(peak[0], 1)

    def test_on_complete_called_once_per_unit(self):
        seen = []
        lock = threading.Lock()

        def on_complete(result: TaskResult):
            with lock:
                seen.append(result)

        def boom():
            raise ValueError("boom")

        with WorkerPool(4) as pool:
            pool.run_batch([lambda: 1, boom, lambda: 3], on_complete=on_complete)

        self.assertEqual(sorted(r.index for r in seen), [0, 1, 2])
        self.assertEqual(sum(1 for r in seen if not r.ok), 1)

    def test_failing_callback_does_not_fail_unit(self):
        def on_complete(result):
            raise RuntimeError("callback broke")

        with WorkerPool(1) as pool:
            results = pool.run_batch([lambda: 7], on_complete=on_complete)

        self.assertEqual(results.successes(), [7])

    def test_empty_batch(self):
        with WorkerPool(2) as pool:
            results = pool.run_batch([])
        self.assertEqual(len(results), 0)
        self.assertEqual(results.failures(), [])

    def test_pool_reusable_across_batches(self):
        with WorkerPool(2) as pool:
            first = pool.run_batch([lambda: 1, lambda: 2])
            second = pool.run_batch([lambda: 3])
        self.assertEqual(first.successes(), [1, 2])
        self.assertEqual(second.successes(), [3])

    def test_invalid_limit(self):
        with self.assertRaises(ConfigurationError):
            WorkerPool(0)


if __name__ == '__main__':
    unittest.main()
