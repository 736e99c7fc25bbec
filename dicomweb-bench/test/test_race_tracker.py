"""
Tests for the first-arrival race trackers.
"""

import unittest
import sys
import os
import random
import threading

# Add the parent directory to Python path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from common.race_tracker import AtomicReference, FirstArrivalTrackers, RaceTracker
from persistence.record import MetricSample


def sample(first_byte: float, last_byte: float) -> MetricSample:
    return MetricSample(0.0, first_byte, last_byte, bytes_read=10)


class TestAtomicReference(unittest.TestCase):

    def test_compare_and_set_by_identity(self):
        first = sample(1, 2)
        ref = AtomicReference()
        self.assertTrue(ref.compare_and_set(None, first))
        self.assertIs(ref.get(), first)

        # Equal but not identical value does not match
        self.assertFalse(ref.compare_and_set(sample(1, 2), sample(5, 6)))
        self.assertIs(ref.get(), first)


class TestRaceTracker(unittest.TestCase):

    def test_empty_tracker(self):
        tracker = RaceTracker("first_response", lambda s: s.first_byte_time)
        self.assertIsNone(tracker.best)

    def test_smallest_key_wins(self):
        tracker = RaceTracker("first_response", lambda s: s.first_byte_time)
        for first_byte in (50, 30, 70):
            tracker.offer(sample(first_byte, 100))
        self.assertEqual(tracker.best.first_byte_time, 30)

    def test_tie_keeps_earlier_holder(self):
        tracker = RaceTracker("first_response", lambda s: s.first_byte_time)
        holder = sample(30, 40)
        self.assertTrue(tracker.offer(holder))
        self.assertFalse(tracker.offer(sample(30, 35)))
        self.assertIs(tracker.best, holder)

    def test_concurrent_offers_keep_minimum(self):
        tracker = RaceTracker("first_item", lambda s: s.last_byte_time)
        last_bytes = list(range(1, 2001))
        random.shuffle(last_bytes)
        chunks = [last_bytes[i::8] for i in range(8)]
        barrier = threading.Barrier(len(chunks))

        def worker(values):
            barrier.wait()
            for value in values:
                tracker.offer(sample(0.5, value))

        threads = [threading.Thread(target=worker, args=(chunk,)) for chunk in chunks]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(tracker.best.last_byte_time, 1)


class TestFirstArrivalTrackers(unittest.TestCase):

    def test_tracks_first_response_and_first_item_independently(self):
        trackers = FirstArrivalTrackers()
        slow_start_fast_finish = sample(40, 45)
        fast_start_slow_finish = sample(10, 90)
        trackers.offer(slow_start_fast_finish)
        trackers.offer(fast_start_slow_finish)

        self.assertIs(trackers.first_response.best, fast_start_slow_finish)
        self.assertIs(trackers.first_item.best, slow_start_fast_finish)


if __name__ == '__main__':
    unittest.main()
