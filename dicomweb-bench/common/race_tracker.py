"""
Lock-free style trackers for the first response and first completed item of a batch.
"""

import logging
import threading
from typing import Callable, Generic, Optional, TypeVar

from persistence.record import MetricSample

logger = logging.getLogger(__name__)

T = TypeVar('T')


class AtomicReference(Generic[T]):
    """Reference cell with compare-and-set semantics.

    The private lock only makes the identity check and the store a single
    step; it is never held while comparing keys or doing any other work.
    """

    def __init__(self, value: Optional[T] = None):
        self._value = value
        self._swap_lock = threading.Lock()

    def get(self) -> Optional[T]:
        return self._value

    def compare_and_set(self, expected: Optional[T], new: T) -> bool:
        """Store new if the current value is still expected (by identity)."""
        with self._swap_lock:
            if self._value is not expected:
                return False
            self._value = new
            return True


class RaceTracker:
    """Holds the sample with the smallest key offered so far.

    offer() is safe to call from many worker threads at once. A candidate
    replaces the holder only if the holder is empty or the candidate key is
    strictly smaller; on equal keys the earlier holder is kept.
    """

    def __init__(self, name: str, key: Callable[[MetricSample], float]):
        self.name = name
        self._key = key
        self._best: AtomicReference[MetricSample] = AtomicReference()

    def offer(self, sample: MetricSample) -> bool:
        """Offer a candidate; returns True if it became the new best."""
        candidate_key = self._key(sample)
        while True:
            current = self._best.get()
            if current is not None and candidate_key >= self._key(current):
                return False
            if self._best.compare_and_set(current, sample):
                return True
            # Another worker won the swap, re-read and compare again

    @property
    def best(self) -> Optional[MetricSample]:
        return self._best.get()

    def __repr__(self) -> str:
        return f"RaceTracker(name='{self.name}', best={self.best})"


class FirstArrivalTrackers:
    """First-response and first-item trackers for one fan-out batch."""

    def __init__(self):
        self.first_response = RaceTracker("first_response", lambda s: s.first_byte_time)
        self.first_item = RaceTracker("first_item", lambda s: s.last_byte_time)

    def offer(self, sample: MetricSample) -> None:
        self.first_response.offer(sample)
        self.first_item.offer(sample)
