"""
Basic data structures for the DICOMweb benchmark.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from configuration import CACHE_STATUS_HEADERS, MILLIS_PER_SECOND


class CacheStatus(Enum):
    """Cache status reported by X-Cache-Status or X-Cache response headers."""

    UNKNOWN = "unknown"
    HIT = "hit"
    MISS = "miss"

    @classmethod
    def from_headers(cls, headers: Optional[Mapping[str, str]]) -> "CacheStatus":
        """Derive the cache status from response headers.

        X-Cache-Status must equal HIT or MISS; X-Cache only has to contain
        one of them (e.g. "Hit from cloudfront").
        """
        if not headers:
            return cls.UNKNOWN

        exact_header, fuzzy_header = CACHE_STATUS_HEADERS

        value = headers.get(exact_header)
        if value:
            value = value.strip().upper()
            if value == "HIT":
                return cls.HIT
            if value == "MISS":
                return cls.MISS

        value = headers.get(fuzzy_header)
        if value:
            value = value.upper()
            if "HIT" in value:
                return cls.HIT
            if "MISS" in value:
                return cls.MISS

        return cls.UNKNOWN


@dataclass(frozen=True)
class MetricSample:
    """Timing of one completed HTTP request.

    All timestamps are monotonic milliseconds. The latencies and the
    transfer rate are derived from them and never stored.
    """

    send_time: float
    first_byte_time: float
    last_byte_time: float
    bytes_read: int = 0
    cache_status: CacheStatus = CacheStatus.UNKNOWN

    def __post_init__(self):
        if not self.send_time <= self.first_byte_time <= self.last_byte_time:
            raise ValueError(
                f"Timestamps out of order: send={self.send_time}, "
                f"first_byte={self.first_byte_time}, last_byte={self.last_byte_time}"
            )
        if self.bytes_read < 0:
            raise ValueError(f"bytes_read must be non-negative, got {self.bytes_read}")

    @classmethod
    def no_content(cls, send_time: float, first_byte_time: float,
                   cache_status: CacheStatus = CacheStatus.UNKNOWN) -> "MetricSample":
        """Sample for a response without a body."""
        return cls(send_time, first_byte_time, first_byte_time, 0, cache_status)

    @property
    def response_latency(self) -> float:
        """Time to first byte in milliseconds."""
        return self.first_byte_time - self.send_time

    @property
    def read_latency(self) -> float:
        """Time to drain the body in milliseconds."""
        return self.last_byte_time - self.first_byte_time

    @property
    def total_latency(self) -> float:
        return self.last_byte_time - self.send_time

    @property
    def transfer_rate(self) -> float:
        """Bytes per second while reading the body."""
        if self.read_latency <= 0:
            return 0.0
        return self.bytes_read / self.read_latency * MILLIS_PER_SECOND

    def to_row(self, iteration: int) -> Dict[str, Any]:
        """Per-request record for persistence."""
        return {
            'iteration': iteration,
            'response_latency_ms': self.response_latency,
            'read_latency_ms': self.read_latency,
            'total_latency_ms': self.total_latency,
            'bytes_read': self.bytes_read,
            'transfer_rate_bps': self.transfer_rate,
            'cache_status': self.cache_status.value,
        }
