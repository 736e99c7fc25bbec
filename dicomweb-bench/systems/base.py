"""
Timed HTTP request profiler for the DICOMweb benchmark.
"""

import io
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

import requests
from requests.adapters import HTTPAdapter

from common.exceptions import AuthorizationError, RequestError
from configuration import (
    CONNECT_TIMEOUT_SECONDS,
    DEFAULT_MAX_THREADS,
    HTTP_NO_CONTENT,
    HTTP_SUCCESS_MAX,
    HTTP_SUCCESS_MIN,
    HTTP_UNAUTHORIZED,
    MILLIS_PER_SECOND,
    READ_CHUNK_SIZE,
    REQUEST_TIMEOUT_SECONDS,
)
from persistence.record import CacheStatus, MetricSample

logger = logging.getLogger(__name__)


def now_ms() -> float:
    """Monotonic clock in milliseconds."""
    return time.perf_counter() * MILLIS_PER_SECOND


@dataclass(frozen=True)
class RequestDescriptor:
    """A prepared GET request.

    retain_body marks requests whose body is parsed afterwards (index
    queries). Those go through HttpRequestProfiler.fetch(), which keeps the
    body; all other bodies are drained and discarded by execute().
    """

    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    retain_body: bool = False

    def __str__(self) -> str:
        return self.url


class _NullSink:
    """Write target that discards everything."""

    def write(self, data: bytes) -> int:
        return len(data)


def create_session(max_connections: int = None) -> requests.Session:
    """Session whose connection pool can serve every worker thread at once."""
    pool_size = max_connections or DEFAULT_MAX_THREADS
    session = requests.Session()
    adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    logger.debug(f"Configured HTTP connection pool: {pool_size} connections")
    return session


class HttpRequestProfiler:
    """Executes GET requests and measures send, first-byte and last-byte times.

    The profiler keeps no per-call state; one instance is shared by all
    worker threads of a run.
    """

    def __init__(self, session: requests.Session, auth_context, timeout: Tuple[float, float] = None,
                 exporter=None):
        """Initialize the profiler.

        Args:
            session: Shared HTTP session (connection pool)
            auth_context: AuthorizationContext supplying and refreshing the bearer token
            timeout: (connect, read) timeout in seconds (default: from configuration)
            exporter: Optional PrometheusExporter observing every completed request
        """
        self.session = session
        self.auth_context = auth_context
        self.timeout = timeout or (CONNECT_TIMEOUT_SECONDS, REQUEST_TIMEOUT_SECONDS)
        self.exporter = exporter

    def execute(self, descriptor: RequestDescriptor, sink=None) -> MetricSample:
        """Execute the request, streaming the body into sink (discarded when None).

        When the server answers 401 the token is refreshed once and the whole
        request is retried once.

        Raises:
            ValueError: The descriptor retains its body but no sink was given
            RequestError: Non-success status or transport failure
            AuthorizationError: Token refresh failed or the retry was rejected again
        """
        if sink is None and descriptor.retain_body:
            raise ValueError(f"Body of {descriptor.url} must be retained, use fetch()")

        try:
            return self._do_execute(descriptor, sink)
        except RequestError as e:
            if e.status != HTTP_UNAUTHORIZED:
                raise
            logger.info(f"Access token rejected for {descriptor.url}, refreshing and retrying")

        self.auth_context.refresh()
        try:
            return self._do_execute(descriptor, sink)
        except RequestError as e:
            if e.status == HTTP_UNAUTHORIZED:
                raise AuthorizationError(
                    f"Request rejected after token refresh: {descriptor.url}"
                ) from e
            raise

    def fetch(self, descriptor: RequestDescriptor) -> Tuple[MetricSample, bytes]:
        """Execute a request whose body is retained and return it with the sample."""
        if not descriptor.retain_body:
            raise ValueError(f"Body of {descriptor.url} is not retained, use execute()")
        buffer = io.BytesIO()
        sample = self.execute(descriptor, buffer)
        return sample, buffer.getvalue()

    def _do_execute(self, descriptor: RequestDescriptor, sink) -> MetricSample:
        headers = dict(descriptor.headers)
        headers.update(self.auth_context.headers())

        if sink is None:
            sink = _NullSink()

        send_time = now_ms()
        try:
            response = self.session.get(descriptor.url, headers=headers, stream=True,
                                        timeout=self.timeout)
        except requests.RequestException as e:
            self._observe(None, None)
            raise RequestError(f"Request to {descriptor.url} failed: {e}",
                               url=descriptor.url) from e

        with response:
            first_byte_time = now_ms()
            status = response.status_code
            if not HTTP_SUCCESS_MIN <= status < HTTP_SUCCESS_MAX:
                self._observe(status, None)
                raise RequestError.from_status(status, response.reason or "", descriptor.url)

            cache_status = CacheStatus.from_headers(response.headers)
            if status == HTTP_NO_CONTENT:
                sample = MetricSample.no_content(send_time, first_byte_time, cache_status)
                self._observe(status, sample)
                return sample

            bytes_read = 0
            try:
                for chunk in response.iter_content(chunk_size=READ_CHUNK_SIZE):
                    if chunk:
                        sink.write(chunk)
                        bytes_read += len(chunk)
            except requests.RequestException as e:
                self._observe(status, None)
                raise RequestError(f"Reading response from {descriptor.url} failed: {e}",
                                   status=status, url=descriptor.url) from e
            last_byte_time = now_ms()

        sample = MetricSample(send_time, first_byte_time, last_byte_time, bytes_read, cache_status)
        self._observe(status, sample)
        logger.debug(f"GET {descriptor.url}: {status}, {bytes_read} bytes, "
                     f"{sample.response_latency:.1f} ms to first byte, "
                     f"{sample.total_latency:.1f} ms total")
        return sample

    def _observe(self, status: Optional[int], sample: Optional[MetricSample]) -> None:
        if self.exporter is not None:
            self.exporter.record_request(status, sample)
