"""
Error types raised by the benchmark.

Only RequestError is recoverable: it is captured per fan-out unit and the
batch continues. Every other error terminates the run.
"""

from typing import Optional


class BenchmarkError(Exception):
    """Base class for all benchmark errors."""


class ConfigurationError(BenchmarkError):
    """Invalid benchmark configuration (iterations, threads, identifiers)."""


class AuthorizationError(BenchmarkError):
    """Credentials could not be acquired or refreshed, or were rejected twice."""


class RequestError(BenchmarkError):
    """A single HTTP request failed or returned a malformed response."""

    def __init__(self, message: str, status: Optional[int] = None,
                 reason: str = "", url: str = ""):
        super().__init__(message)
        self.status = status
        self.reason = reason
        self.url = url

    @classmethod
    def from_status(cls, status: int, reason: str, url: str = "") -> "RequestError":
        return cls(f"HTTP {status} {reason}".rstrip() + (f" for {url}" if url else ""),
                   status=status, reason=reason, url=url)


class IterationError(BenchmarkError):
    """An iteration failed; wraps the underlying cause with the iteration number."""

    def __init__(self, iteration: int, cause: BaseException):
        super().__init__(f"Iteration {iteration} failed: {cause}")
        self.iteration = iteration
        self.__cause__ = cause


class BenchmarkIOError(BenchmarkError):
    """Benchmark results could not be written."""
