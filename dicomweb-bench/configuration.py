"""
Configuration constants for the DICOMweb benchmark.

This module contains all configuration parameters including:
- API endpoint and OAuth scopes
- Benchmark defaults (iterations, worker threads)
- Request parameters (timeouts, streaming chunk size, headers)
- Reporting parameters (percentiles)
"""

import os
from typing import Tuple

# =============================================================================
# API CONFIGURATION
# =============================================================================

# Root URL of the Cloud Healthcare API
API_ROOT_URL: str = os.getenv("DICOMWEB_API_ROOT", "https://healthcare.googleapis.com/v1")

# Pre-issued bearer token (skips Application Default Credentials when set)
ACCESS_TOKEN: str = os.getenv("DICOMWEB_ACCESS_TOKEN", "")

# OAuth 2.0 scopes requested from Application Default Credentials
AUTH_SCOPES: Tuple[str, ...] = (
    "https://www.googleapis.com/auth/cloud-healthcare",
    "https://www.googleapis.com/auth/cloudplatformprojects.readonly",
)

# =============================================================================
# BENCHMARK DEFAULTS
# =============================================================================

DEFAULT_ITERATIONS: int = 1  # How many times the routine is executed
DEFAULT_MAX_THREADS: int = 10  # Maximum number of requests in flight

# =============================================================================
# REQUEST PARAMETERS
# =============================================================================

CONNECT_TIMEOUT_SECONDS: float = 10.0
REQUEST_TIMEOUT_SECONDS: float = 300.0  # Read timeout, whole studies can be large
READ_CHUNK_SIZE: int = 64 * 1024  # Body is drained in chunks of this size

# Accept header for WADO retrieval of studies and instances
RETRIEVE_ACCEPT_HEADER: str = "multipart/related; type=application/dicom; transfer-syntax=*"
QUERY_ACCEPT_HEADER: str = "application/dicom+json"

# Response headers inspected for the cache status, in order of precedence
CACHE_STATUS_HEADERS: Tuple[str, ...] = ("X-Cache-Status", "X-Cache")

# =============================================================================
# HTTP STATUS CODES
# =============================================================================

HTTP_SUCCESS_MIN: int = 200
HTTP_SUCCESS_MAX: int = 300  # Exclusive
HTTP_NO_CONTENT: int = 204
HTTP_UNAUTHORIZED: int = 401

# =============================================================================
# REPORTING
# =============================================================================

# Median first, then the tails, matching the order of the final report
REPORT_PERCENTILES: Tuple[float, ...] = (50.0, 1.0, 2.0, 5.0, 10.0, 90.0, 95.0, 98.0, 99.0)

PROGRESS_INTERVAL: int = 50  # Log progress every N completed requests

# =============================================================================
# OBSERVABILITY
# =============================================================================

DEFAULT_METRICS_PORT: int = 0  # 0 disables the Prometheus exporter

# =============================================================================
# CONVERSION CONSTANTS
# =============================================================================

MILLIS_PER_SECOND: float = 1000.0
BYTES_PER_MB: int = 1024 * 1024
