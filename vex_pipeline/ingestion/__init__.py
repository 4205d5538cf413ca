"""
Ingestion layer for the VEX advisory pipeline.

Provides the feed fetch collaborator and the Red Hat VEX updater:
- HttpClient: retries, circuit breaking, ETag-conditional downloads
- iter_lines: snappy-framed newline-delimited document reader
- VexUpdater: fetch + delta_parse into vulnerabilities and retractions
"""
from .base_adapter import BaseUpdater, FetchResult, SourceHealth
from .feed import iter_lines
from .http_client import CircuitOpenError, DownloadResult, HttpClient, RetryConfig
from .vex_adapter import VexUpdater

__all__ = [
    "BaseUpdater",
    "FetchResult",
    "SourceHealth",
    "iter_lines",
    "CircuitOpenError",
    "DownloadResult",
    "HttpClient",
    "RetryConfig",
    "VexUpdater",
]
