"""
HTTP download of feed archives.

The VEX archive is large and changes a few times a day, so downloads are
conditional on the ETag of the copy already on disk. Transient failures
(connection errors, 429 and 5xx) are retried with exponential backoff; a
circuit breaker stops hammering a feed that keeps failing across runs of a
long-lived process.
"""
import logging
import random
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import Dict, Optional

import requests

logger = logging.getLogger(__name__)

TRANSIENT_STATUS = frozenset({429, 500, 502, 503, 504})
CHUNK_SIZE = 1 << 20


class CircuitOpenError(RuntimeError):
    """Raised instead of a request while the breaker is open."""


@dataclass
class RetryConfig:
    max_retries: int = 5
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 300.0
    jitter_ratio: float = 0.3
    timeout_seconds: float = 60.0

    def delay(self, attempt: int, retry_after: Optional[float] = None) -> float:
        """Backoff before retry number attempt (0-based), honoring Retry-After."""
        backoff = min(self.max_delay_seconds, self.base_delay_seconds * 2 ** attempt)
        backoff += backoff * random.uniform(0, self.jitter_ratio)
        if retry_after is not None and retry_after > backoff:
            return retry_after
        return backoff


@dataclass
class DownloadResult:
    """Outcome of a conditional download."""
    changed: bool
    etag: str = ""
    path: Optional[Path] = None


class CircuitBreaker:
    """
    Consecutive-failure breaker.

    After failure_threshold failed requests the breaker opens for
    open_seconds; then a single probe is let through, and its outcome
    closes or re-opens the breaker.
    """

    CLOSED = "closed"
    OPEN = "open"
    PROBING = "probing"

    def __init__(self, failure_threshold: int = 5, open_seconds: int = 900):
        self.failure_threshold = failure_threshold
        self.open_seconds = open_seconds
        self.state = self.CLOSED
        self._failures = 0
        self._open_until = 0.0

    def can_attempt(self) -> bool:
        if self.state == self.CLOSED:
            return True
        if self.state == self.OPEN and time.monotonic() >= self._open_until:
            self.state = self.PROBING
            return True
        return False

    def record_success(self) -> None:
        self.state = self.CLOSED
        self._failures = 0

    def record_failure(self) -> None:
        self._failures += 1
        if self.state == self.PROBING or self._failures >= self.failure_threshold:
            self.state = self.OPEN
            self._open_until = time.monotonic() + self.open_seconds


class HttpClient:
    """Fetches feed archives for one updater."""

    def __init__(
        self,
        source_id: str,
        retry_config: Optional[RetryConfig] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        session: Optional[requests.Session] = None,
    ):
        self.source_id = source_id
        self.retry_config = retry_config or RetryConfig()
        self.circuit_breaker = circuit_breaker or CircuitBreaker()
        self.session = session or requests.Session()

    def download_to_file(
        self,
        url: str,
        destination: Path,
        etag: str = "",
        headers: Optional[Dict[str, str]] = None,
    ) -> DownloadResult:
        """
        Download url to destination unless the server reports it unchanged.

        Args:
            url: Archive location
            destination: File to write; replaced only once the body is complete
            etag: ETag of the copy already at destination, sent as If-None-Match

        Returns:
            DownloadResult; changed is False on 304 Not Modified
        """
        request_headers = dict(headers or {})
        if etag and destination.exists():
            request_headers["If-None-Match"] = etag

        response = self._get(url, request_headers)
        if response.status_code == 304:
            logger.info("%s feed unchanged (etag %s)", self.source_id, etag)
            response.close()
            return DownloadResult(changed=False, etag=etag, path=destination)

        destination.parent.mkdir(parents=True, exist_ok=True)
        partial = destination.with_name(destination.name + ".part")
        written = 0
        try:
            with open(partial, "wb") as out:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    out.write(chunk)
                    written += len(chunk)
            partial.replace(destination)
        finally:
            response.close()
            if partial.exists():
                partial.unlink()

        new_etag = response.headers.get("ETag", "")
        logger.info("%s feed downloaded: %d bytes (etag %s)", self.source_id, written, new_etag or "none")
        return DownloadResult(changed=True, etag=new_etag, path=destination)

    def _get(self, url: str, headers: Dict[str, str]) -> requests.Response:
        """
        GET with retries.

        Raises:
            CircuitOpenError: The breaker refused the request
            requests.RequestException: Retries exhausted or a non-transient error
        """
        if not self.circuit_breaker.can_attempt():
            raise CircuitOpenError(f"{self.source_id} circuit open")

        attempt = 0
        while True:
            last = attempt >= self.retry_config.max_retries
            try:
                response = self.session.request(
                    "GET",
                    url,
                    headers=headers,
                    timeout=self.retry_config.timeout_seconds,
                    stream=True,
                )
            except requests.RequestException as e:
                if last:
                    self.circuit_breaker.record_failure()
                    raise
                logger.warning("%s request failed (%s), retrying", self.source_id, e)
                time.sleep(self.retry_config.delay(attempt))
                attempt += 1
                continue

            if response.status_code in TRANSIENT_STATUS and not last:
                logger.warning("%s got HTTP %d, retrying", self.source_id, response.status_code)
                delay = self.retry_config.delay(attempt, retry_after_seconds(response))
                response.close()
                time.sleep(delay)
                attempt += 1
                continue

            if response.status_code >= 400:
                self.circuit_breaker.record_failure()
                response.close()
                response.raise_for_status()

            self.circuit_breaker.record_success()
            return response


def retry_after_seconds(response: requests.Response) -> Optional[float]:
    """Parse a Retry-After header given as seconds or an HTTP date."""
    value = response.headers.get("Retry-After")
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        logger.debug("Unable to parse Retry-After header: %s", value)
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())
