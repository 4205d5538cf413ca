"""
Red Hat VEX updater.

Fetches the compressed CSAF/VEX feed (one document per line) and folds it
into vulnerability records and advisory retractions with DeltaMerger.
"""
import logging
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, BinaryIO, Dict, List, Optional, Tuple

from vex.merge import DeltaMerger
from vex.models import Vulnerability
from .base_adapter import BaseUpdater, FetchResult
from .feed import iter_lines
from .http_client import HttpClient, RetryConfig

logger = logging.getLogger(__name__)

UPDATER_NAME = "rhel-vex"


class VexUpdater(BaseUpdater):
    """Updater for a Red Hat CSAF/VEX delta feed."""

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.source_id = UPDATER_NAME
        self.url = config.get("url")
        self.cache_path = Path(config.get("cache_path", "ingestion/cache/rhel_vex.jsonl.sz"))
        self.use_cache_only = bool(config.get("use_cache_only", False))
        self.compression = config.get("compression", "snappy")
        self.last_merge: Optional[DeltaMerger] = None

        self.client = HttpClient(
            source_id=self.source_id,
            retry_config=RetryConfig(
                max_retries=config.get("max_retries", 5),
                base_delay_seconds=config.get("retry_base_seconds", 1.0),
                max_delay_seconds=config.get("retry_max_seconds", 300.0),
                jitter_ratio=config.get("retry_jitter_ratio", 0.3),
                timeout_seconds=config.get("timeout_seconds", 60.0),
            ),
        )

    def fetch(self, fingerprint: str = "") -> Optional[FetchResult]:
        """Download the feed, or fall back to the cached archive."""
        self._last_fetch = datetime.utcnow()

        try:
            if self.use_cache_only or not self.url:
                result = self._fetch_cached(fingerprint)
            else:
                result = self._fetch_live(fingerprint)
            self._last_error = None
            return result

        except Exception as e:
            error_msg = f"{type(e).__name__}: {str(e)}"
            self._last_error = error_msg
            logger.error(f"VEX updater fetch failed: {error_msg}")
            logger.debug("Full traceback:\n%s", traceback.format_exc())
            return None

    def delta_parse(self, contents: BinaryIO) -> Tuple[List[Vulnerability], List[str]]:
        """
        Fold the feed into vulnerabilities and retracted advisory names.

        Raises:
            VexError: If any document is malformed; no partial result is returned
        """
        merger = DeltaMerger(self.name)
        self.last_merge = merger
        try:
            vulns, deleted = merger.merge(iter_lines(contents, self.compression))
        except Exception as e:
            self._last_error = f"{type(e).__name__}: {str(e)}"
            self._records_fetched = 0
            raise

        self._records_fetched = len(vulns)
        logger.info(
            "%s: %d documents, %d vulnerabilities, %d deleted advisories",
            self.name, merger.documents, len(vulns), len(deleted),
        )
        return vulns, deleted

    def _fetch_live(self, fingerprint: str) -> FetchResult:
        download = self.client.download_to_file(self.url, self.cache_path, etag=fingerprint)
        return FetchResult(
            path=self.cache_path,
            fingerprint=download.etag,
            changed=download.changed,
        )

    def _fetch_cached(self, fingerprint: str) -> FetchResult:
        if not self.cache_path.exists():
            raise FileNotFoundError(f"No cache at {self.cache_path} and no URL configured")

        stat = self.cache_path.stat()
        local = f"{int(stat.st_mtime)}-{stat.st_size}"
        return FetchResult(path=self.cache_path, fingerprint=local, changed=local != fingerprint)
