"""
Base updater interface for advisory feeds.

An updater fetches a feed archive and parses it into normalized
vulnerability records plus the names of advisories to retract.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, BinaryIO, Dict, List, Optional, Tuple

from vex.models import Vulnerability


@dataclass
class FetchResult:
    """
    A fetched feed archive.

    fingerprint identifies the archive version (an ETag); changed is False
    when it matches the fingerprint passed to fetch().
    """
    path: Path
    fingerprint: str
    changed: bool


@dataclass
class SourceHealth:
    """Health status of an updater."""
    source_id: str
    is_healthy: bool
    last_fetch: Optional[datetime]
    records_fetched: int
    error_message: Optional[str] = None


class BaseUpdater(ABC):
    """
    Abstract base class for feed updaters.

    Subclasses implement fetch() and delta_parse(); health tracking is shared.
    """

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.source_id: str = ""
        self._last_fetch: Optional[datetime] = None
        self._last_error: Optional[str] = None
        self._records_fetched: int = 0

    @property
    def name(self) -> str:
        return self.source_id

    @abstractmethod
    def fetch(self, fingerprint: str = "") -> Optional[FetchResult]:
        """
        Retrieve the feed archive.

        Args:
            fingerprint: Fingerprint of the previously processed archive

        Returns:
            FetchResult, or None if the feed could not be retrieved
        """
        pass

    @abstractmethod
    def delta_parse(self, contents: BinaryIO) -> Tuple[List[Vulnerability], List[str]]:
        """
        Parse a feed archive.

        Returns:
            (vulnerabilities, names of advisories to retract)
        """
        pass

    def get_health(self) -> SourceHealth:
        """Return health status of this updater."""
        return SourceHealth(
            source_id=self.source_id,
            is_healthy=self._last_error is None,
            last_fetch=self._last_fetch,
            records_fetched=self._records_fetched,
            error_message=self._last_error
        )
