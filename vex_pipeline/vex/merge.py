"""
Fold a stream of VEX documents into vulnerabilities and retractions.

The feed carries successive snapshots: a later document for an advisory
replaces everything an earlier one produced. Documents marked "deleted" are
retracted outright, and an advisory whose final snapshot yields no records
is retracted as well, since it may have had records before.

Documents must be folded in stream order.
"""
import logging
from collections import Counter
from typing import Dict, Iterable, List, Tuple, Union

import csaf
from .creator import Creator, fixed_and_affected
from .models import Vulnerability

logger = logging.getLogger(__name__)

DELETED_STATUS = "deleted"


class DeltaMerger:
    """
    Accumulates per-advisory results across one update cycle.

    apply() is the ordered-replace step on its own; merge() parses and
    aggregates each document and feeds the result through apply().
    """

    def __init__(self, updater: str):
        self.updater = updater
        self._out: Dict[str, List[Vulnerability]] = {}
        self._deleted: List[str] = []
        self.documents = 0
        self.deleted_documents = 0
        self.skipped: Counter = Counter()

    def apply(self, name: str, vulns: List[Vulnerability]) -> None:
        """Replace whatever an earlier document produced for name."""
        self._out[name] = list(vulns)

    def mark_deleted(self, name: str) -> None:
        self._deleted.append(name)

    def add_document(self, doc: csaf.Document) -> None:
        """
        Aggregate one parsed document.

        Raises:
            CPEError, InvalidVectorError: On structural problems in the document
        """
        self.documents += 1
        name = doc.tracking_id
        if doc.tracking_status == DELETED_STATUS:
            self.deleted_documents += 1
            self.mark_deleted(name)
            return

        creator = Creator(name, doc.self_link(), doc)
        fixed, affected = fixed_and_affected(creator, doc.vulnerabilities, self.updater)
        self.skipped.update(creator.skipped)
        self.apply(name, fixed + affected)

    def merge(self, lines: Iterable[Union[bytes, str]]) -> Tuple[List[Vulnerability], List[str]]:
        """
        Parse and fold every document line, then return the result.

        Raises:
            DocumentParseError: If any line is not a valid document
        """
        for line in lines:
            if not line.strip():
                continue
            self.add_document(csaf.parse(line))
        return self.result()

    def result(self) -> Tuple[List[Vulnerability], List[str]]:
        """Return (vulnerabilities, deleted names) for everything folded so far."""
        deleted = list(self._deleted)
        vulns: List[Vulnerability] = []
        for name, vs in self._out.items():
            if not vs:
                deleted.append(name)
                continue
            vulns.extend(vs)

        logger.debug(
            "merged %d documents: %d vulnerabilities, %d deleted",
            self.documents, len(vulns), len(deleted),
        )
        return vulns, deleted
