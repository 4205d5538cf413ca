"""
Metrics collection for pipeline runs.

RunMetrics tracks what a single update cycle did:
- Documents read and documents carrying a "deleted" tombstone
- Vulnerability records emitted and advisories retracted
- Product entries skipped, by reason (unrelated, kernel, missing_cpe, ...)
- Updater health and errors

Serializable with to_dict() for storage in the pipeline_runs table.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Any, Mapping, Optional
from collections import defaultdict


@dataclass
class RunMetrics:
    """Metrics for a single pipeline run."""
    run_id: str
    started_at: datetime
    completed_at: Optional[datetime] = None

    # Core counts
    documents_read: int = 0
    documents_deleted: int = 0
    vulnerabilities_emitted: int = 0
    advisories_retracted: int = 0
    feed_unchanged: bool = False
    errors: int = 0

    # Key: skip reason, Value: count
    skipped: Dict[str, int] = field(default_factory=lambda: defaultdict(int))

    # Severity distribution of emitted records
    severity_counts: Dict[str, int] = field(default_factory=dict)

    # Key: updater name, Value: dict with health status
    source_health: Dict[str, Dict] = field(default_factory=dict)

    quality_issues: List[Dict] = field(default_factory=list)

    def record_skips(self, counts: Mapping[str, int]):
        """Add per-reason skip counts from a merge."""
        for reason, count in counts.items():
            self.skipped[reason] += count

    def record_error(self, error: str, context: Dict = None):
        """
        Record an error encountered during the run.

        Args:
            error: Error message
            context: Optional dict with additional context (e.g., updater)
        """
        self.errors += 1
        self.quality_issues.append({
            "type": "error",
            "message": error,
            "context": context or {}
        })

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "documents_read": self.documents_read,
            "documents_deleted": self.documents_deleted,
            "vulnerabilities_emitted": self.vulnerabilities_emitted,
            "advisories_retracted": self.advisories_retracted,
            "feed_unchanged": self.feed_unchanged,
            "errors": self.errors,
            "skipped": dict(self.skipped),
            "severity_counts": self.severity_counts,
            "source_health": self.source_health,
            "quality_issues": self.quality_issues
        }
