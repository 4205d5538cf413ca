"""
Apply parsed VEX deltas to the vulnerabilities table.

A delta is the (vulnerabilities, deleted) pair produced by an updater.
Every advisory name present in the delta has its stored rows replaced;
retracted names have their rows removed and are logged in
deleted_advisories.

Design decisions:
- DELETE + INSERT per advisory name, inside one transaction
- Re-applying the same delta leaves the table unchanged
- JSON serialization for package and repository objects
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from vex.models import Vulnerability
from .database import Database

logger = logging.getLogger(__name__)


class VulnerabilityStore:
    """
    Persists vulnerability records produced by updaters.

    Provides:
    1. apply_delta: Replace records per advisory and apply retractions
    2. get_fingerprint / set_fingerprint: Feed version bookkeeping
    3. record_run: Pipeline run metadata
    """

    def __init__(self, database: Database):
        """
        Initialize store with database connection.

        Args:
            database: Database instance to write to
        """
        self.db = database

    def apply_delta(
        self,
        updater: str,
        vulns: List[Vulnerability],
        deleted: List[str],
        run_id: str,
    ) -> Dict[str, int]:
        """
        Apply one updater's delta.

        Args:
            updater: Updater name the records belong to
            vulns: Records to store, grouped by advisory name
            deleted: Advisory names to retract
            run_id: Pipeline run identifier

        Returns:
            Counts of inserted rows, replaced advisories and retracted advisories
        """
        conn = self.db.connect()
        names = sorted({v.name for v in vulns})

        conn.execute("BEGIN TRANSACTION")
        try:
            for name in names:
                conn.execute(
                    "DELETE FROM vulnerabilities WHERE updater = ? AND name = ?",
                    [updater, name],
                )

            for name in deleted:
                conn.execute(
                    "DELETE FROM vulnerabilities WHERE updater = ? AND name = ?",
                    [updater, name],
                )
                conn.execute(
                    "DELETE FROM deleted_advisories WHERE updater = ? AND name = ? AND run_id = ?",
                    [updater, name, run_id],
                )
                conn.execute(
                    "INSERT INTO deleted_advisories (updater, name, run_id) VALUES (?, ?, ?)",
                    [updater, name, run_id],
                )

            for vuln in vulns:
                conn.execute("""
                    INSERT INTO vulnerabilities
                    (updater, name, description, issued, links, severity,
                     normalized_severity, package_name, package_kind, package_module,
                     package_arch, arch_operation, repo_name, repo_key,
                     fixed_in_version, package, repo, run_id)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, self._row(updater, vuln, run_id))

            conn.execute("COMMIT")
        except Exception:
            conn.execute("ROLLBACK")
            raise

        logger.info(
            "Stored %d records for %d advisories, retracted %d",
            len(vulns), len(names), len(deleted),
        )
        return {"inserted": len(vulns), "replaced": len(names), "retracted": len(deleted)}

    def get_fingerprint(self, updater: str) -> str:
        conn = self.db.connect()
        row = conn.execute(
            "SELECT fingerprint FROM feed_state WHERE updater = ?", [updater]
        ).fetchone()
        return row[0] if row and row[0] else ""

    def set_fingerprint(self, updater: str, fingerprint: str) -> None:
        conn = self.db.connect()
        conn.execute("DELETE FROM feed_state WHERE updater = ?", [updater])
        conn.execute(
            "INSERT INTO feed_state (updater, fingerprint, updated_at) VALUES (?, ?, ?)",
            [updater, fingerprint, datetime.utcnow()],
        )

    def record_run(
        self,
        run_id: str,
        started_at: datetime,
        completed_at: Optional[datetime],
        status: str,
        metadata: Dict[str, Any],
    ) -> None:
        """Insert or replace the pipeline_runs row for run_id."""
        conn = self.db.connect()
        conn.execute("DELETE FROM pipeline_runs WHERE run_id = ?", [run_id])
        conn.execute("""
            INSERT INTO pipeline_runs
            (run_id, started_at, completed_at, status, vulnerabilities, deleted, errors, metadata)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, [
            run_id,
            started_at,
            completed_at,
            status,
            metadata.get("vulnerabilities_emitted", 0),
            metadata.get("advisories_retracted", 0),
            metadata.get("errors", 0),
            json.dumps(metadata, default=str),
        ])

    def count_vulnerabilities(self, updater: Optional[str] = None) -> int:
        conn = self.db.connect()
        if updater:
            return conn.execute(
                "SELECT count(*) FROM vulnerabilities WHERE updater = ?", [updater]
            ).fetchone()[0]
        return conn.execute("SELECT count(*) FROM vulnerabilities").fetchone()[0]

    @staticmethod
    def _row(updater: str, vuln: Vulnerability, run_id: str) -> List[Any]:
        pkg = vuln.package
        repo = vuln.repo
        return [
            updater,
            vuln.name,
            vuln.description,
            _naive_utc(vuln.issued),
            vuln.links,
            vuln.severity,
            vuln.normalized_severity.value,
            pkg.name if pkg else None,
            pkg.kind.value if pkg else None,
            pkg.module if pkg else None,
            pkg.arch if pkg else None,
            vuln.arch_operation.value,
            repo.name if repo else None,
            repo.key if repo else None,
            vuln.fixed_in_version,
            json.dumps(pkg.to_dict()) if pkg else None,
            json.dumps(repo.to_dict()) if repo else None,
            run_id,
        ]


def _naive_utc(ts: Optional[datetime]) -> Optional[datetime]:
    # The issued column is a plain TIMESTAMP holding UTC.
    if ts is None or ts.tzinfo is None:
        return ts
    return ts.astimezone(timezone.utc).replace(tzinfo=None)
