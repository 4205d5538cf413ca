"""
Data quality checks for stored vulnerability records.

Checks implemented:
- Fixed has version: BINARY records must carry a fixed-in version
- Repository present: every record names a repository
- Advisory name format: names look like CVE-YYYY-NNNN or RHSA-YYYY:NNNN
- Unique fixed keys: no two fixed records share repo/module/package/version

Each check is a SQL query against the vulnerabilities table and returns a
QualityCheckResult.
"""
from typing import List, Dict, Any
from dataclasses import dataclass


@dataclass
class QualityCheckResult:
    """
    Result of a single quality check.

    Attributes:
        check_name: Unique identifier for the check
        passed: True if check passed, False otherwise
        message: Human-readable summary of the result
        details: Optional dict with additional context (e.g., counts)
    """
    check_name: str
    passed: bool
    message: str
    details: Dict[str, Any] = None


class QualityChecker:
    """Runs data quality checks against the vulnerabilities table."""

    def __init__(self, database):
        self.db = database

    def run_all_checks(self) -> List[QualityCheckResult]:
        return [
            self.check_fixed_has_version(),
            self.check_repository_present(),
            self.check_name_format(),
            self.check_unique_fixed_keys(),
        ]

    def check_fixed_has_version(self) -> QualityCheckResult:
        conn = self.db.connect()
        result = conn.execute("""
            SELECT count(*) FROM vulnerabilities
            WHERE package_kind = 'binary'
              AND (fixed_in_version IS NULL OR trim(fixed_in_version) = '')
        """).fetchone()[0]

        return QualityCheckResult(
            check_name="fixed_has_version",
            passed=result == 0,
            message=f"{result} fixed records without version" if result > 0 else "All fixed records have version",
            details={"missing_count": result}
        )

    def check_repository_present(self) -> QualityCheckResult:
        conn = self.db.connect()
        result = conn.execute("""
            SELECT count(*) FROM vulnerabilities
            WHERE repo_name IS NULL OR trim(repo_name) = ''
        """).fetchone()[0]

        return QualityCheckResult(
            check_name="repository_present",
            passed=result == 0,
            message=f"{result} records without repository" if result > 0 else "All records have a repository",
            details={"missing_count": result}
        )

    def check_name_format(self) -> QualityCheckResult:
        conn = self.db.connect()
        result = conn.execute("""
            SELECT count(*) FROM vulnerabilities
            WHERE name NOT SIMILAR TO '(CVE-[0-9]{4}-[0-9]{4,}|RH[SBE]A-[0-9]{4}:[0-9]{4,})'
        """).fetchone()[0]

        return QualityCheckResult(
            check_name="name_format",
            passed=result == 0,
            message=f"{result} records with unexpected advisory names" if result > 0 else "All advisory names valid",
            details={"invalid_count": result}
        )

    def check_unique_fixed_keys(self) -> QualityCheckResult:
        conn = self.db.connect()
        result = conn.execute("""
            SELECT count(*) FROM (
                SELECT name, repo_name, package_module, package_name, fixed_in_version
                FROM vulnerabilities
                WHERE package_kind = 'binary'
                GROUP BY ALL
                HAVING count(*) > 1
            )
        """).fetchone()[0]

        return QualityCheckResult(
            check_name="unique_fixed_keys",
            passed=result == 0,
            message=f"{result} duplicated fixed records" if result > 0 else "No duplicated fixed records",
            details={"duplicate_count": result}
        )
