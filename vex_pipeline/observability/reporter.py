"""
Generate human-readable run reports in Markdown format.

Report sections:
- Header with run metadata (ID, timestamp, duration)
- Summary table with document and record counts
- Severity distribution of emitted records
- Skipped product entries by reason
- Data quality check results
- Updater health
"""
from datetime import datetime
from typing import List
from pathlib import Path
from tabulate import tabulate

from .metrics import RunMetrics
from .quality_checks import QualityCheckResult


class RunReporter:
    """Generates Markdown reports from pipeline run metrics."""

    def generate_report(
        self,
        metrics: RunMetrics,
        quality_results: List[QualityCheckResult]
    ) -> str:
        """
        Generate full run report in Markdown format.

        Args:
            metrics: RunMetrics object from completed pipeline run
            quality_results: List of quality check results

        Returns:
            Markdown-formatted report as string
        """
        lines = []

        lines.append("# VEX Pipeline Run Report")
        lines.append(f"**Run ID:** {metrics.run_id}")
        lines.append(f"**Started:** {metrics.started_at.isoformat()}")
        if metrics.completed_at:
            duration = (metrics.completed_at - metrics.started_at).total_seconds()
            lines.append(f"**Duration:** {duration:.1f} seconds")
        if metrics.feed_unchanged:
            lines.append("**Feed unchanged since last run.**")
        lines.append("")

        lines.append("## Summary")
        summary_data = [
            ["Documents Read", metrics.documents_read],
            ["Deleted Documents", metrics.documents_deleted],
            ["Vulnerabilities", metrics.vulnerabilities_emitted],
            ["Retracted Advisories", metrics.advisories_retracted],
            ["Errors", metrics.errors],
        ]
        lines.append(tabulate(summary_data, headers=["Metric", "Value"], tablefmt="github"))
        lines.append("")

        if metrics.severity_counts:
            lines.append("## Severity Distribution")
            severity_data = [[k, v] for k, v in sorted(metrics.severity_counts.items())]
            lines.append(tabulate(severity_data, headers=["Severity", "Count"], tablefmt="github"))
            lines.append("")

        if metrics.skipped:
            lines.append("## Skipped Entries")
            skipped_data = [[k, v] for k, v in sorted(metrics.skipped.items())]
            lines.append(tabulate(skipped_data, headers=["Reason", "Count"], tablefmt="github"))
            lines.append("")

        lines.append("## Data Quality Checks")
        quality_data = []
        for qr in quality_results:
            status = "✓" if qr.passed else "✗"
            quality_data.append([status, qr.check_name, qr.message])
        lines.append(tabulate(quality_data, headers=["Status", "Check", "Details"], tablefmt="github"))
        lines.append("")

        if metrics.source_health:
            lines.append("## Updater Health")
            health_data = []
            for source, health in metrics.source_health.items():
                status = "✓" if health.get("healthy", False) else "✗"
                health_data.append([status, source, health.get("records", 0), health.get("error") or ""])
            lines.append(tabulate(health_data, headers=["Status", "Updater", "Records", "Error"], tablefmt="github"))
            lines.append("")

        return "\n".join(lines)

    def save_report(self, report: str, output_dir: Path) -> Path:
        """Save report to output_dir with a timestamped file name."""
        output_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.utcnow().strftime("%Y%m%d-%H%M%S")
        filepath = output_dir / f"run-report-{timestamp}.md"
        filepath.write_text(report)
        return filepath
