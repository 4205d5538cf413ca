#!/usr/bin/env python3
"""
Main pipeline orchestrator for the VEX advisory pipeline.

This module coordinates one update cycle:
1. Fetch: Download the compressed VEX feed (skipped if unchanged)
2. Parse: Fold the document stream into vulnerabilities and retractions
3. Store: Apply the delta to DuckDB
4. Export: Write the delta as JSON for downstream consumers
5. Quality: Run data quality checks
6. Reporting: Generate the run report

Parsing is all-or-nothing: a malformed document fails the run before
anything is stored.

Usage:
    python run_pipeline.py [--config path/to/config.yaml]
"""
import sys
import json
import yaml
import logging
import argparse
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from storage.database import Database
from storage.loader import VulnerabilityStore
from ingestion.vex_adapter import VexUpdater
from observability.metrics import RunMetrics
from observability.quality_checks import QualityChecker
from observability.reporter import RunReporter
from vex.models import Vulnerability

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


class VexPipeline:
    """
    Pipeline orchestrator for a single VEX updater.

    Design decisions:
    - Single run_id tracks entire execution
    - Feed fingerprint stored per updater so unchanged feeds are skipped
    - Metrics captured at every stage
    """

    def __init__(self, config_path: str = "config.yaml"):
        """
        Initialize pipeline with configuration.

        Args:
            config_path: Path to YAML configuration file
        """
        self.config_path = Path(config_path)
        if not self.config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(self.config_path) as f:
            self.config = yaml.safe_load(f) or {}

        for key in ["database", "sources"]:
            if key not in self.config:
                raise ValueError(f"Missing required config key: {key}")
        if "rhel_vex" not in self.config["sources"]:
            raise ValueError("Missing required source configuration: sources.rhel_vex")

        level = self.config.get("logging", {}).get("level")
        if level:
            logging.getLogger().setLevel(level.upper())

        self.db = Database(self.config["database"]["path"])
        self.store = VulnerabilityStore(self.db)
        self.quality_checker = QualityChecker(self.db)
        self.reporter = RunReporter()
        self.updater = VexUpdater(self.config["sources"]["rhel_vex"])
        self.output_dir = Path(self.config.get("output", {}).get("dir", "output"))

        logger.info(f"Pipeline initialized with config: {config_path}")

    def run(self) -> RunMetrics:
        """
        Execute one update cycle.

        Returns:
            RunMetrics object with execution statistics

        Raises:
            RuntimeError: If fetching or parsing fails
        """
        run_id = self.db.get_current_run_id()
        metrics = RunMetrics(run_id=run_id, started_at=datetime.utcnow())

        logger.info(f"=== Starting Pipeline Run: {run_id} ===")

        try:
            logger.info("Stage 1: Initializing database schema")
            self.db.initialize_schema()

            logger.info("Stage 2: Fetching feed")
            previous = self.store.get_fingerprint(self.updater.name)
            fetched = self.updater.fetch(previous)
            self._record_health(metrics)
            if fetched is None:
                raise RuntimeError(f"fetch failed: {self.updater.get_health().error_message}")

            if not fetched.changed:
                logger.info("  Feed unchanged, nothing to do")
                metrics.feed_unchanged = True
            else:
                logger.info("Stage 3: Parsing documents")
                with open(fetched.path, "rb") as contents:
                    vulns, deleted = self.updater.delta_parse(contents)
                self._record_parse(metrics, vulns, deleted)

                logger.info("Stage 4: Storing delta")
                self.store.apply_delta(self.updater.name, vulns, deleted, run_id)
                self.store.set_fingerprint(self.updater.name, fetched.fingerprint)

                logger.info("Stage 5: Exporting delta")
                self._export_delta(run_id, vulns, deleted)

            logger.info("Stage 6: Running quality checks")
            quality_results = self.quality_checker.run_all_checks()

            metrics.completed_at = datetime.utcnow()
            report = self.reporter.generate_report(metrics, quality_results)
            report_path = self.reporter.save_report(report, self.output_dir)
            self.store.record_run(run_id, metrics.started_at, metrics.completed_at, "success", metrics.to_dict())

            duration = (metrics.completed_at - metrics.started_at).total_seconds()
            logger.info("=== Pipeline Complete ===")
            logger.info(f"Duration: {duration:.1f}s")
            logger.info(f"Vulnerabilities: {metrics.vulnerabilities_emitted}")
            logger.info(f"Retracted: {metrics.advisories_retracted}")
            logger.info(f"Report: {report_path}")

        except Exception as e:
            metrics.record_error(str(e), {"updater": self.updater.name})
            self._record_health(metrics)
            logger.error(f"Pipeline failed: {e}", exc_info=True)
            self.store.record_run(run_id, metrics.started_at, datetime.utcnow(), "failed", metrics.to_dict())
            raise RuntimeError(f"Pipeline execution failed: {e}") from e

        return metrics

    def _record_health(self, metrics: RunMetrics):
        health = self.updater.get_health()
        metrics.source_health[health.source_id] = {
            "healthy": health.is_healthy,
            "records": health.records_fetched,
            "error": health.error_message
        }

    def _record_parse(self, metrics: RunMetrics, vulns: List[Vulnerability], deleted: List[str]):
        merge = self.updater.last_merge
        if merge is not None:
            metrics.documents_read = merge.documents
            metrics.documents_deleted = merge.deleted_documents
            metrics.record_skips(merge.skipped)
        metrics.vulnerabilities_emitted = len(vulns)
        metrics.advisories_retracted = len(deleted)
        metrics.severity_counts = dict(Counter(v.normalized_severity.value for v in vulns))
        self._record_health(metrics)

    def _export_delta(self, run_id: str, vulns: List[Vulnerability], deleted: List[str]) -> Path:
        """
        Write the parsed delta to output/vex_delta.json.

        Output format:
        {
          "generated_at": "2024-01-11T12:00:00Z",
          "run_id": "...",
          "vulnerability_count": 42,
          "vulnerabilities": [...],
          "deleted": [...]
        }
        """
        output: Dict[str, Any] = {
            "generated_at": datetime.utcnow().isoformat() + "Z",
            "run_id": run_id,
            "vulnerability_count": len(vulns),
            "vulnerabilities": [v.to_dict() for v in vulns],
            "deleted": sorted(deleted),
        }

        output_path = self.output_dir / "vex_delta.json"
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w") as f:
            json.dump(output, f, indent=2)

        logger.info(f"  Exported {len(vulns)} vulnerabilities to {output_path}")
        return output_path


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Run the VEX advisory pipeline"
    )
    parser.add_argument(
        "--config",
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)"
    )
    args = parser.parse_args()

    try:
        pipeline = VexPipeline(config_path=args.config)
        metrics = pipeline.run()

        print("\n" + "=" * 60)
        print("Pipeline Summary")
        print("=" * 60)
        print(f"Run ID: {metrics.run_id}")
        print(f"Documents: {metrics.documents_read}")
        print(f"Vulnerabilities: {metrics.vulnerabilities_emitted}")
        print(f"Retracted: {metrics.advisories_retracted}")
        print(f"Errors: {metrics.errors}")
        if metrics.skipped:
            print("\nSkipped Entries:")
            for reason, count in sorted(metrics.skipped.items()):
                print(f"  {reason:20} {count:6}")
        print("=" * 60)

        sys.exit(0)

    except Exception as e:
        logger.error(f"Pipeline failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
