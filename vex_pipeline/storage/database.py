"""
Database connection and schema management for the VEX pipeline.

This module provides:
- DuckDB connection lifecycle management
- The vulnerabilities table holding the current normalized records
- Retraction log for deleted advisories
- Feed fingerprints and pipeline run metadata

Design decisions:
- JSON columns for package and repository objects
- One row per normalized record, replaced per advisory name on each update
- Indexed on advisory name for delta application
"""
import duckdb
from datetime import datetime
from typing import Optional


class Database:
    """
    Manages DuckDB connection and schema initialization.

    This class is responsible for:
    - Creating and maintaining a single database connection
    - Initializing the vulnerability, retraction and run tables
    - Providing run ID generation for pipeline execution tracking
    """

    def __init__(self, db_path: str = "vex_pipeline.duckdb"):
        """
        Initialize database manager.

        Args:
            db_path: Path to DuckDB database file (created if doesn't exist)
        """
        self.db_path = db_path
        self.conn: Optional[duckdb.DuckDBPyConnection] = None

    def connect(self) -> duckdb.DuckDBPyConnection:
        """
        Get or create database connection.

        Returns:
            Active DuckDB connection
        """
        if self.conn is None:
            self.conn = duckdb.connect(self.db_path)
        return self.conn

    def close(self):
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None

    def initialize_schema(self):
        """
        Create all required tables if they don't exist.

        Tables created:
        - vulnerabilities: Current normalized vulnerability records
        - deleted_advisories: Advisory names retracted by each run
        - feed_state: Last processed fingerprint per updater
        - pipeline_runs: Pipeline execution metadata
        """
        conn = self.connect()

        conn.execute("""
            CREATE TABLE IF NOT EXISTS vulnerabilities (
                updater VARCHAR NOT NULL,
                name VARCHAR NOT NULL,
                description VARCHAR,
                issued TIMESTAMP,
                links VARCHAR,
                severity VARCHAR,
                normalized_severity VARCHAR,
                package_name VARCHAR,
                package_kind VARCHAR,
                package_module VARCHAR,
                package_arch VARCHAR,
                arch_operation VARCHAR,
                repo_name VARCHAR,
                repo_key VARCHAR,
                fixed_in_version VARCHAR,
                package JSON,
                repo JSON,
                run_id VARCHAR
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS deleted_advisories (
                updater VARCHAR NOT NULL,
                name VARCHAR NOT NULL,
                run_id VARCHAR,
                deleted_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS feed_state (
                updater VARCHAR PRIMARY KEY,
                fingerprint VARCHAR,
                updated_at TIMESTAMP
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS pipeline_runs (
                run_id VARCHAR PRIMARY KEY,
                started_at TIMESTAMP,
                completed_at TIMESTAMP,
                status VARCHAR,
                vulnerabilities INTEGER,
                deleted INTEGER,
                errors INTEGER,
                metadata JSON
            )
        """)

        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_vuln_name
            ON vulnerabilities(updater, name)
        """)

    def get_current_run_id(self) -> str:
        """
        Generate a unique run ID for this pipeline execution.

        Returns:
            Run ID in format: run_YYYYMMDD_HHMMSS
        """
        return f"run_{datetime.utcnow().strftime('%Y%m%d_%H%M%S')}"

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
