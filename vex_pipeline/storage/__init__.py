"""
Storage layer for the VEX pipeline.

This module provides data persistence using DuckDB.

Components:
- Database: Connection management and schema initialization
- VulnerabilityStore: Apply (vulnerabilities, deleted) deltas and track feed state

Usage:
    from storage import Database, VulnerabilityStore

    db = Database("vex_pipeline.duckdb")
    db.initialize_schema()

    store = VulnerabilityStore(db)
    store.apply_delta("rhel-vex", vulns, deleted, run_id)
"""

from .database import Database
from .loader import VulnerabilityStore

__all__ = [
    "Database",
    "VulnerabilityStore",
]
