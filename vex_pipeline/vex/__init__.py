"""
VEX relationship-resolution and normalization engine.

Main exports:
- DeltaMerger: folds a document stream into (vulnerabilities, deleted)
- Creator: builds records for one document
- walk_relationships: resolves product ids to (package, module, repo)
- escape_cpe / unbind: CPE handling for repositories
"""
from .cpe import WFN, escape_cpe, unbind
from .creator import Creator
from .errors import (
    AmbiguousRelationshipError,
    CPEError,
    CyclicRelationshipError,
    DocumentParseError,
    InvalidVectorError,
    NoRelationshipError,
    NoScoreError,
    VexError,
)
from .merge import DeltaMerger
from .models import ArchOp, Package, PackageKind, Repository, Severity, Vulnerability
from .relationships import walk_relationships

__all__ = [
    "WFN",
    "escape_cpe",
    "unbind",
    "Creator",
    "DeltaMerger",
    "walk_relationships",
    "VexError",
    "DocumentParseError",
    "NoRelationshipError",
    "AmbiguousRelationshipError",
    "CyclicRelationshipError",
    "NoScoreError",
    "InvalidVectorError",
    "CPEError",
    "ArchOp",
    "Package",
    "PackageKind",
    "Repository",
    "Severity",
    "Vulnerability",
]
