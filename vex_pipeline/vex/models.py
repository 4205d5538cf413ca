"""
Normalized vulnerability records produced by the VEX engine.

These are the output units handed to storage: one Vulnerability per
(advisory, package, repository) combination, with an optional module
qualifier and architecture set.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from .cpe import WFN

REPO_KEY = "rhel-cpe-repository"

# severity of a record whose product has no CVSS score
UNKNOWN_SEVERITY = "Unknown"


class Severity(Enum):
    """
    Coarse normalized severity, ordered from least to most severe.

    The set is shared with the matcher that consumes these records. Red Hat
    impact ratings never map to NEGLIGIBLE; other updaters can emit it.
    """
    UNKNOWN = "Unknown"
    NEGLIGIBLE = "Negligible"
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class PackageKind(Enum):
    SOURCE = "source"
    BINARY = "binary"


class ArchOp(Enum):
    """
    How a record's architecture is compared against an installed package.

    VEX records only use INVALID (no architecture) and PATTERN_MATCH, since
    package.arch may be a "|"-joined set. EQUALS and NOT_EQUALS complete the
    matcher's set for single-architecture sources.
    """
    INVALID = ""
    EQUALS = "equals"
    NOT_EQUALS = "not equals"
    PATTERN_MATCH = "pattern match"


@dataclass
class Package:
    name: str
    kind: PackageKind
    module: str = ""
    arch: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind.value,
            "module": self.module,
            "arch": self.arch,
        }


@dataclass
class Repository:
    """A repository identified by a CPE; name is the CPE's string form."""
    cpe: WFN
    name: str
    key: str = REPO_KEY

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "key": self.key, "cpe": str(self.cpe)}


@dataclass
class Vulnerability:
    """
    A normalized vulnerability record.

    fixed_in_version is empty for known-affected records. package.arch may
    hold several architectures joined by "|", in which case arch_operation
    is PATTERN_MATCH.
    """
    updater: str
    name: str
    description: str = ""
    issued: Optional[datetime] = None
    links: str = ""
    severity: str = UNKNOWN_SEVERITY
    normalized_severity: Severity = Severity.UNKNOWN
    package: Optional[Package] = None
    repo: Optional[Repository] = None
    fixed_in_version: str = ""
    arch_operation: ArchOp = ArchOp.INVALID

    def to_dict(self) -> Dict[str, Any]:
        return {
            "updater": self.updater,
            "name": self.name,
            "description": self.description,
            "issued": self.issued.isoformat() if self.issued else None,
            "links": self.links,
            "severity": self.severity,
            "normalized_severity": self.normalized_severity.value,
            "package": self.package.to_dict() if self.package else None,
            "repo": self.repo.to_dict() if self.repo else None,
            "fixed_in_version": self.fixed_in_version,
            "arch_operation": self.arch_operation.value,
        }
