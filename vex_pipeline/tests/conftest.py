"""
Shared pytest fixtures for VEX pipeline tests.

Provides a builder for synthetic CSAF/VEX documents and a temporary
DuckDB database.
"""
import json
import sys
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from storage import Database, VulnerabilityStore

BASH_PURL = "pkg:rpm/redhat/bash@5.1.8-6.el9?arch=x86_64"
RHEL9_CPE = "cpe:/o:redhat:enterprise_linux:9"
CVSS3_VECTOR = "CVSS:3.1/AV:N/AC:L/PR:N/UI:N/S:U/C:H/I:H/A:H"


class CsafBuilder:
    """
    Builds a Red Hat style CSAF/VEX document as a dict.

    Products are nested two branch levels deep; composite product ids are
    "<relates_to>:<product>" like the published documents.
    """

    def __init__(self, tracking_id: str = "CVE-2024-0001", status: str = "final"):
        self.tracking_id = tracking_id
        self.status = status
        self.products: List[Dict[str, Any]] = []
        self.relationships: List[Dict[str, Any]] = []
        self.product_status: Dict[str, List[str]] = {}
        self.scores: List[Dict[str, Any]] = []
        self.threats: List[Dict[str, Any]] = []
        self.remediations: List[Dict[str, Any]] = []
        self.description = "A flaw was found."
        self.references = [f"https://access.redhat.com/security/cve/{tracking_id}"]

    def product(self, product_id: str, cpe: Optional[str] = None, purl: Optional[str] = None) -> str:
        helper = {}
        if cpe:
            helper["cpe"] = cpe
        if purl:
            helper["purl"] = purl
        entry: Dict[str, Any] = {"product_id": product_id, "name": product_id}
        if helper:
            entry["product_identification_helper"] = helper
        self.products.append(entry)
        return product_id

    def repo(self, product_id: str, cpe: Optional[str] = RHEL9_CPE) -> str:
        return self.product(product_id, cpe=cpe)

    def relate(self, product_ref: str, relates_to: str) -> str:
        composite = f"{relates_to}:{product_ref}"
        self.relationships.append({
            "category": "default_component_of",
            "full_product_name": {"name": composite, "product_id": composite},
            "product_reference": product_ref,
            "relates_to_product_reference": relates_to,
        })
        return composite

    def _status(self, status: str, product_id: str, cvss: Optional[Tuple[str, str, float]], impact: Optional[str]):
        self.product_status.setdefault(status, []).append(product_id)
        if cvss:
            version, vector, base = cvss
            self.scores.append({
                f"cvss_v{version}": {"version": version, "vectorString": vector, "baseScore": base},
                "products": [product_id],
            })
        if impact:
            self.threats.append({"category": "impact", "details": impact, "product_ids": [product_id]})

    def fixed(
        self,
        product_id: str,
        cvss: Optional[Tuple[str, str, float]] = ("3", CVSS3_VECTOR, 9.8),
        impact: Optional[str] = "Important",
        remediation_url: Optional[str] = None,
    ) -> str:
        self._status("fixed", product_id, cvss, impact)
        if remediation_url:
            self.remediations.append({
                "category": "vendor_fix",
                "details": "For details on how to apply this update, refer to the errata.",
                "url": remediation_url,
                "product_ids": [product_id],
            })
        return product_id

    def affected(
        self,
        product_id: str,
        cvss: Optional[Tuple[str, str, float]] = ("3", CVSS3_VECTOR, 9.8),
        impact: Optional[str] = "Moderate",
    ) -> str:
        self._status("known_affected", product_id, cvss, impact)
        return product_id

    def build(self) -> Dict[str, Any]:
        return {
            "document": {
                "category": "csaf_vex",
                "references": [
                    {"category": "self", "url": f"https://security.access.redhat.com/data/csaf/v2/vex/2024/{self.tracking_id.lower()}.json"},
                ],
                "tracking": {"id": self.tracking_id, "status": self.status},
            },
            "product_tree": {
                "branches": [{
                    "category": "vendor",
                    "name": "Red Hat",
                    "branches": [{
                        "category": "product_family",
                        "name": "Red Hat Enterprise Linux",
                        "branches": [
                            {"category": "product_version", "name": p["name"], "product": p}
                            for p in self.products
                        ],
                    }],
                }],
                "relationships": self.relationships,
            },
            "vulnerabilities": [{
                "cve": self.tracking_id,
                "notes": [{"category": "description", "text": self.description, "title": "Vulnerability description"}],
                "references": [{"category": "external", "url": url} for url in self.references],
                "release_date": "2024-01-15T00:00:00+00:00",
                "product_status": self.product_status,
                "scores": self.scores,
                "threats": self.threats,
                "remediations": self.remediations,
            }],
        }

    def line(self) -> bytes:
        return json.dumps(self.build()).encode()


def bash_document(tracking_id: str = "CVE-2024-0001") -> CsafBuilder:
    """A document with one fixed bash package in the RHEL 9 BaseOS repo."""
    b = CsafBuilder(tracking_id)
    b.repo("BaseOS-9.2.0.Z.MAIN")
    b.product("bash-0:5.1.8-6.el9.x86_64", purl=BASH_PURL)
    pid = b.relate("bash-0:5.1.8-6.el9.x86_64", "BaseOS-9.2.0.Z.MAIN")
    b.fixed(pid, remediation_url="https://access.redhat.com/errata/RHSA-2024:0101")
    return b


@pytest.fixture
def builder():
    return CsafBuilder


@pytest.fixture
def bash_doc():
    return bash_document()


@pytest.fixture
def temp_db():
    """
    Create a temporary database for testing.

    Yields:
        Database instance with schema initialized
    """
    with tempfile.NamedTemporaryFile(suffix=".duckdb", delete=True) as f:
        db_path = f.name

    db = Database(db_path)
    db.initialize_schema()
    yield db
    db.close()

    Path(db_path).unlink(missing_ok=True)


@pytest.fixture
def store(temp_db):
    return VulnerabilityStore(temp_db)
