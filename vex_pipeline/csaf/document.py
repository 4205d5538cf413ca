"""
CSAF document model used by the VEX updater.

Parses a single CSAF/VEX JSON document into lightweight dataclasses and
exposes the lookups the vulnerability creator relies on:

- ProductTree.find_product_by_id: walk branches and named products
- Document.find_relationship: relationship defining a composite product id
- Document.find_score / find_threat / find_remediation: per-product lookups

Only the fields the pipeline reads are modelled; everything else in the
document is ignored rather than validated.
"""
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Union


class DocumentParseError(ValueError):
    """Raised when a line cannot be decoded into a CSAF document."""


@dataclass
class Reference:
    category: str
    url: str
    summary: str = ""


@dataclass
class Note:
    category: str
    text: str
    title: str = ""


@dataclass
class Product:
    """A product from the product tree with its identification helpers."""
    id: str
    name: str = ""
    identification_helper: Dict[str, str] = field(default_factory=dict)


@dataclass
class Relationship:
    """
    A product tree relationship.

    product_id is the composite id this relationship defines
    (full_product_name.product_id); advisory entries refer to it.
    """
    product_id: str
    product_ref: str
    relates_to_product_ref: str
    category: str


@dataclass
class CvssData:
    version: str
    vector_string: str
    base_score: float = 0.0
    base_severity: str = ""


@dataclass
class Score:
    products: List[str]
    cvss_v2: Optional[CvssData] = None
    cvss_v3: Optional[CvssData] = None
    cvss_v4: Optional[CvssData] = None


@dataclass
class Threat:
    category: str
    details: str
    product_ids: List[str] = field(default_factory=list)


@dataclass
class Remediation:
    category: str
    details: str = ""
    url: str = ""
    product_ids: List[str] = field(default_factory=list)


@dataclass
class Vulnerability:
    """One entry of the document's vulnerabilities array."""
    cve: str = ""
    notes: List[Note] = field(default_factory=list)
    references: List[Reference] = field(default_factory=list)
    release_date: Optional[datetime] = None
    product_status: Dict[str, List[str]] = field(default_factory=dict)
    scores: List[Score] = field(default_factory=list)
    threats: List[Threat] = field(default_factory=list)
    remediations: List[Remediation] = field(default_factory=list)


class ProductTree:
    """Product catalog of a CSAF document."""

    def __init__(
        self,
        branch_products: List[Product],
        full_product_names: List[Product],
        relationships: List[Relationship],
        relationship_products: List[Product],
    ):
        self.branch_products = branch_products
        self.full_product_names = full_product_names
        self.relationships = relationships
        self._relationship_products = relationship_products

    def find_product_by_id(self, product_id: str) -> Optional[Product]:
        """
        Find a product anywhere in the tree.

        Branches are searched first, then top-level full product names,
        then the products defined by relationships.
        """
        for product in self.branch_products:
            if product.id == product_id:
                return product
        for product in self.full_product_names:
            if product.id == product_id:
                return product
        for product in self._relationship_products:
            if product.id == product_id:
                return product
        return None


class Document:
    """A parsed CSAF document."""

    def __init__(
        self,
        tracking_id: str,
        tracking_status: str,
        references: List[Reference],
        product_tree: ProductTree,
        vulnerabilities: List[Vulnerability],
    ):
        self.tracking_id = tracking_id
        self.tracking_status = tracking_status
        self.references = references
        self.product_tree = product_tree
        self.vulnerabilities = vulnerabilities

    def self_link(self) -> str:
        """Return the URL of the last reference tagged "self", or ""."""
        link = ""
        for ref in self.references:
            if ref.category == "self":
                link = ref.url
        return link

    def find_relationship(self, product_id: str, category: str) -> Optional[Relationship]:
        for rel in self.product_tree.relationships:
            if rel.product_id == product_id and rel.category == category:
                return rel
        return None

    def find_score(self, product_id: str) -> Optional[Score]:
        for vuln in self.vulnerabilities:
            for score in vuln.scores:
                if product_id in score.products:
                    return score
        return None

    def find_threat(self, product_id: str, category: str) -> Optional[Threat]:
        for vuln in self.vulnerabilities:
            for threat in vuln.threats:
                if threat.category == category and product_id in threat.product_ids:
                    return threat
        return None

    def find_remediation(self, product_id: str) -> Optional[Remediation]:
        """Find the vendor fix that lists this product id."""
        for vuln in self.vulnerabilities:
            for rem in vuln.remediations:
                if rem.category == "vendor_fix" and product_id in rem.product_ids:
                    return rem
        return None


def parse(raw: Union[bytes, str, Dict[str, Any]]) -> Document:
    """
    Parse one CSAF document.

    Args:
        raw: JSON bytes/text, or an already-decoded dict

    Returns:
        Document

    Raises:
        DocumentParseError: If the input is not JSON or lacks a tracking id
    """
    if isinstance(raw, dict):
        data = raw
    else:
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise DocumentParseError(f"invalid CSAF JSON: {e}") from e

    if not isinstance(data, dict):
        raise DocumentParseError(f"CSAF document must be an object, got {type(data).__name__}")

    doc = data.get("document") or {}
    tracking = doc.get("tracking") or {}
    tracking_id = tracking.get("id")
    if not tracking_id:
        raise DocumentParseError("CSAF document has no tracking id")

    try:
        return Document(
            tracking_id=tracking_id,
            tracking_status=tracking.get("status", ""),
            references=[_parse_reference(r) for r in doc.get("references") or []],
            product_tree=_parse_product_tree(data.get("product_tree") or {}),
            vulnerabilities=[_parse_vulnerability(v) for v in data.get("vulnerabilities") or []],
        )
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise DocumentParseError(f"malformed CSAF document {tracking_id}: {e}") from e


def _parse_reference(raw: Dict[str, Any]) -> Reference:
    return Reference(
        category=raw.get("category", ""),
        url=raw.get("url", ""),
        summary=raw.get("summary", ""),
    )


def _parse_product(raw: Dict[str, Any]) -> Product:
    helper = raw.get("product_identification_helper") or {}
    return Product(
        id=raw["product_id"],
        name=raw.get("name", ""),
        identification_helper={k: v for k, v in helper.items() if isinstance(v, str)},
    )


def _iter_branch_products(branches: List[Dict[str, Any]]) -> Iterator[Product]:
    """Products of a branch tree, depth first in document order."""
    for branch in branches:
        raw = branch.get("product")
        if raw:
            yield _parse_product(raw)
        yield from _iter_branch_products(branch.get("branches") or [])


def _parse_product_tree(raw: Dict[str, Any]) -> ProductTree:
    relationships = []
    relationship_products = []
    for rel in raw.get("relationships") or []:
        fpn = rel.get("full_product_name") or {}
        relationships.append(Relationship(
            product_id=fpn.get("product_id", ""),
            product_ref=rel["product_reference"],
            relates_to_product_ref=rel["relates_to_product_reference"],
            category=rel.get("category", ""),
        ))
        if fpn.get("product_id"):
            relationship_products.append(_parse_product(fpn))

    return ProductTree(
        branch_products=list(_iter_branch_products(raw.get("branches") or [])),
        full_product_names=[_parse_product(p) for p in raw.get("full_product_names") or []],
        relationships=relationships,
        relationship_products=relationship_products,
    )


def _parse_cvss(raw: Optional[Dict[str, Any]]) -> Optional[CvssData]:
    if not raw:
        return None
    return CvssData(
        version=str(raw.get("version", "")),
        vector_string=raw.get("vectorString", ""),
        base_score=float(raw.get("baseScore", 0.0)),
        base_severity=raw.get("baseSeverity", ""),
    )


def _parse_vulnerability(raw: Dict[str, Any]) -> Vulnerability:
    return Vulnerability(
        cve=raw.get("cve", ""),
        notes=[
            Note(category=n.get("category", ""), text=n.get("text", ""), title=n.get("title", ""))
            for n in raw.get("notes") or []
        ],
        references=[_parse_reference(r) for r in raw.get("references") or []],
        release_date=_parse_timestamp(raw.get("release_date")),
        product_status={k: list(v) for k, v in (raw.get("product_status") or {}).items()},
        scores=[
            Score(
                products=list(s.get("products") or []),
                cvss_v2=_parse_cvss(s.get("cvss_v2")),
                cvss_v3=_parse_cvss(s.get("cvss_v3")),
                cvss_v4=_parse_cvss(s.get("cvss_v4")),
            )
            for s in raw.get("scores") or []
        ],
        threats=[
            Threat(
                category=t.get("category", ""),
                details=t.get("details", ""),
                product_ids=list(t.get("product_ids") or []),
            )
            for t in raw.get("threats") or []
        ],
        remediations=[
            Remediation(
                category=r.get("category", ""),
                details=r.get("details", ""),
                url=r.get("url", ""),
                product_ids=list(r.get("product_ids") or []),
            )
            for r in raw.get("remediations") or []
        ],
    )


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        return datetime.fromisoformat(value)
    except ValueError:
        return None
