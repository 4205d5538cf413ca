"""
CSAF document parsing for the VEX pipeline.

Turns one JSON document into a Document exposing the product tree and
per-product lookups used by the vulnerability creator.
"""
from .document import (
    CvssData,
    DocumentParseError,
    Document,
    Note,
    Product,
    ProductTree,
    Reference,
    Relationship,
    Remediation,
    Score,
    Threat,
    Vulnerability,
    parse,
)

__all__ = [
    "CvssData",
    "DocumentParseError",
    "Document",
    "Note",
    "Product",
    "ProductTree",
    "Reference",
    "Relationship",
    "Remediation",
    "Score",
    "Threat",
    "Vulnerability",
    "parse",
]
