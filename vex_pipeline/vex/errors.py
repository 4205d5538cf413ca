"""
Error taxonomy for the VEX engine.

Structural failures (DocumentParseError, CPEError, InvalidVectorError) abort
the whole update. RelationshipError subclasses and ModulePurlError describe
expected gaps in advisory data; callers skip or degrade instead of failing.
"""
from csaf.document import DocumentParseError


class VexError(Exception):
    """Base class for engine errors."""


class RelationshipError(VexError):
    """A product id could not be resolved to a package and repository."""

    def __init__(self, product_id: str, message: str):
        super().__init__(message)
        self.product_id = product_id


class NoRelationshipError(RelationshipError):
    def __init__(self, product_id: str):
        super().__init__(product_id, f"cannot determine initial relationship for {product_id!r}")


class AmbiguousRelationshipError(RelationshipError):
    def __init__(self, product_id: str):
        super().__init__(product_id, f"cannot determine relationships for {product_id!r}")


class CyclicRelationshipError(RelationshipError):
    def __init__(self, product_id: str, repeated: str):
        super().__init__(
            product_id,
            f"relationship cycle resolving {product_id!r}: {repeated!r} seen twice",
        )
        self.repeated = repeated


class SeverityError(VexError):
    """Base class for CVSS extraction failures."""


class NoScoreError(SeverityError):
    """The score object carries no CVSS data."""

    def __init__(self):
        super().__init__("could not find a valid CVSS object")


class InvalidVectorError(SeverityError):
    def __init__(self, version: str, vector: str, cause: Exception):
        super().__init__(f"could not parse CVSSv{version} vector string {vector!r}: {cause}")
        self.version = version
        self.vector = vector


class CPEError(VexError):
    """A CPE string could not be unbound into a WFN."""


class ModulePurlError(VexError):
    """A module product carries a purl that cannot name an RPM module."""


__all__ = [
    "VexError",
    "DocumentParseError",
    "RelationshipError",
    "NoRelationshipError",
    "AmbiguousRelationshipError",
    "CyclicRelationshipError",
    "SeverityError",
    "NoScoreError",
    "InvalidVectorError",
    "CPEError",
    "ModulePurlError",
]
