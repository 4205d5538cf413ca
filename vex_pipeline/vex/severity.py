"""
CVSS vector extraction and severity normalization.

A CSAF score object may carry CVSS v4, v3 or v2 data. score_variant() turns
it into exactly one variant, checked newest first, so the "highest version
wins" ordering lives in one place. Vector strings are validated with the
cvss library before being reported.
"""
from dataclasses import dataclass
from typing import Optional, Union

from cvss import CVSS2, CVSS3, CVSS4, CVSSError

from csaf.document import CvssData, Score
from .errors import InvalidVectorError, NoScoreError
from .models import Severity


@dataclass(frozen=True)
class CvssV4:
    data: CvssData
    version = "4"
    parser = CVSS4


@dataclass(frozen=True)
class CvssV3:
    data: CvssData
    version = "3"
    parser = CVSS3


@dataclass(frozen=True)
class CvssV2:
    data: CvssData
    version = "2"
    parser = CVSS2


@dataclass(frozen=True)
class NoCvss:
    pass


CvssScore = Union[CvssV4, CvssV3, CvssV2, NoCvss]

# Red Hat impact ratings
_IMPACT_SEVERITY = {
    "none": Severity.UNKNOWN,
    "low": Severity.LOW,
    "moderate": Severity.MEDIUM,
    "important": Severity.HIGH,
    "critical": Severity.CRITICAL,
}


def score_variant(score: Optional[Score]) -> CvssScore:
    """Pick the newest CVSS version present on a score object."""
    if score is None:
        return NoCvss()
    if score.cvss_v4 is not None:
        return CvssV4(score.cvss_v4)
    if score.cvss_v3 is not None:
        return CvssV3(score.cvss_v3)
    if score.cvss_v2 is not None:
        return CvssV2(score.cvss_v2)
    return NoCvss()


def cvss_vector_from_score(score: Optional[Score]) -> str:
    """
    Return the validated vector string of the newest CVSS version present.

    Raises:
        InvalidVectorError: If the vector does not parse for its version
        NoScoreError: If no CVSS version is populated
    """
    variant = score_variant(score)
    if isinstance(variant, NoCvss):
        raise NoScoreError()

    vector = variant.data.vector_string
    try:
        variant.parser(vector)
    except CVSSError as e:
        raise InvalidVectorError(variant.version, vector, e) from e
    return vector


def cvss_base_score_from_score(score: Optional[Score]) -> float:
    """Return the base score of the newest CVSS version present, or 0.0."""
    variant = score_variant(score)
    if isinstance(variant, NoCvss):
        return 0.0
    return variant.data.base_score


def normalize_severity(impact: str) -> Severity:
    """Map a free-text impact rating ("Important", "moderate", ...) to a Severity."""
    return _IMPACT_SEVERITY.get((impact or "").strip().lower(), Severity.UNKNOWN)
