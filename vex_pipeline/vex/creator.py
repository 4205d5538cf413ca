"""
Per-document vulnerability creation.

A Creator turns the "fixed" and "known_affected" product statuses of one
CSAF document into normalized Vulnerability records. Each product id is
resolved through the relationship graph to a package, optional module and
repository; entries that cannot be resolved, that concern the kernel, or
that are not Red Hat RPMs are skipped.

Fixed records are deduplicated per document on an architecture-agnostic key;
a repeated key only widens the record's architecture set. Known-affected
records are not deduplicated.
"""
import logging
from collections import Counter
from typing import Callable, Dict, List, Optional, Tuple

from packageurl import PackageURL

from csaf.document import Document, Score
from csaf.document import Vulnerability as CsafVulnerability
from .caches import DocumentContext
from .cpe import escape_cpe, unbind
from .errors import ModulePurlError, NoScoreError, RelationshipError
from .models import UNKNOWN_SEVERITY, ArchOp, Package, PackageKind, Severity, Vulnerability
from .packages import (
    create_package_key,
    create_package_module,
    epoch_version,
    is_kernel,
    is_redhat_rpm,
    purl_arch,
)
from .relationships import walk_relationships
from .severity import cvss_base_score_from_score, cvss_vector_from_score, normalize_severity

logger = logging.getLogger(__name__)

ProtoFunc = Callable[[], Vulnerability]

FIXED = "fixed"
KNOWN_AFFECTED = "known_affected"


class Creator:
    """
    Builds vulnerability records for a single document.

    Holds the document's lookup caches and the fixed-record accumulator,
    so a new Creator must be used for every document.
    """

    def __init__(self, vuln_name: str, vuln_link: str, doc: Document):
        self.vuln_name = vuln_name
        self.vuln_link = vuln_link
        self.ctx = DocumentContext(doc)
        self._fixed: Dict[str, Vulnerability] = {}
        self.skipped: Counter = Counter()

    @property
    def doc(self) -> Document:
        return self.ctx.doc

    def known_affected_vulnerabilities(
        self,
        vuln: CsafVulnerability,
        proto: ProtoFunc,
    ) -> List[Vulnerability]:
        """Build one SOURCE record per resolvable "known_affected" product."""
        unrelated: List[str] = []
        out: List[Vulnerability] = []

        for product_id in vuln.product_status.get(KNOWN_AFFECTED, []):
            try:
                pkg_id, mod_id, repo_id = walk_relationships(product_id, self.doc)
            except RelationshipError:
                unrelated.append(product_id)
                self.skipped["unrelated"] += 1
                continue

            if is_kernel(pkg_id):
                self.skipped["kernel"] += 1
                continue

            cpe_helper = self._repo_cpe(repo_id)
            if cpe_helper is None:
                continue

            module = self._module(mod_id)

            comp = self.ctx.product(pkg_id)
            if comp is None:
                logger.warning("could not find package %s in product tree (%s)", pkg_id, self.vuln_link)
                self.skipped["missing_product"] += 1
                continue

            # Without a purl the package id is reported as-is.
            pkg_name = pkg_id
            purl_helper = comp.identification_helper.get("purl")
            if purl_helper:
                purl = self._parse_purl(purl_helper)
                if purl is None or not is_redhat_rpm(purl):
                    self.skipped["not_redhat_rpm"] += 1
                    continue
                pkg_name = purl.name

            record = proto()
            record.package = Package(name=pkg_name, kind=PackageKind.SOURCE, module=module)
            record.repo = self.ctx.repos.get(unbind(escape_cpe(cpe_helper)))

            if not self._apply_severity(record, product_id):
                self.skipped["no_severity"] += 1
                continue
            out.append(record)

        self._log_unrelated(unrelated)
        return out

    def fixed_vulnerabilities(
        self,
        vuln: CsafVulnerability,
        proto: ProtoFunc,
    ) -> List[Vulnerability]:
        """
        Build BINARY records for "fixed" products.

        Returns every fixed record accumulated by this creator so far, in
        first-seen order.
        """
        unrelated: List[str] = []

        for product_id in vuln.product_status.get(FIXED, []):
            try:
                pkg_id, mod_id, repo_id = walk_relationships(product_id, self.doc)
            except RelationshipError:
                unrelated.append(product_id)
                self.skipped["unrelated"] += 1
                continue

            cpe_helper = self._repo_cpe(repo_id)
            if cpe_helper is None:
                continue

            module = self._module(mod_id)

            comp = self.ctx.product(pkg_id)
            if comp is None:
                logger.warning("could not find package %s in product tree (%s)", pkg_id, self.vuln_link)
                self.skipped["missing_product"] += 1
                continue
            purl_helper = comp.identification_helper.get("purl")
            if not purl_helper:
                logger.warning("could not find purl helper for package %s", pkg_id)
                self.skipped["missing_purl"] += 1
                continue
            purl = self._parse_purl(purl_helper)
            if purl is None:
                self.skipped["invalid_purl"] += 1
                continue
            if is_kernel(purl.name):
                self.skipped["kernel"] += 1
                continue
            if not is_redhat_rpm(purl):
                self.skipped["not_redhat_rpm"] += 1
                continue

            fixed_in = epoch_version(purl)
            key = create_package_key(repo_id, module, purl.name, fixed_in)
            arch = purl_arch(purl)

            existing = self._fixed.get(key)
            if existing is not None:
                if arch and existing.package.arch:
                    existing.package.arch = f"{existing.package.arch}|{arch}"
                elif arch:
                    existing.package.arch = arch
                    existing.arch_operation = ArchOp.PATTERN_MATCH
                continue

            record = proto()
            record.fixed_in_version = fixed_in
            record.package = Package(name=purl.name, kind=PackageKind.BINARY, module=module)
            if arch:
                record.package.arch = arch
                record.arch_operation = ArchOp.PATTERN_MATCH
            record.repo = self.ctx.repos.get(unbind(escape_cpe(cpe_helper)))

            rem = self.doc.find_remediation(product_id)
            if rem is not None and rem.url:
                record.links = f"{record.links} {rem.url}" if record.links else rem.url

            if not self._apply_severity(record, product_id):
                self.skipped["no_severity"] += 1
                continue
            self._fixed[key] = record

        self._log_unrelated(unrelated)
        return list(self._fixed.values())

    def _repo_cpe(self, repo_id: str) -> Optional[str]:
        repo = self.ctx.product(repo_id)
        if repo is None:
            logger.warning("could not find product %s in product tree (%s)", repo_id, self.vuln_link)
            self.skipped["missing_product"] += 1
            return None
        helper = repo.identification_helper.get("cpe")
        if not helper:
            logger.warning("could not find cpe helper for product %s (%s)", repo_id, self.vuln_link)
            self.skipped["missing_cpe"] += 1
            return None
        return helper

    def _module(self, mod_id: str) -> str:
        if not mod_id:
            return ""
        try:
            return create_package_module(self.ctx.product(mod_id))
        except ModulePurlError as e:
            logger.warning("could not create package module for %s: %s", mod_id, e)
            return ""

    @staticmethod
    def _parse_purl(helper: str) -> Optional[PackageURL]:
        try:
            return PackageURL.from_string(helper)
        except ValueError as e:
            logger.warning("could not parse purl %s: %s", helper, e)
            return None

    def _apply_severity(self, record: Vulnerability, product_id: str) -> bool:
        """
        Set severity fields on record.

        Returns False when the entry has a zero base score and no impact
        rating; such entries are not published.

        Raises:
            InvalidVectorError: If the CVSS vector does not parse
        """
        score = self.doc.find_score(product_id)
        if score is not None:
            try:
                record.severity = cvss_vector_from_score(score)
            except NoScoreError:
                logger.debug("score for %s carries no CVSS data", product_id)

        threat = self.doc.find_threat(product_id, "impact")
        if threat is not None:
            record.normalized_severity = normalize_severity(threat.details)
            return True
        return not _zero_score(score)

    def _log_unrelated(self, product_ids: List[str]) -> None:
        if product_ids and logger.isEnabledFor(logging.DEBUG):
            logger.debug("skipped unrelatable product_ids in %s: %s", self.vuln_name, product_ids)


def _zero_score(score: Optional[Score]) -> bool:
    return score is not None and cvss_base_score_from_score(score) == 0.0


def proto_factory(
    updater: str,
    name: str,
    self_link: str,
    vuln: CsafVulnerability,
) -> ProtoFunc:
    """
    Return a factory for records sharing one entry's advisory-level fields.

    Links are the entry's reference URLs followed by the document's self link.
    """
    links = [ref.url for ref in vuln.references]
    links.append(self_link)
    description = ""
    for note in vuln.notes:
        if note.category == "description":
            description = note.text
    link_str = " ".join(link for link in links if link)

    def proto() -> Vulnerability:
        return Vulnerability(
            updater=updater,
            name=name,
            description=description,
            issued=vuln.release_date,
            links=link_str,
            severity=UNKNOWN_SEVERITY,
            normalized_severity=Severity.UNKNOWN,
        )

    return proto


def fixed_and_affected(
    creator: Creator,
    vulns: List[CsafVulnerability],
    updater: str,
) -> Tuple[List[Vulnerability], List[Vulnerability]]:
    """Run a creator over every vulnerability entry of its document."""
    fixed: List[Vulnerability] = []
    affected: List[Vulnerability] = []
    for vuln in vulns:
        proto = proto_factory(updater, creator.vuln_name, creator.vuln_link, vuln)
        fixed = creator.fixed_vulnerabilities(vuln, proto)
        affected.extend(creator.known_affected_vulnerabilities(vuln, proto))
    return fixed, affected
