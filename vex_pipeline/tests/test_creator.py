"""
Tests for building vulnerability records from a single CSAF document.

Documents are assembled with CsafBuilder (see conftest.py) and parsed the
same way the updater parses feed lines.
"""
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

import csaf
from conftest import BASH_PURL, CVSS3_VECTOR, CsafBuilder, bash_document
from vex.creator import Creator, fixed_and_affected
from vex.errors import CPEError, InvalidVectorError
from vex.models import REPO_KEY, ArchOp, PackageKind, Severity

RHEL9_NAME = "cpe:2.3:o:redhat:enterprise_linux:9:*:*:*:*:*:*:*"


def run_creator(builder: CsafBuilder, updater: str = "rhel-vex"):
    doc = csaf.parse(builder.build())
    creator = Creator(doc.tracking_id, doc.self_link(), doc)
    fixed, affected = fixed_and_affected(creator, doc.vulnerabilities, updater)
    return creator, fixed, affected


def add_fixed(b, product_id, purl, repo="BaseOS-9.2.0.Z.MAIN", **kwargs):
    b.product(product_id, purl=purl)
    return b.fixed(b.relate(product_id, repo), **kwargs)


class TestFixedVulnerabilities:

    def test_bash_fix(self):
        creator, fixed, affected = run_creator(bash_document())

        assert affected == []
        assert len(fixed) == 1
        vuln = fixed[0]
        assert vuln.updater == "rhel-vex"
        assert vuln.name == "CVE-2024-0001"
        assert vuln.description == "A flaw was found."
        assert vuln.fixed_in_version == "0:5.1.8-6.el9"
        assert vuln.package.name == "bash"
        assert vuln.package.kind == PackageKind.BINARY
        assert vuln.package.module == ""
        assert vuln.package.arch == "x86_64"
        assert vuln.arch_operation == ArchOp.PATTERN_MATCH
        assert vuln.repo.name == RHEL9_NAME
        assert vuln.repo.key == REPO_KEY
        assert vuln.severity == CVSS3_VECTOR
        assert vuln.normalized_severity == Severity.HIGH
        assert vuln.issued.year == 2024

    def test_links_end_with_self_link_then_errata(self):
        _, fixed, _ = run_creator(bash_document())

        links = fixed[0].links.split(" ")
        assert links[0] == "https://access.redhat.com/security/cve/CVE-2024-0001"
        assert links[1].endswith("/cve-2024-0001.json")
        assert links[2] == "https://access.redhat.com/errata/RHSA-2024:0101"

    def test_architectures_are_merged_into_one_record(self):
        b = bash_document()
        add_fixed(b, "bash-0:5.1.8-6.el9.aarch64", "pkg:rpm/redhat/bash@5.1.8-6.el9?arch=aarch64")
        add_fixed(b, "bash-0:5.1.8-6.el9.s390x", "pkg:rpm/redhat/bash@5.1.8-6.el9?arch=s390x")

        _, fixed, _ = run_creator(b)

        assert len(fixed) == 1
        assert fixed[0].package.arch == "x86_64|aarch64|s390x"
        assert fixed[0].arch_operation == ArchOp.PATTERN_MATCH

    def test_first_arch_on_archless_record(self):
        b = CsafBuilder()
        b.repo("BaseOS-9.2.0.Z.MAIN")
        add_fixed(b, "bash-0:5.1.8-6.el9", "pkg:rpm/redhat/bash@5.1.8-6.el9")
        add_fixed(b, "bash-0:5.1.8-6.el9.x86_64", BASH_PURL)

        _, fixed, _ = run_creator(b)

        assert len(fixed) == 1
        assert fixed[0].package.arch == "x86_64"
        assert fixed[0].arch_operation == ArchOp.PATTERN_MATCH

    def test_archless_duplicate_leaves_record_unchanged(self):
        b = bash_document()
        add_fixed(b, "bash-0:5.1.8-6.el9", "pkg:rpm/redhat/bash@5.1.8-6.el9")

        _, fixed, _ = run_creator(b)

        assert len(fixed) == 1
        assert fixed[0].package.arch == "x86_64"

    def test_different_versions_are_separate_records(self):
        b = bash_document()
        add_fixed(b, "bash-0:5.1.8-9.el9.x86_64", "pkg:rpm/redhat/bash@5.1.8-9.el9?arch=x86_64")

        _, fixed, _ = run_creator(b)

        assert [v.fixed_in_version for v in fixed] == ["0:5.1.8-6.el9", "0:5.1.8-9.el9"]

    def test_different_repositories_are_separate_records(self):
        b = bash_document()
        b.repo("BaseOS-9.0.0.Z.EUS", cpe="cpe:/o:redhat:rhel_eus:9.0::baseos")
        b.fixed(b.relate("bash-0:5.1.8-6.el9.x86_64", "BaseOS-9.0.0.Z.EUS"))

        _, fixed, _ = run_creator(b)

        assert len(fixed) == 2
        assert fixed[1].repo.name == "cpe:2.3:o:redhat:rhel_eus:9.0:*:baseos:*:*:*:*:*"

    def test_records_share_repository_objects(self):
        b = bash_document()
        add_fixed(b, "zsh-0:5.8-9.el9.x86_64", "pkg:rpm/redhat/zsh@5.8-9.el9?arch=x86_64")

        _, fixed, _ = run_creator(b)

        assert len(fixed) == 2
        assert fixed[0].repo is fixed[1].repo

    def test_epoch_qualifier(self):
        b = CsafBuilder()
        b.repo("BaseOS-9.2.0.Z.MAIN")
        add_fixed(b, "openssl-1:3.0.7-18.el9_2.x86_64",
                  "pkg:rpm/redhat/openssl@3.0.7-18.el9_2?arch=x86_64&epoch=1")

        _, fixed, _ = run_creator(b)

        assert fixed[0].fixed_in_version == "1:3.0.7-18.el9_2"

    def test_module_package(self):
        b = CsafBuilder("CVE-2023-32006")
        b.repo("AppStream-8.6.0.Z.EUS", cpe="cpe:/a:redhat:rhel_eus:8.6::appstream")
        b.product("nodejs:16:8060020220829:ad008a3a", purl="pkg:rpmmod/redhat/nodejs@16:8060020220829:ad008a3a")
        module = b.relate("nodejs:16:8060020220829:ad008a3a", "AppStream-8.6.0.Z.EUS")
        b.product("nodejs-1:16.20.2-1.module+el8.6.0+19876+a2f9f5a0.x86_64",
                  purl="pkg:rpm/redhat/nodejs@16.20.2-1.module%2Bel8.6.0%2B19876%2Ba2f9f5a0?arch=x86_64&epoch=1")
        b.fixed(b.relate("nodejs-1:16.20.2-1.module+el8.6.0+19876+a2f9f5a0.x86_64", module))

        _, fixed, _ = run_creator(b)

        assert len(fixed) == 1
        assert fixed[0].package.name == "nodejs"
        assert fixed[0].package.module == "nodejs:16"
        assert fixed[0].fixed_in_version == "1:16.20.2-1.module+el8.6.0+19876+a2f9f5a0"
        assert fixed[0].repo.name == "cpe:2.3:a:redhat:rhel_eus:8.6:*:appstream:*:*:*:*:*"

    def test_bad_module_purl_degrades_to_no_module(self):
        b = CsafBuilder()
        b.repo("AppStream-9.2.0.Z.MAIN")
        b.product("nodejs:18", purl="pkg:rpmmod/fedora/nodejs@18:1:2")
        module = b.relate("nodejs:18", "AppStream-9.2.0.Z.MAIN")
        b.product("nodejs-1:18.0.0-1.x86_64", purl="pkg:rpm/redhat/nodejs@18.0.0-1?arch=x86_64&epoch=1")
        b.fixed(b.relate("nodejs-1:18.0.0-1.x86_64", module))

        _, fixed, _ = run_creator(b)

        assert len(fixed) == 1
        assert fixed[0].package.module == ""


class TestFixedFiltering:

    def test_kernel_is_filtered_by_purl_name(self):
        b = bash_document()
        add_fixed(b, "kernel-rt-0:5.14.0-284.el9.x86_64", "pkg:rpm/redhat/kernel-rt@5.14.0-284.el9?arch=x86_64")

        creator, fixed, _ = run_creator(b)

        assert [v.package.name for v in fixed] == ["bash"]
        assert creator.skipped["kernel"] == 1

    def test_unrelated_product_is_skipped(self):
        b = bash_document()
        b.fixed("BaseOS-9.2.0.Z.MAIN:zsh-0:5.8-9.el9.x86_64")

        creator, fixed, _ = run_creator(b)

        assert len(fixed) == 1
        assert creator.skipped["unrelated"] == 1

    def test_repository_without_cpe_is_skipped(self):
        b = CsafBuilder()
        b.repo("BaseOS-9.2.0.Z.MAIN", cpe=None)
        add_fixed(b, "bash-0:5.1.8-6.el9.x86_64", BASH_PURL)

        creator, fixed, _ = run_creator(b)

        assert fixed == []
        assert creator.skipped["missing_cpe"] == 1

    def test_package_without_purl_is_skipped(self):
        b = CsafBuilder()
        b.repo("BaseOS-9.2.0.Z.MAIN")
        add_fixed(b, "bash-0:5.1.8-6.el9.x86_64", None)

        creator, fixed, _ = run_creator(b)

        assert fixed == []
        assert creator.skipped["missing_purl"] == 1

    def test_non_redhat_purl_is_skipped(self):
        b = CsafBuilder()
        b.repo("BaseOS-9.2.0.Z.MAIN")
        add_fixed(b, "bash-0:5.1.8-6.fc38.x86_64", "pkg:rpm/fedora/bash@5.1.8-6.fc38?arch=x86_64")

        creator, fixed, _ = run_creator(b)

        assert fixed == []
        assert creator.skipped["not_redhat_rpm"] == 1

    def test_zero_score_without_impact_is_excluded(self):
        b = CsafBuilder()
        b.repo("BaseOS-9.2.0.Z.MAIN")
        add_fixed(b, "bash-0:5.1.8-6.el9.x86_64", BASH_PURL, cvss=("3", CVSS3_VECTOR, 0.0), impact=None)

        creator, fixed, _ = run_creator(b)

        assert fixed == []
        assert creator.skipped["no_severity"] == 1

    def test_excluded_entry_does_not_block_later_architectures(self):
        b = CsafBuilder()
        b.repo("BaseOS-9.2.0.Z.MAIN")
        add_fixed(b, "bash-0:5.1.8-6.el9.x86_64", BASH_PURL, cvss=("3", CVSS3_VECTOR, 0.0), impact=None)
        add_fixed(b, "bash-0:5.1.8-6.el9.aarch64", "pkg:rpm/redhat/bash@5.1.8-6.el9?arch=aarch64")

        _, fixed, _ = run_creator(b)

        assert len(fixed) == 1
        assert fixed[0].package.arch == "aarch64"

    def test_zero_score_with_impact_is_kept(self):
        b = CsafBuilder()
        b.repo("BaseOS-9.2.0.Z.MAIN")
        add_fixed(b, "bash-0:5.1.8-6.el9.x86_64", BASH_PURL, cvss=("3", CVSS3_VECTOR, 0.0), impact="Low")

        _, fixed, _ = run_creator(b)

        assert len(fixed) == 1
        assert fixed[0].normalized_severity == Severity.LOW

    def test_no_score_and_no_impact_is_kept_as_unknown(self):
        b = CsafBuilder()
        b.repo("BaseOS-9.2.0.Z.MAIN")
        add_fixed(b, "bash-0:5.1.8-6.el9.x86_64", BASH_PURL, cvss=None, impact=None)

        _, fixed, _ = run_creator(b)

        assert len(fixed) == 1
        assert fixed[0].severity == "Unknown"
        assert fixed[0].normalized_severity == Severity.UNKNOWN

    def test_invalid_vector_fails_the_document(self):
        b = CsafBuilder()
        b.repo("BaseOS-9.2.0.Z.MAIN")
        add_fixed(b, "bash-0:5.1.8-6.el9.x86_64", BASH_PURL, cvss=("3", "CVSS:3.1/AV:bogus", 5.0))

        with pytest.raises(InvalidVectorError):
            run_creator(b)

    def test_unbindable_cpe_fails_the_document(self):
        b = CsafBuilder()
        b.repo("BaseOS-9.2.0.Z.MAIN", cpe="cpe:/x:redhat:enterprise_linux:9")
        add_fixed(b, "bash-0:5.1.8-6.el9.x86_64", BASH_PURL)

        with pytest.raises(CPEError):
            run_creator(b)


class TestKnownAffected:

    def affected_doc(self, purl=None):
        b = CsafBuilder("CVE-2024-0002")
        b.repo("red_hat_enterprise_linux_9")
        b.product("podman", purl=purl)
        b.affected(b.relate("podman", "red_hat_enterprise_linux_9"))
        return b

    def test_without_purl_uses_product_id(self):
        _, fixed, affected = run_creator(self.affected_doc())

        assert fixed == []
        assert len(affected) == 1
        vuln = affected[0]
        assert vuln.package.name == "podman"
        assert vuln.package.kind == PackageKind.SOURCE
        assert vuln.package.arch == ""
        assert vuln.arch_operation == ArchOp.INVALID
        assert vuln.fixed_in_version == ""
        assert vuln.normalized_severity == Severity.MEDIUM
        assert vuln.repo.name == RHEL9_NAME

    def test_purl_name_is_used(self):
        _, _, affected = run_creator(self.affected_doc(purl="pkg:rpm/redhat/podman"))

        assert affected[0].package.name == "podman"

    def test_non_redhat_purl_is_skipped(self):
        creator, _, affected = run_creator(self.affected_doc(purl="pkg:oci/podman"))

        assert affected == []
        assert creator.skipped["not_redhat_rpm"] == 1

    def test_kernel_is_filtered_by_product_id(self):
        b = CsafBuilder()
        b.repo("red_hat_enterprise_linux_9")
        b.product("kernel-rt")
        b.affected(b.relate("kernel-rt", "red_hat_enterprise_linux_9"))

        creator, _, affected = run_creator(b)

        assert affected == []
        assert creator.skipped["kernel"] == 1

    def test_duplicates_are_kept(self):
        b = self.affected_doc()
        b.repo("red_hat_enterprise_linux_9_eus", cpe="cpe:/o:redhat:rhel_eus:9")
        b.affected(b.relate("podman", "red_hat_enterprise_linux_9_eus"))

        _, _, affected = run_creator(b)

        assert [v.package.name for v in affected] == ["podman", "podman"]

    def test_no_errata_link(self):
        _, _, affected = run_creator(self.affected_doc())

        assert "errata" not in affected[0].links

    def test_no_score_is_unknown_severity(self):
        b = CsafBuilder("CVE-2024-0002")
        b.repo("red_hat_enterprise_linux_9")
        b.product("podman")
        b.affected(b.relate("podman", "red_hat_enterprise_linux_9"), cvss=None)

        _, _, affected = run_creator(b)

        assert len(affected) == 1
        assert affected[0].severity == "Unknown"
        assert affected[0].normalized_severity == Severity.MEDIUM


def test_fixed_and_affected_in_one_document():
    b = bash_document()
    b.product("zsh")
    b.affected(b.relate("zsh", "BaseOS-9.2.0.Z.MAIN"))

    _, fixed, affected = run_creator(b)

    assert [v.package.kind for v in fixed] == [PackageKind.BINARY]
    assert [v.package.kind for v in affected] == [PackageKind.SOURCE]
