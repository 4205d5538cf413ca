"""
Package URL helpers for building vulnerability records.
"""
from typing import Optional

from packageurl import PackageURL

from csaf.document import Product
from .errors import ModulePurlError

KERNEL_PREFIX = "kernel"


def is_kernel(name: str) -> bool:
    # Containers cannot act on kernel fixes.
    return name.startswith(KERNEL_PREFIX)


def is_redhat_rpm(purl: PackageURL) -> bool:
    return purl.type == "rpm" and purl.namespace == "redhat"


def epoch_version(purl: PackageURL) -> str:
    """Return "epoch:version", defaulting the epoch to "0"."""
    epoch = (purl.qualifiers or {}).get("epoch", "0")
    return f"{epoch}:{purl.version}"


def purl_arch(purl: PackageURL) -> str:
    return (purl.qualifiers or {}).get("arch", "")


def create_package_key(repo: str, module: str, name: str, fixed_in: str) -> str:
    """
    Build an architecture-agnostic key for deduplicating fixed records.

    e.g. AppStream-8.2.0.Z.TUS:python36:3.6:python3-idle-0:3.6.8-24.el8_2.2
    """
    return f"{repo}:{module}:{name}-{fixed_in}"


def create_package_module(product: Optional[Product]) -> str:
    """
    Derive the module qualifier ("name:stream") from a module product's purl.

    Products without a purl helper have no qualifier.

    Raises:
        ModulePurlError: The purl is unparsable, not an rpmmod purl, or not
            in a Red Hat namespace
    """
    if product is None:
        return ""
    helper = product.identification_helper.get("purl")
    if not helper:
        return ""

    try:
        purl = PackageURL.from_string(helper)
    except ValueError as e:
        raise ModulePurlError(f"could not parse module purl {helper!r}: {e}") from e

    if purl.type != "rpmmod":
        raise ModulePurlError(f"invalid RPM module purl: {helper!r}")

    namespace = purl.namespace or ""
    if namespace == "redhat":
        stream = (purl.version or "").split(":", 1)[0]
        return f"{purl.name}:{stream}"
    if namespace.startswith("redhat/"):
        # e.g. pkg:rpmmod/redhat/postgresql:15/postgresql
        return namespace.split("/", 1)[1]
    raise ModulePurlError(f"non-Red Hat module purl: {helper!r}")
