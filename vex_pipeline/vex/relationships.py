"""
Resolve advisory product ids through "default_component_of" relationships.

An advisory entry such as "AppStream-8.6.0.Z.EUS:nodejs:16:nodejs-1:16.20.2"
names a composite product defined by a relationship. Each side of that
relationship may itself be a composite, so the walk expands both sides
depth first (left before right) until only leaf product ids remain:

    [package, repository]            -> (package, "", repository)
    [package, module, repository]    -> (package, module, repository)

Chains longer than three have not been seen in published advisories; the
id next to the repository is taken as the module.
"""
from typing import List, Optional, Protocol, Set, Tuple

from csaf.document import Relationship
from .errors import AmbiguousRelationshipError, CyclicRelationshipError, NoRelationshipError

DEFAULT_COMPONENT_OF = "default_component_of"


class RelationshipLookup(Protocol):
    def find_relationship(self, product_id: str, category: str) -> Optional[Relationship]:
        ...


def walk_relationships(product_id: str, doc: RelationshipLookup) -> Tuple[str, str, str]:
    """
    Resolve a product id to (package_id, module_id or "", repository_id).

    Raises:
        NoRelationshipError: No relationship defines product_id
        AmbiguousRelationshipError: Fewer than two leaf ids were found
        CyclicRelationshipError: The relationships loop back on themselves
    """
    rel = doc.find_relationship(product_id, DEFAULT_COMPONENT_OF)
    if rel is None:
        raise NoRelationshipError(product_id)

    comps = extract_product_names(product_id, rel, doc, {product_id})
    if len(comps) == 2:
        return comps[0], "", comps[1]
    if len(comps) > 2:
        return comps[0], comps[-2], comps[-1]
    raise AmbiguousRelationshipError(product_id)


def extract_product_names(
    root_id: str,
    rel: Relationship,
    doc: RelationshipLookup,
    seen: Set[str],
) -> List[str]:
    """
    Return the leaf product ids under rel, product_ref side first.

    For product_ref=a_pkg, relates_to=a_repo:a_module and a second
    relationship a_module -> a_repo defining "a_repo:a_module", the result
    is ["a_pkg", "a_module", "a_repo"].
    """
    comps: List[str] = []
    for ref in (rel.product_ref, rel.relates_to_product_ref):
        child = doc.find_relationship(ref, DEFAULT_COMPONENT_OF)
        if child is None:
            comps.append(ref)
            continue
        if ref in seen:
            raise CyclicRelationshipError(root_id, ref)
        comps.extend(extract_product_names(root_id, child, doc, seen | {ref}))
    return comps
