"""
Per-document lookup caches.

Advisories reference the same repository and package products many times;
these caches avoid walking the product tree or rebuilding Repository
objects for each reference. A DocumentContext owns one of each and is
discarded once its document has been processed.
"""
from dataclasses import dataclass, field
from typing import Dict, Optional

from csaf.document import Document, Product
from .cpe import WFN
from .models import REPO_KEY, Repository


class ProductCache:
    """Memoizes ProductTree.find_product_by_id, including misses."""

    def __init__(self):
        self._cache: Dict[str, Optional[Product]] = {}

    def get(self, product_id: str, doc: Document) -> Optional[Product]:
        if product_id in self._cache:
            return self._cache[product_id]
        product = doc.product_tree.find_product_by_id(product_id)
        self._cache[product_id] = product
        return product

    def __len__(self) -> int:
        return len(self._cache)


class RepoCache:
    """Builds one Repository per distinct WFN."""

    def __init__(self, key: str = REPO_KEY):
        self.key = key
        self._cache: Dict[str, Repository] = {}

    def get(self, wfn: WFN) -> Repository:
        name = str(wfn)
        repo = self._cache.get(name)
        if repo is None:
            repo = Repository(cpe=wfn, name=name, key=self.key)
            self._cache[name] = repo
        return repo

    def __len__(self) -> int:
        return len(self._cache)


@dataclass
class DocumentContext:
    """Lookup state scoped to a single document."""
    doc: Document
    products: ProductCache = field(default_factory=ProductCache)
    repos: RepoCache = field(default_factory=RepoCache)

    def product(self, product_id: str) -> Optional[Product]:
        return self.products.get(product_id, self.doc)
