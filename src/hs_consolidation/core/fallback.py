# core/fallback.py

"""
Last-resort classification used when the main pipeline cannot run.

Product names are checked against an ordered list of regex rules; the first
rule that matches names an ad-hoc category. Anything unmatched lands in
"Other Products". Confidence is fixed and deliberately below the matcher's
default-category confidence, and every result is marked as fallback.
"""

from __future__ import annotations
from typing import Dict, List, Sequence, Tuple

import logging
import regex as re

from ..models import CategoryResult, ProductCategory, ProductVariant, ResultSource
from .text_utils import tfidf_cluster_label

logger = logging.getLogger(__name__)


FALLBACK_CONFIDENCE = 0.3
OTHER_PRODUCTS = "Other Products"

FALLBACK_RULES: Tuple[Tuple[re.Pattern, str], ...] = (
    (re.compile(r"\bcorn\s*dog\b", re.IGNORECASE), "Corn Dogs"),
    (re.compile(r"\bcheese\b", re.IGNORECASE), "Cheese Products"),
    (re.compile(r"\bsnack|pocket|wrap\b", re.IGNORECASE), "Snack Items"),
    (re.compile(r"\bchicken\b", re.IGNORECASE), "Chicken Products"),
    (re.compile(r"\bbeef\b", re.IGNORECASE), "Beef Products"),
)

_SLUG = re.compile(r"[^a-z0-9]+")


def category_slug(name: str) -> str:
    return _SLUG.sub("-", name.lower()).strip("-")


def _adhoc_category(name: str) -> ProductCategory:
    return ProductCategory(
        id=category_slug(name),
        name=name,
        description=f"{name} (assigned by name rules)",
        priority=1000,
    )


class FallbackClassifier:
    """
    Regex-rule classifier over product names.

    Groups are formed within each cluster, so singleton clusters give
    one result per product.
    """

    def __init__(self, rules: Sequence[Tuple[re.Pattern, str]] = FALLBACK_RULES):
        self.rules = tuple(rules)

    def category_name(self, product: ProductVariant) -> str:
        for pattern, name in self.rules:
            if pattern.search(product.name or ""):
                return name
        return OTHER_PRODUCTS

    def classify(self, clusters: Sequence[Sequence[ProductVariant]]) -> List[CategoryResult]:
        results: List[CategoryResult] = []
        for cluster in clusters:
            groups: Dict[str, List[ProductVariant]] = {}
            for p in cluster:
                groups.setdefault(self.category_name(p), []).append(p)
            for name, members in groups.items():
                results.append(
                    CategoryResult(
                        category=_adhoc_category(name),
                        variants=list(members),
                        confidence=FALLBACK_CONFIDENCE,
                        attributes={},
                        source=ResultSource.fallback,
                        label=tfidf_cluster_label([m.name for m in members]),
                    )
                )
        logger.warning(
            "fallback.classify clusters=%d results=%d",
            len(clusters), len(results),
        )
        return results
