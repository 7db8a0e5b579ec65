# core/category_matcher.py

"""
Heuristic category matching.

Each catalog category is reduced to a token profile built from its name,
description, keywords, examples and alternate names. Product text is scored
against every profile with weighted token overlap:

    Catalog category
        ↑  (weighted overlap ≥ confidence_threshold / 2)
    Fuzzy name pass (word Jaccard on name / alternate names)
        ↑
    Default category (first catalog entry)

A cluster of similar products is then split by assigned category, and each
group gets a confidence made of the mean member similarity plus a small,
bounded bonus for group size.
"""

# Type hints
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import logging

# Internal dependencies
from ..config.settings import Settings, get_settings
from ..models import ProductCategory, ProductVariant, ResultSource
from ..util.errors import CatalogError
from .text_utils import product_text, tokenize, weighted_overlap, word_jaccard

logger = logging.getLogger(__name__)


@dataclass
class ProductMatch:
    product: ProductVariant
    category: ProductCategory
    similarity: float
    kind: str  # "overlap", "fuzzy" or "default"


@dataclass
class CategoryAssignment:
    category: ProductCategory
    products: List[ProductVariant]
    confidence: float
    source: ResultSource


class CategoryMatcher:
    """
    Ranks catalog categories for free text and assigns products to them.

    Parameters
    ----------
    categories :
        The category catalog. Order matters: it breaks score ties after
        `priority`, and the first entry is the default category.
    settings :
        Thresholds and confidence constants.
    """

    def __init__(
        self,
        categories: Sequence[ProductCategory],
        settings: Optional[Settings] = None,
    ):
        if not categories:
            raise CatalogError("Category catalog is empty")
        self.categories: List[ProductCategory] = list(categories)
        self.settings = settings or get_settings()
        self._profiles = [frozenset(tokenize(c.profile_text())) for c in self.categories]

        self._lookup: Dict[str, ProductCategory] = {}
        for c in self.categories:
            for key in (c.id, c.name, *c.alternate_names):
                self._lookup.setdefault(key.strip().lower(), c)

    # ============================================================
    # Catalog lookup
    # ============================================================

    def find_category(self, key: str) -> Optional[ProductCategory]:
        """Find a category by id, name or alternate name (case-insensitive)."""
        if not key:
            return None
        return self._lookup.get(str(key).strip().lower())

    @property
    def default_category(self) -> ProductCategory:
        return self.categories[0]

    # ============================================================
    # Scoring
    # ============================================================

    def rank(self, text: str) -> List[Tuple[ProductCategory, float]]:
        """
        Score `text` against every category profile.

        Returns
        -------
        list of (category, score)
            Sorted by score descending, then priority ascending, then
            catalog order.
        """
        tokens = tokenize(text)
        scored = [
            (weighted_overlap(tokens, profile), c.priority, idx)
            for idx, (c, profile) in enumerate(zip(self.categories, self._profiles))
        ]
        scored.sort(key=lambda t: (-t[0], t[1], t[2]))
        return [(self.categories[idx], score) for score, _, idx in scored]

    def fuzzy_name_match(self, name: str) -> Optional[ProductCategory]:
        best: Optional[ProductCategory] = None
        best_sim = self.settings.FUZZY_NAME_MIN_SIMILARITY
        for c in self.categories:
            sim = max(word_jaccard(name, n) for n in (c.name, *c.alternate_names))
            if sim > best_sim:
                best, best_sim = c, sim
        return best

    def match_product(self, product: ProductVariant) -> ProductMatch:
        ranked = self.rank(product_text(product))
        best, score = ranked[0]
        if score >= self.settings.CONFIDENCE_THRESHOLD / 2:
            return ProductMatch(product, best, score, "overlap")

        fuzzy = self.fuzzy_name_match(product.name)
        if fuzzy is not None:
            return ProductMatch(product, fuzzy, self.settings.SECONDARY_MATCH_CONFIDENCE, "fuzzy")

        return ProductMatch(
            product,
            self.default_category,
            self.settings.DEFAULT_MATCH_CONFIDENCE,
            "default",
        )

    # ============================================================
    # Cluster-level assignment
    # ============================================================

    def group_confidence(self, similarities: Sequence[float]) -> float:
        """
        Mean similarity plus a size bonus, capped below 1.0.
        """
        if not similarities:
            return 0.0
        s = self.settings
        mean = sum(similarities) / len(similarities)
        bonus = min(s.SIZE_BONUS_MAX, s.SIZE_BONUS_PER_ITEM * len(similarities))
        return max(0.0, min(s.CONFIDENCE_CEILING, mean + bonus))

    def match_cluster(self, products: Sequence[ProductVariant]) -> List[CategoryAssignment]:
        """
        Assign every product of a cluster and group them by category.

        Members that land on different categories form separate groups,
        in order of first appearance.
        """
        groups: Dict[str, List[ProductMatch]] = {}
        for p in products:
            m = self.match_product(p)
            groups.setdefault(m.category.id, []).append(m)

        out: List[CategoryAssignment] = []
        for matches in groups.values():
            all_default = all(m.kind == "default" for m in matches)
            out.append(
                CategoryAssignment(
                    category=matches[0].category,
                    products=[m.product for m in matches],
                    confidence=self.group_confidence([m.similarity for m in matches]),
                    source=ResultSource.default if all_default else ResultSource.heuristic,
                )
            )
        logger.debug(
            "match.cluster n=%d groups=%s",
            len(products),
            ",".join(a.category.id for a in out),
        )
        return out
