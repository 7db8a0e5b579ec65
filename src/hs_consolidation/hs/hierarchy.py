# hs/hierarchy.py

"""
HS-code suggestions for a product category and optional product text.

Without product text the service answers from the category alone: one
chapter-level suggestion per HS chapter the category is associated with.
With text, chapters, headings and subheadings are scored by weighted
token overlap; suggestions in the category's own chapters get a bounded
boost, weak suggestions are filtered out, and if nothing survives the
category's chapters are returned instead.
"""

from __future__ import annotations
import hashlib
import logging
from typing import List, Optional, Sequence, Union

from ..catalogs import load_categories, load_hs_nodes
from ..config.settings import Settings, get_settings
from ..core.category_matcher import CategoryMatcher
from ..core.similarity_cache import SimilarityCache
from ..core.text_utils import normalize_text, tokenize, weighted_overlap
from ..models import (
    HSCodeNode,
    HSCodeRequest,
    HSCodeSuggestion,
    ProductCategory,
)
from ..util.timing import timed
from .catalog import HSCatalog

logger = logging.getLogger(__name__)

CACHE_PREFIX = "hs-suggestions:"

# Navigation lists catalog entries; nothing is scored
NAVIGATION_CONFIDENCE = 0.0


def _suggestion(
    node: HSCodeNode,
    confidence: float,
    catalog: HSCatalog,
    depth: int = 1,
) -> HSCodeSuggestion:
    """
    Suggestion for `node`, with its direct children attached `depth` levels deep.

    Attached children carry the parent's confidence; they were not scored on
    their own.
    """
    children = []
    if depth > 0:
        children = [_suggestion(c, confidence, catalog, depth - 1) for c in catalog.children(node.code)]
    return HSCodeSuggestion(
        code=node.code,
        description=node.description,
        level=node.level,
        confidence=confidence,
        children=children,
        examples=list(node.examples),
        parent=node.parent,
    )


class HSCodeHierarchyService:
    """
    Parameters
    ----------
    catalog :
        Indexed HS nodes.
    categories :
        Category catalog, used to resolve the request's category and its
        HS chapter hints.
    cache :
        Optional shared cache. Suggestions are cached with the decision TTL.
    settings :
        Thresholds, suggestion limit and boost.
    """

    def __init__(
        self,
        catalog: HSCatalog,
        categories: Sequence[ProductCategory],
        cache: Optional[SimilarityCache] = None,
        settings: Optional[Settings] = None,
    ):
        self.catalog = catalog
        self.settings = settings or get_settings()
        self.matcher = CategoryMatcher(categories, self.settings)
        self.cache = cache
        self._profiles = {n.code: frozenset(tokenize(n.profile_text())) for n in catalog.nodes()}

    @classmethod
    def from_catalog_files(
        cls,
        hs_path=None,
        categories_path=None,
        **kwargs,
    ) -> "HSCodeHierarchyService":
        """Service over catalog files (bundled catalogs where a path is None)."""
        return cls(HSCatalog(load_hs_nodes(hs_path)), load_categories(categories_path), **kwargs)

    # ============================================================
    # Public API: suggestions
    # ============================================================

    def get_suggested_hs_codes(
        self,
        request: Union[HSCodeRequest, dict],
    ) -> List[HSCodeSuggestion]:
        """
        Rank HS codes for a category and optional product name/description.

        Returns
        -------
        List[HSCodeSuggestion]
            Sorted by confidence descending. Empty only when the category is
            unknown and there is no usable product text.
        """
        if not isinstance(request, HSCodeRequest):
            request = HSCodeRequest.model_validate(request)

        category = self.matcher.find_category(request.category)
        text = normalize_text(request.name) or normalize_text(request.description)

        if not text:
            # Category alone: chapters only, no text scoring
            return self.chapter_suggestions(category)

        use_cache = self.cache is not None and self.settings.USE_CACHING
        key = self._cache_key(request)
        if use_cache:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("hs.cache.hit key=%s", key)
                return list(cached)

        with timed(logger, "hs.suggest", category=request.category):
            suggestions = self._match_text(text, category)
            if not suggestions:
                logger.info("hs.suggest.empty category=%s; using category chapters", request.category)
                suggestions = self.chapter_suggestions(category)

        if use_cache:
            self.cache.set(key, list(suggestions), self.settings.decision_cache_ttl_seconds)
        return suggestions

    def chapter_suggestions(self, category: Optional[ProductCategory]) -> List[HSCodeSuggestion]:
        """One chapter suggestion per HS hint of `category`, in hint order."""
        if category is None:
            return []
        out: List[HSCodeSuggestion] = []
        for chapter in category.hs_code_hints:
            node = self.catalog.get(chapter)
            if node is None:
                logger.warning("hs.chapter.missing category=%s chapter=%s", category.id, chapter)
                continue
            out.append(_suggestion(node, self.settings.HS_CHAPTER_CONFIDENCE, self.catalog))
        return out

    def _match_text(
        self,
        text: str,
        category: Optional[ProductCategory],
    ) -> List[HSCodeSuggestion]:
        """
        Score every HS node against `text`, boost the category's chapters,
        drop anything under the threshold and keep the best few.
        """
        s = self.settings
        preferred = set(category.hs_code_hints) if category else set()
        tokens = tokenize(text)

        scored = []
        for node in self.catalog.nodes():
            score = weighted_overlap(tokens, self._profiles[node.code])
            if score <= 0:
                continue
            conf = min(s.CONFIDENCE_CEILING, score)
            if node.chapter in preferred:
                conf = min(s.CONFIDENCE_CEILING, conf + s.HS_PREFERRED_CHAPTER_BOOST)
            if conf < s.HS_CONFIDENCE_THRESHOLD:
                continue
            scored.append((conf, node))

        scored.sort(key=lambda t: (-t[0], t[1].code))
        return [_suggestion(node, conf, self.catalog) for conf, node in scored[: s.HS_MAX_SUGGESTIONS]]

    # ============================================================
    # Public API: navigation
    # ============================================================

    def get_children(self, code: str) -> List[HSCodeSuggestion]:
        """
        Navigate one level down from `code`.

        Returns an empty list for leaf or unknown codes, and also when the
        lookup itself fails.
        Navigation results are unscored and carry `NAVIGATION_CONFIDENCE`.
        """
        try:
            return [_suggestion(n, NAVIGATION_CONFIDENCE, self.catalog) for n in self.catalog.children(code)]
        except Exception:
            logger.exception("hs.children.failed code=%s", code)
            return []

    def get_details(self, code: str) -> Optional[HSCodeSuggestion]:
        node = self.catalog.get(code)
        return _suggestion(node, NAVIGATION_CONFIDENCE, self.catalog) if node is not None else None

    # ============================================================
    # Internals
    # ============================================================

    @staticmethod
    def _cache_key(request: HSCodeRequest) -> str:
        raw = "|".join([request.category.lower(), request.name or "", request.description or ""])
        return CACHE_PREFIX + hashlib.sha1(raw.encode("utf-8")).hexdigest()
