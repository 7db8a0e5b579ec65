# core/consolidation_engine.py

from __future__ import annotations
import asyncio
import hashlib
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import httpx
import numpy as np

from ..catalogs import load_categories
from ..config.settings import Settings, get_settings
from ..gateways.embedding import EmbeddingGateway, fetch_embeddings
from ..gateways.llm import LLMCategorizer
from ..models import CategoryResult, ProductCategory, ProductVariant, ResultSource
from ..util.errors import (
    DuplicateProductError,
    EmbeddingGatewayError,
    EmptyBatchError,
    LLMResponseError,
)
from ..util.timing import timed
from .attribute_layer import extract_attributes
from .category_matcher import CategoryAssignment, CategoryMatcher
from .clustering import ClusteringResult, cluster_products, singleton_clusters
from .fallback import FallbackClassifier
from .similarity_cache import SimilarityCache
from .text_utils import product_text, tfidf_cluster_label

logger = logging.getLogger(__name__)

EMBEDDING_PREFIX = "embedding:"
DECISION_PREFIX = "category-consolidation:"


@dataclass(frozen=True)
class CachedDecision:
    """A categorization decision for part of a cluster, stored without product data."""

    category_id: str
    member_ids: Tuple[str, ...]
    confidence: float
    source: ResultSource


class ConsolidationEngine:
    """
    Turns a batch of raw product listings into category results.

    Responsibilities:
        - Retrieve (and cache) one embedding per listing
        - Cluster listings by average-linkage cosine similarity
        - Assign each cluster to catalog categories (LLM when configured,
          heuristic matcher otherwise) and cache the decision
        - Extract representative attributes per result
        - Degrade to singleton clusters / regex fallback instead of failing
    """

    # ============================================================
    # Initialization
    # ============================================================

    def __init__(
        self,
        categories: Sequence[ProductCategory],
        gateway: EmbeddingGateway,
        cache: Optional[SimilarityCache] = None,
        settings: Optional[Settings] = None,
        llm: Optional[LLMCategorizer] = None,
        fallback: Optional[FallbackClassifier] = None,
    ):
        self.settings: Settings = settings or get_settings()

        # Raises CatalogError for an empty catalog
        self.matcher = CategoryMatcher(categories, self.settings)
        self.categories: List[ProductCategory] = self.matcher.categories
        self._by_id: Dict[str, ProductCategory] = {c.id: c for c in self.categories}

        self.gateway = gateway
        self.cache = cache
        self.llm = llm
        self.fallback = fallback or FallbackClassifier()

    @classmethod
    def from_catalog_file(
        cls,
        gateway: EmbeddingGateway,
        path=None,
        **kwargs,
    ) -> "ConsolidationEngine":
        """Engine over the category catalog at `path` (bundled catalog if None)."""
        return cls(load_categories(path), gateway, **kwargs)

    @property
    def _caching(self) -> bool:
        return self.cache is not None and self.settings.USE_CACHING

    # ============================================================
    # Public API
    # ============================================================

    async def consolidate(self, products: Sequence[ProductVariant]) -> List[CategoryResult]:
        """
        Cluster and categorize a batch of listings.

        Every input product appears in exactly one returned result. Results
        are ordered by confidence, highest first.

        Raises
        ------
        EmptyBatchError
            If `products` is empty.
        DuplicateProductError
            If two products share an id.
        """
        products = list(products)
        self._validate_batch(products)
        by_id = {p.id: p for p in products}
        texts = {p.id: product_text(p) for p in products}

        logger.info("consolidate.start n=%d", len(products))
        with timed(logger, "consolidate", n=len(products)):
            try:
                clustering = await self._cluster(texts)
            except EmbeddingGatewayError as e:
                logger.warning("consolidate.degraded reason=%s", e)
                clusters = [[by_id[pid] for pid in c] for c in singleton_clusters(list(by_id))]
                return self._sorted(self.fallback.classify(clusters))

            clusters = [[by_id[pid] for pid in c] for c in clustering.clusters]
            try:
                results = await self._categorize_clusters(clusters, texts)
            except Exception:
                logger.exception("consolidate.categorize.failed; using fallback classifier")
                results = self.fallback.classify(clusters)

        logger.info(
            "consolidate.result n=%d clusters=%d results=%d",
            len(products), len(clusters), len(results),
        )
        return self._sorted(results)

    def consolidate_sync(self, products: Sequence[ProductVariant]) -> List[CategoryResult]:
        """Blocking convenience wrapper around `consolidate`."""
        return asyncio.run(self.consolidate(products))

    # ============================================================
    # Validation
    # ============================================================

    @staticmethod
    def _validate_batch(products: Sequence[ProductVariant]) -> None:
        if not products:
            raise EmptyBatchError()
        seen, dupes = set(), set()
        for p in products:
            if p.id in seen:
                dupes.add(p.id)
            seen.add(p.id)
        if dupes:
            raise DuplicateProductError(dupes)

    # ============================================================
    # Embeddings + clustering
    # ============================================================

    async def _embed(self, texts: Dict[str, str]) -> Dict[str, np.ndarray]:
        """
        Embeddings for every id that could get one, cache first.

        Raises
        ------
        EmbeddingGatewayError
            If no product at all has an embedding.
        """
        vectors: Dict[str, np.ndarray] = {}
        keys = {pid: self._embedding_key(text) for pid, text in texts.items()}

        if self._caching:
            for pid, key in keys.items():
                cached = self.cache.get(key)
                if cached is not None:
                    vectors[pid] = cached
            if vectors:
                logger.debug("embed.cache.hits n=%d", len(vectors))

        missing = {pid: texts[pid] for pid in texts if pid not in vectors}
        if missing:
            fetched, failed = await fetch_embeddings(
                self.gateway,
                missing,
                batch_size=self.settings.BATCH_SIZE,
                max_concurrent=self.settings.MAX_CONCURRENT_REQUESTS,
                timeout_seconds=self.settings.EMBEDDING_TIMEOUT_SECONDS,
            )
            if self._caching:
                for pid, vec in fetched.items():
                    self.cache.set(keys[pid], vec, self.settings.embedding_cache_ttl_seconds)
            vectors.update(fetched)

        if not vectors:
            raise EmbeddingGatewayError(f"No embeddings retrieved for any of {len(texts)} products")
        return vectors

    async def _cluster(self, texts: Dict[str, str]) -> ClusteringResult:
        vectors = await self._embed(texts)
        ids = list(texts)
        embedded = [pid for pid in ids if pid in vectors]
        result = cluster_products(embedded, vectors, self.settings.SIMILARITY_THRESHOLD)

        # Listings without an embedding each stand alone
        unembedded = [pid for pid in ids if pid not in vectors]
        if unembedded:
            logger.info("cluster.singletons n=%d reason=embedding_failed", len(unembedded))
            result.clusters.extend(singleton_clusters(unembedded))
            result.degraded = True
        return result

    # ============================================================
    # Categorization
    # ============================================================

    async def _categorize_clusters(
        self,
        clusters: List[List[ProductVariant]],
        texts: Dict[str, str],
    ) -> List[CategoryResult]:
        results: List[CategoryResult] = []
        for cluster in clusters:
            key = self._decision_key(cluster, texts)
            assignments = None
            if self._caching:
                cached = self.cache.get(key)
                if cached is not None:
                    logger.debug("categorize.cache.hit n=%d", len(cluster))
                    assignments = self._restore_decisions(cached, cluster)

            if assignments is None:
                assignments = await self._assign(cluster)
                if self._caching:
                    self.cache.set(key, self._decisions(assignments), self.settings.decision_cache_ttl_seconds)

            # Results are always built from this run's products
            results.extend(self._to_result(a) for a in assignments)
        return self._merge_same_category(results)

    @staticmethod
    def _decisions(assignments: Sequence[CategoryAssignment]) -> List[CachedDecision]:
        return [
            CachedDecision(
                category_id=a.category.id,
                member_ids=tuple(p.id for p in a.products),
                confidence=a.confidence,
                source=a.source,
            )
            for a in assignments
        ]

    def _restore_decisions(
        self,
        decisions: Sequence[CachedDecision],
        cluster: Sequence[ProductVariant],
    ) -> Optional[List[CategoryAssignment]]:
        """Cached decisions applied to the current products; None if they no longer fit."""
        members = {p.id: p for p in cluster}
        covered = [pid for d in decisions for pid in d.member_ids]
        if sorted(covered) != sorted(members) or any(d.category_id not in self._by_id for d in decisions):
            logger.info("categorize.cache.stale n=%d", len(cluster))
            return None
        return [
            CategoryAssignment(
                category=self._by_id[d.category_id],
                products=[members[pid] for pid in d.member_ids],
                confidence=d.confidence,
                source=d.source,
            )
            for d in decisions
        ]

    async def _assign(self, cluster: List[ProductVariant]) -> List[CategoryAssignment]:
        """LLM decision for the whole cluster when available, heuristic otherwise."""
        if self.llm is not None and self.llm.enabled:
            try:
                decision = await self.llm.categorize(cluster, self.categories)
                return [
                    CategoryAssignment(
                        category=self._by_id[decision.category_id],
                        products=list(cluster),
                        confidence=decision.confidence,
                        source=ResultSource.llm,
                    )
                ]
            except (httpx.HTTPError, LLMResponseError, asyncio.TimeoutError) as e:
                logger.warning("categorize.llm.failed n=%d error=%s; using heuristic matcher", len(cluster), e)
        return self.matcher.match_cluster(cluster)

    @staticmethod
    def _to_result(assignment: CategoryAssignment) -> CategoryResult:
        return CategoryResult(
            category=assignment.category,
            variants=list(assignment.products),
            confidence=assignment.confidence,
            attributes=extract_attributes(assignment.category, assignment.products),
            source=assignment.source,
            label=tfidf_cluster_label([p.name for p in assignment.products]),
        )

    @staticmethod
    def _merge_same_category(results: List[CategoryResult]) -> List[CategoryResult]:
        """
        One result per (category, source). Confidence becomes the
        size-weighted mean of the merged results.
        """
        merged: Dict[tuple, List[CategoryResult]] = {}
        for r in results:
            merged.setdefault((r.category.id, r.source), []).append(r)

        out: List[CategoryResult] = []
        for group in merged.values():
            if len(group) == 1:
                out.append(group[0])
                continue
            variants = [v for r in group for v in r.variants]
            weighted = sum(r.confidence * len(r.variants) for r in group) / len(variants)
            out.append(
                CategoryResult(
                    category=group[0].category,
                    variants=variants,
                    confidence=weighted,
                    attributes=extract_attributes(group[0].category, variants),
                    source=group[0].source,
                    label=tfidf_cluster_label([v.name for v in variants]),
                )
            )
        return out

    @staticmethod
    def _sorted(results: List[CategoryResult]) -> List[CategoryResult]:
        return sorted(results, key=lambda r: -r.confidence)

    # ============================================================
    # Cache keys
    # ============================================================

    @staticmethod
    def _embedding_key(text: str) -> str:
        return EMBEDDING_PREFIX + hashlib.sha1(text.encode("utf-8")).hexdigest()

    @staticmethod
    def _decision_key(cluster: Sequence[ProductVariant], texts: Dict[str, str]) -> str:
        ids = sorted(p.id for p in cluster)
        raw = "\n".join(f"{pid}\t{texts[pid]}" for pid in ids)
        return DECISION_PREFIX + hashlib.sha1(raw.encode("utf-8")).hexdigest()
