# core/clustering.py

"""
Agglomerative (bottom-up) clustering of products with average linkage.

Every product starts as its own cluster. At each step the pair of clusters
with the highest mean pairwise similarity is merged, until either a single
cluster remains or the best pair falls below the similarity threshold.

The pair search is a plain rescan of all cluster pairs per merge. Batches
are small (tens to low hundreds of listings) so the quadratic scan is fine.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import List, Mapping, Sequence

import numpy as np

from .similarity_matrix import build_similarity_matrix
from ..util.timing import timed

logger = logging.getLogger(__name__)


@dataclass
class ClusteringResult:
    clusters: List[List[str]]
    merge_count: int = 0
    degraded: bool = False
    similarity: np.ndarray | None = field(default=None, repr=False)

    @property
    def n_clusters(self) -> int:
        return len(self.clusters)


def singleton_clusters(ids: Sequence[str]) -> List[List[str]]:
    return [[pid] for pid in ids]


def _average_linkage(sim: np.ndarray, a: List[int], b: List[int]) -> float:
    return float(sim[np.ix_(a, b)].mean())


def agglomerative_average_linkage(
    ids: Sequence[str],
    sim: np.ndarray,
    threshold: float,
) -> ClusteringResult:
    """
    Cluster `ids` given their similarity matrix.

    Parameters
    ----------
    ids :
        Product ids; ids[i] corresponds to row/column i of `sim`.
    sim :
        Square similarity matrix.
    threshold :
        Merging stops once the best average similarity is below this value.

    Returns
    -------
    ClusteringResult
        Disjoint clusters covering every id, plus the number of merges
        performed (never more than len(ids) - 1).
    """
    n = len(ids)
    if sim.shape != (n, n):
        raise ValueError(f"Similarity matrix shape {sim.shape} does not match {n} ids")

    clusters: List[List[int]] = [[i] for i in range(n)]
    merges = 0

    while len(clusters) > 1:
        best = -np.inf
        best_pair = None

        for i in range(len(clusters)):
            for j in range(i + 1, len(clusters)):
                avg = _average_linkage(sim, clusters[i], clusters[j])
                # Strict comparison: ties keep the first pair scanned
                if avg > best:
                    best = avg
                    best_pair = (i, j)

        if best_pair is None or best < threshold:
            break

        i, j = best_pair
        merged = clusters[i] + clusters[j]
        logger.debug("cluster.merge sizes=%d+%d sim=%.3f", len(clusters[i]), len(clusters[j]), best)
        # j > i, so removing j first keeps i's position valid
        del clusters[j]
        del clusters[i]
        clusters.append(merged)
        merges += 1

    return ClusteringResult(
        clusters=[[ids[k] for k in c] for c in clusters],
        merge_count=merges,
        similarity=sim,
    )


def cluster_products(
    ids: Sequence[str],
    embeddings: Mapping[str, Sequence[float]],
    threshold: float,
) -> ClusteringResult:
    """
    Build the similarity matrix and cluster it, degrading to singletons.

    Any failure here (including mismatched embedding dimensions coming back
    from the gateway) yields one singleton cluster per product so that the
    run can still produce a result for every listing.
    """
    ids = list(ids)
    if len(ids) <= 1:
        return ClusteringResult(clusters=singleton_clusters(ids))

    try:
        with timed(logger, "cluster", n=len(ids), threshold=threshold):
            sim = build_similarity_matrix(ids, embeddings)
            result = agglomerative_average_linkage(ids, sim, threshold)
    except Exception:
        logger.exception("cluster.failed n=%d; using singleton clusters", len(ids))
        return ClusteringResult(clusters=singleton_clusters(ids), degraded=True)

    logger.info("cluster.result n=%d clusters=%d merges=%d", len(ids), result.n_clusters, result.merge_count)
    return result
