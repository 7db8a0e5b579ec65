"""
Core processing modules for the product consolidation engine.

This package contains:

    - consolidation_engine  → Orchestrator: embeddings → clusters → categories
    - similarity_cache      → Injected TTL cache (embeddings, decisions)
    - similarity_matrix     → Pairwise cosine similarity
    - clustering            → Average-linkage agglomerative clustering
    - category_matcher      → Weighted token-overlap category matching
    - attribute_layer       → Representative attribute extraction
    - fallback              → Regex-rule classifier for degraded runs
    - text_utils            → Tokenization, overlap scoring, TF-IDF labels
"""

from .consolidation_engine import ConsolidationEngine
from .similarity_cache import SimilarityCache
from .similarity_matrix import build_similarity_matrix, cosine_similarity
from .clustering import (
    agglomerative_average_linkage,
    cluster_products,
)
from .category_matcher import CategoryMatcher
from .attribute_layer import extract_attributes
from .fallback import FALLBACK_CONFIDENCE, FallbackClassifier
from .text_utils import (
    normalize_text,
    tokenize,
    weighted_overlap,
    tfidf_cluster_label,
)
