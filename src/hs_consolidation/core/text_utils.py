# core/text_utils.py

"""
Text utilities for product matching and result labelling.

This module provides:

    - Helpers for normalizing and tokenizing listing / catalog text
    - Weighted token-overlap scoring used by the category and HS matchers
    - Word-level Jaccard similarity for the fuzzy name pass
    - TF-IDF–based labels for groups of product names
"""

# Type hints
from __future__ import annotations
from typing import FrozenSet, Iterable, List, Sequence

# External dependencies
import numpy as np
import regex as re
from collections import Counter

# Sklearn dependencies
from sklearn.feature_extraction.text import TfidfVectorizer


STOPWORDS: FrozenSet[str] = frozenset({
    "a", "an", "the", "and", "or", "but",
    "is", "are", "was", "were", "be", "been", "being",
    "in", "on", "at", "to", "for", "with", "about", "of",
    "that", "this", "these", "those",
})

_PUNCT = re.compile(r"[^\w\s]")
_WS = re.compile(r"\s+")


# ============================================================
#   Basic text normalization / tokenization helpers
# ============================================================

def normalize_text(text) -> str:
    """Coerce to string and collapse whitespace."""
    if text is None:
        return ""
    s = str(text)
    s = _WS.sub(" ", s)
    return s.strip()


def tokenize(text) -> List[str]:
    """
    Tokenizer used for overlap scoring.

    - Lowercase
    - Strip punctuation
    - Split on whitespace
    - Drop stopwords and single-character tokens
    """
    s = _PUNCT.sub(" ", normalize_text(text).lower())
    return [t for t in s.split() if len(t) > 1 and t not in STOPWORDS]


def token_weight(token: str) -> int:
    """Longer tokens carry more signal than short ones."""
    return 2 if len(token) > 3 else 1


def _weight(tokens: Iterable[str]) -> int:
    return sum(token_weight(t) for t in tokens)


# ============================================================
#   Overlap scoring
# ============================================================

def weighted_overlap(text_tokens: Iterable[str], profile_tokens: Iterable[str]) -> float:
    """
    Weighted overlap of an input text against a catalog profile.

    score = w(shared) / (w(shared) + w(input tokens not shared))

    The denominator only counts the input side, so long catalog profiles
    (many examples and keywords) are not penalised for their length.

    Returns
    -------
    float
        Score in [0, 1]; 0.0 if the input has no tokens.
    """
    text_set = set(text_tokens)
    if not text_set:
        return 0.0
    shared = text_set & set(profile_tokens)
    shared_w = _weight(shared)
    total_w = shared_w + _weight(text_set - shared)
    return shared_w / total_w if total_w else 0.0


def word_jaccard(a, b) -> float:
    """Plain Jaccard over lowercase whitespace-separated words."""
    wa = set(normalize_text(a).lower().split())
    wb = set(normalize_text(b).lower().split())
    if not wa or not wb:
        return 0.0
    return len(wa & wb) / len(wa | wb)


# ============================================================
#   TF-IDF–based labels (robust)
# ============================================================

def tfidf_cluster_label(
    texts: Sequence[str],
    max_words: int = 3,
    min_df: int = 1,
    max_df: float = 1.0,
) -> str:
    """
    Short title-cased label for a group of product names.

    Terms are ranked by their mean TF-IDF weight across the names, with
    alphabetical order breaking ties. When the vectorizer keeps no terms
    (only stopwords, say) the most frequent tokens are used instead.

    Parameters
    ----------
    texts :
        Names of the products in one result group.
    max_words :
        Upper bound on label length, in words.
    min_df, max_df :
        Passed through to `TfidfVectorizer`.

    Returns
    -------
    str
        The label, or "misc" when nothing usable remains.
    """
    docs = [normalize_text(t) for t in texts if normalize_text(t)]
    if not docs:
        return "misc"

    vec = TfidfVectorizer(
        lowercase=True,
        token_pattern=r"\b\w\w+\b",
        stop_words=list(STOPWORDS),
        min_df=min_df,
        max_df=max_df,
    )

    try:
        X = vec.fit_transform(docs)
    except ValueError:
        # Typical case: "After pruning, no terms remain" or only stopwords
        tokens: List[str] = []
        for d in docs:
            tokens.extend(tokenize(d))
        if not tokens:
            return "misc"
        counts = Counter(tokens)
        top_tokens = [w for w, _ in counts.most_common(max_words)]
        return " ".join(top_tokens).title()

    if X.shape[1] == 0:
        return "misc"

    terms = np.array(vec.get_feature_names_out())
    scores = np.asarray(X.mean(axis=0)).ravel()

    # Rank by mean TF-IDF; ties broken alphabetically for stable labels
    order = sorted(range(len(terms)), key=lambda i: (-scores[i], terms[i]))

    label_tokens: List[str] = []
    for idx in order:
        if scores[idx] <= 0:
            continue
        label_tokens.append(str(terms[idx]))
        if len(label_tokens) >= max_words:
            break

    if not label_tokens:
        return "misc"

    return " ".join(label_tokens).title()


# ============================================================
#   Product text composition
# ============================================================

def product_text(product) -> str:
    """
    Text used to embed and match a product listing.

    Name, description and free-text category, followed by any string
    attributes rendered as "key: value".
    """
    parts = [product.name, product.description or "", product.category or ""]
    for key, value in (product.attributes or {}).items():
        if isinstance(value, str) and value.strip():
            parts.append(f"{key}: {value}")
    return normalize_text(" ".join(p for p in parts if p))
