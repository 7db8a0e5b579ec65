# core/similarity_matrix.py

"""
Pairwise cosine similarity over product embeddings.

The matrix is square and symmetric, indexed by the caller's id ordering,
with a fixed unit diagonal. A zero vector has similarity 0 with everything
(including another zero vector) rather than NaN.
"""

# Type hints
from __future__ import annotations
from typing import Mapping, Sequence

# External dependencies
import numpy as np

# Sklearn dependencies
from sklearn.preprocessing import normalize

# Internal dependencies
from ..util.errors import DimensionMismatchError


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors.

    Returns exactly 0.0 when either vector has zero norm.

    Raises
    ------
    DimensionMismatchError
        If the vectors differ in length.
    """
    va = np.asarray(a, dtype=float).ravel()
    vb = np.asarray(b, dtype=float).ravel()
    if va.shape != vb.shape:
        raise DimensionMismatchError(
            f"Vector dimensions differ: {va.shape[0]} vs {vb.shape[0]}"
        )
    na = np.linalg.norm(va)
    nb = np.linalg.norm(vb)
    if na == 0.0 or nb == 0.0:
        return 0.0
    sim = float(np.dot(va, vb) / (na * nb))
    return max(-1.0, min(1.0, sim))


def _stack_embeddings(
    ids: Sequence[str],
    embeddings: Mapping[str, Sequence[float]],
) -> np.ndarray:
    rows = []
    dim = None
    for pid in ids:
        if pid not in embeddings:
            raise DimensionMismatchError(f"No embedding supplied for product {pid!r}")
        row = np.asarray(embeddings[pid], dtype=float).ravel()
        if dim is None:
            dim = row.shape[0]
        elif row.shape[0] != dim:
            raise DimensionMismatchError(
                f"Embedding for {pid!r} has dimension {row.shape[0]}, expected {dim}"
            )
        rows.append(row)
    return np.vstack(rows)


def build_similarity_matrix(
    ids: Sequence[str],
    embeddings: Mapping[str, Sequence[float]],
) -> np.ndarray:
    """
    Build the pairwise cosine similarity matrix for `ids`.

    Parameters
    ----------
    ids :
        Stable ordering of product ids; row/column i corresponds to ids[i].
    embeddings :
        Mapping from product id to its embedding vector.

    Returns
    -------
    np.ndarray
        (n, n) symmetric matrix in [-1, 1] with a unit diagonal.

    Raises
    ------
    DimensionMismatchError
        If an id has no embedding or the vectors are not all the same length.
    """
    n = len(ids)
    if n == 0:
        return np.zeros((0, 0), dtype=float)

    X = _stack_embeddings(ids, embeddings)

    # Zero rows stay zero after L2 normalization, so their dot products are 0
    Xn = normalize(X, norm="l2", axis=1)
    full = Xn @ Xn.T

    # Upper triangle mirrored so the result is exactly symmetric
    upper = np.triu(full, k=1)
    sim = upper + upper.T
    np.clip(sim, -1.0, 1.0, out=sim)
    np.fill_diagonal(sim, 1.0)
    return sim
