# src/core/similarity.py — v4
"""Cosine similarity utilities (numpy).

``cosine_similarity`` compares two vectors and is the primitive used by the
vector factor and the semantic matcher. ``cosine_similarity_matrix`` is the
batched form for two stacks of embeddings.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np


def has_vector(vector: Sequence[float] | None) -> bool:
    """True for a non-empty list or array; never relies on truthiness."""
    return vector is not None and len(vector) > 0


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Dot product over norms, in [-1, 1].

    Returns 0.0 for empty vectors, mismatched lengths, or when either
    vector is all zeros.
    """
    if len(a) == 0 or len(a) != len(b):
        return 0.0

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    denominator = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denominator == 0.0:
        return 0.0
    return float(np.dot(va, vb) / denominator)


def cosine_similarity_matrix(
    left: np.ndarray, right: np.ndarray | None = None
) -> np.ndarray:
    """Compute pairwise cosine similarity between rows of two matrices.

    Args:
        left: 2D array of shape (n, d).
        right: 2D array of shape (m, d). Defaults to ``left``.

    Returns:
        Matrix of shape (n, m) with values in [-1, 1]. Rows that are all
        zeros produce 0.0 similarities.

    Raises:
        ValueError: If inputs are not 2D or their widths differ.
    """
    if right is None:
        right = left
    if left.ndim != 2 or right.ndim != 2:
        raise ValueError(f"Expected 2D arrays, got {left.ndim}D and {right.ndim}D")
    if left.shape[0] == 0 or right.shape[0] == 0:
        return np.zeros((left.shape[0], right.shape[0]), dtype=np.float64)
    if left.shape[1] != right.shape[1]:
        raise ValueError(
            f"Dimension mismatch: {left.shape[1]} vs {right.shape[1]}"
        )

    left_norms = np.linalg.norm(left, axis=1, keepdims=True)
    right_norms = np.linalg.norm(right, axis=1, keepdims=True)
    left_unit = np.divide(
        left, left_norms, out=np.zeros_like(left, dtype=np.float64),
        where=left_norms != 0,
    )
    right_unit = np.divide(
        right, right_norms, out=np.zeros_like(right, dtype=np.float64),
        where=right_norms != 0,
    )
    return left_unit @ right_unit.T
