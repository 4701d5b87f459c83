"""
Vector Math - Similarity and normalization primitives for event embeddings

WHAT: Cosine similarity, scalar whitening, fixed-dimension validation
WHERE: eventgraph/runtime/retrieval/vector_math.py - leaf of the retrieval stack
WHO: Diagnostics, embedding service, and candidate scoring
TIME: O(d) per call, d = embedding dimension (384 for GTE-small)

Degenerate inputs never raise: a zero-norm vector has similarity 0.0 with
everything, and a zero-variance vector whitens to all zeros. Only shape errors
(mixed embedding dimensions) fail fast, since they indicate a caller bug.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

import numpy as np

EMBEDDING_DIMENSION = 384


class EmbeddingDimensionError(ValueError):
    """Raised when vectors of different lengths meet, or a vector has the wrong dimension."""


def as_array(vector: Sequence[float]) -> np.ndarray:
    """Convert a vector-like sequence into a float64 numpy array."""
    return np.asarray(vector, dtype=np.float64).reshape(-1)


def _unit_scaled(arr: np.ndarray) -> np.ndarray:
    """Divide by the largest magnitude so squared sums neither underflow nor overflow."""
    peak = float(np.max(np.abs(arr))) if arr.size else 0.0
    if peak == 0.0:
        return arr
    return arr / peak


def vector_norm(vector: Sequence[float]) -> float:
    """L2 norm, computed on a rescaled copy to stay finite at extreme magnitudes."""
    arr = as_array(vector)
    peak = float(np.max(np.abs(arr))) if arr.size else 0.0
    if peak == 0.0:
        return 0.0
    return peak * float(np.sqrt(np.dot(arr / peak, arr / peak)))


def is_zero_vector(vector: Sequence[float], *, tol: float = 1e-9) -> bool:
    """True when the vector is empty or its L2 norm is within `tol` of zero."""
    return len(vector) == 0 or vector_norm(vector) <= tol


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Compute cosine similarity between two vectors.

    Returns exactly 0.0 when either vector has zero norm so that scoring stays
    total over garbage input. Raises EmbeddingDimensionError on length mismatch.
    Both vectors are rescaled by their largest magnitude first, so any non-zero
    finite vector has similarity 1.0 with itself.
    """
    v1 = as_array(a)
    v2 = as_array(b)
    if v1.shape != v2.shape:
        raise EmbeddingDimensionError(
            f"Cannot compare vectors of different dimensions: {v1.size} vs {v2.size}"
        )
    v1 = _unit_scaled(v1)
    v2 = _unit_scaled(v2)
    energy = float(np.dot(v1, v1)) * float(np.dot(v2, v2))
    if energy == 0.0:
        return 0.0
    return float(np.clip(np.dot(v1, v2) / np.sqrt(energy), -1.0, 1.0))


def whiten(vector: Sequence[float]) -> List[float]:
    """
    Subtract the scalar mean and divide by the scalar standard deviation.

    This is a cheap global normalization over all components of one vector,
    not a per-dimension statistical whitening transform. A constant vector
    (zero variance) maps to zeros of the same length; [] maps to [].
    """
    arr = as_array(vector)
    if arr.size == 0:
        return []
    if float(np.ptp(arr)) == 0.0:
        return [0.0] * int(arr.size)
    # whitening is scale-invariant; rescale so the variance stays representable
    arr = _unit_scaled(arr)
    return ((arr - float(np.mean(arr))) / float(np.std(arr))).tolist()


def l2_normalize(vector: Sequence[float]) -> List[float]:
    """Scale to unit length; zero vectors are returned unchanged."""
    scaled = _unit_scaled(as_array(vector))
    length = float(np.sqrt(np.dot(scaled, scaled)))
    if length == 0.0:
        return scaled.tolist()
    return (scaled / length).tolist()


def validate_dimension(vector: Sequence[float], dimension: Optional[int] = EMBEDDING_DIMENSION) -> List[float]:
    """
    Check a vector against the engine-wide embedding dimension.

    Returns the vector as a list of floats. `dimension=None` skips the length
    check (finite-value check still applies).
    """
    arr = as_array(vector)
    if dimension is not None and arr.size != dimension:
        raise EmbeddingDimensionError(
            f"Expected embedding of dimension {dimension}, got {arr.size}"
        )
    if not np.all(np.isfinite(arr)):
        raise ValueError("Embedding contains non-finite values")
    return arr.tolist()


__all__ = [
    "EMBEDDING_DIMENSION",
    "EmbeddingDimensionError",
    "as_array",
    "cosine_similarity",
    "is_zero_vector",
    "l2_normalize",
    "validate_dimension",
    "vector_norm",
    "whiten",
]
