from __future__ import annotations
from typing import Optional, Sequence, Union
import math
import numpy as np

from clustered_index.core.errors import DimensionMismatch, NonFiniteVector, NotUnitNorm

# An EmbeddingVector is a read-only 1-D float32 ndarray.
EmbeddingVector = np.ndarray

DEFAULT_TOLERANCE = 1e-5

VectorLike = Union[np.ndarray, Sequence[float]]


def as_embedding(values: VectorLike, dimensions: Optional[int] = None) -> EmbeddingVector:
    """Copy `values` into an immutable float32 vector, checking length when `dimensions` is given."""
    v = np.array(values, dtype=np.float32).reshape(-1)
    if dimensions is not None and v.shape[0] != dimensions:
        raise DimensionMismatch(v.shape[0], dimensions)
    v.setflags(write=False)
    return v


def l2_norm(v: np.ndarray) -> float:
    # accumulate in float64 so the tolerance check is not dominated by float32 rounding
    return float(np.linalg.norm(np.asarray(v, dtype=np.float64)))


def l2_norms(matrix: np.ndarray) -> np.ndarray:
    """Row-wise L2 norms of a (n, d) matrix, in float64."""
    return np.linalg.norm(np.asarray(matrix, dtype=np.float64), axis=1)


def first_non_finite(v: np.ndarray) -> Optional[int]:
    """Index of the first NaN/Inf component, or None if every component is finite."""
    bad = np.flatnonzero(~np.isfinite(v))
    return int(bad[0]) if bad.size else None


def check_unit_vector(v: np.ndarray, context: str, tolerance: float = DEFAULT_TOLERANCE) -> None:
    """Raise NonFiniteVector / NotUnitNorm if `v` breaks the embedding invariant."""
    pos = first_non_finite(v)
    if pos is not None:
        raise NonFiniteVector(context, pos)
    norm = l2_norm(v)
    if not abs(norm - 1.0) < tolerance:
        raise NotUnitNorm(context, norm, tolerance)


def normalize(values: VectorLike) -> EmbeddingVector:
    """L2-normalize to a read-only float32 vector (zero vectors are returned unchanged)."""
    v = np.asarray(values, dtype=np.float64).reshape(-1)
    n = math.sqrt(float(v @ v))
    out = (v if n == 0.0 else v / n).astype(np.float32)
    out.setflags(write=False)
    return out
