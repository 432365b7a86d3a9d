from __future__ import annotations
from typing import List, Tuple
import numpy as np

from clustered_index.core.errors import DimensionMismatch
from .base import Scanner


def _dot(matrix: np.ndarray, q: np.ndarray) -> np.ndarray:
    """Dot product of every row with q (cosine similarity for unit vectors)."""
    return matrix @ q


class BruteForceIndex(Scanner):
    """
    Exact dot-product scan over a block of stored unit vectors.
    Vectors are used exactly as stored - neither they nor the query are re-normalized.
    Build  : O(1)
    Search : O(ND)   (N dot products of length D)
    Space  : O(ND)   (shares the caller's array)
    """

    def __init__(self, vectors: np.ndarray) -> None:
        self._vecs = vectors
        self._dim = vectors.shape[1] if vectors.ndim == 2 else 0

    def __len__(self) -> int:
        return self._vecs.shape[0]

    def scores(self, query: np.ndarray) -> np.ndarray:
        if len(query) != self._dim:
            raise DimensionMismatch(len(query), self._dim)
        return _dot(self._vecs, query.astype(np.float32, copy=False))

    def search(self, query: np.ndarray, k: int) -> List[Tuple[int, float]]:
        if k <= 0 or len(self) == 0:
            return []
        s = self.scores(query)

        # top-k by score descending; stable so equal scores keep row order
        order = np.argsort(-s, kind="stable")[: min(k, len(s))]
        return [(int(i), float(s[i])) for i in order]
