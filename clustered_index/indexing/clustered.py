"""
Two-stage (coarse-then-fine) search over a clustered Index.

Coarse : score the query against every centroid, keep the best M clusters
Fine   : exact scan inside each selected cluster, keep the best K members
Merge  : concatenate, stable sort by score, return the first N

Only the cluster selection is approximate. With M == k the result equals an
exact scan of the whole corpus.

Tie-breaks: clusters by lower clusterId, members by insertion order; the merge
sort is stable so ties keep the order produced by the fine stage.
"""

from __future__ import annotations
import logging
from typing import List, Sequence, Tuple, Union
import numpy as np

from clustered_index.core.errors import DimensionMismatch, InvalidSearchParameter
from clustered_index.models.index import Cluster, Index
from .base import SearchResult

logger = logging.getLogger(__name__)

QueryLike = Union[np.ndarray, Sequence[float]]


def _prepare_query(query: QueryLike, dimensions: int) -> np.ndarray:
    q = np.asarray(query, dtype=np.float32)
    if q.ndim != 1:
        raise DimensionMismatch(int(q.size), dimensions)
    if q.shape[0] != dimensions:
        raise DimensionMismatch(q.shape[0], dimensions)
    return q


def _require_positive(name: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value < 1:
        raise InvalidSearchParameter(name, value)
    return int(value)


class ClusteredSearchEngine:
    """
    Stateless search over one Index. Holds only a reference to the (immutable)
    Index, so a single engine can serve concurrent callers.
    """

    def __init__(self, index: Index) -> None:
        self.index = index

    def select_clusters(self, query: QueryLike, top_m: int) -> List[Tuple[int, float]]:
        """Top `min(top_m, k)` (clusterId, centroid score) pairs, best first."""
        idx = self.index
        q = _prepare_query(query, idx.dimensions)
        top_m = _require_positive("top_m_clusters", top_m)
        if idx.k == 0:
            return []

        scores = idx.centroid_matrix @ q
        # lexsort: last key is primary -> score descending, then clusterId ascending
        order = np.lexsort((idx.centroid_ids, -scores))[: min(top_m, idx.k)]
        return [(int(idx.centroid_ids[i]), float(scores[i])) for i in order]

    def search_cluster(self, query: QueryLike, cluster: Cluster, top_k: int) -> List[SearchResult]:
        """Exact top `min(top_k, count)` members of one cluster."""
        q = _prepare_query(query, self.index.dimensions)
        top_k = _require_positive("top_k_per_cluster", top_k)
        if cluster.count == 0:
            return []
        return [
            SearchResult.from_record(cluster.records[row], score, cluster.cluster_id)
            for row, score in cluster.scanner.search(q, top_k)
        ]

    def search(
        self,
        query: QueryLike,
        top_m_clusters: int,
        top_k_per_cluster: int,
        final_top_n: int,
    ) -> List[SearchResult]:
        q = _prepare_query(query, self.index.dimensions)
        top_m_clusters = _require_positive("top_m_clusters", top_m_clusters)
        top_k_per_cluster = _require_positive("top_k_per_cluster", top_k_per_cluster)
        final_top_n = _require_positive("final_top_n", final_top_n)

        selected = self.select_clusters(q, top_m_clusters)
        logger.debug(f"Coarse stage selected clusters {[cid for cid, _ in selected]}")

        candidates: List[SearchResult] = []
        for cluster_id, _ in selected:
            cluster = self.index.clusters.get(cluster_id)
            if cluster is None:
                # dropped at load time; recall degrades silently
                logger.debug(f"Cluster {cluster_id} not loaded, skipping")
                continue
            candidates.extend(self.search_cluster(q, cluster, top_k_per_cluster))

        # list.sort is stable, including with reverse=True
        candidates.sort(key=lambda r: r.score, reverse=True)
        results = candidates[:final_top_n]
        logger.debug(f"Search returned {len(results)} of {len(candidates)} candidates")
        return results

    def exact_search(self, query: QueryLike, final_top_n: int) -> List[SearchResult]:
        """
        Exhaustive scan of every loaded cluster (no coarse stage).
        Reference for recall measurements; clusters are visited in clusterId order.
        """
        q = _prepare_query(query, self.index.dimensions)
        final_top_n = _require_positive("final_top_n", final_top_n)

        candidates: List[SearchResult] = []
        for cluster_id in sorted(self.index.clusters):
            cluster = self.index.clusters[cluster_id]
            if cluster.count:
                candidates.extend(self.search_cluster(q, cluster, cluster.count))
        candidates.sort(key=lambda r: r.score, reverse=True)
        return candidates[:final_top_n]


def search(
    index: Index,
    query: QueryLike,
    top_m_clusters: int,
    top_k_per_cluster: int,
    final_top_n: int,
) -> List[SearchResult]:
    """Two-stage clustered search; see module docstring."""
    return ClusteredSearchEngine(index).search(query, top_m_clusters, top_k_per_cluster, final_top_n)


def exact_search(index: Index, query: QueryLike, final_top_n: int) -> List[SearchResult]:
    return ClusteredSearchEngine(index).exact_search(query, final_top_n)


def recall_at(index: Index, query: QueryLike, top_m_clusters: int, top_k_per_cluster: int, final_top_n: int) -> float:
    """Fraction of the exact top-N ids that the clustered search also returns."""
    truth = {r.id for r in exact_search(index, query, final_top_n)}
    if not truth:
        return 1.0
    got = {r.id for r in search(index, query, top_m_clusters, top_k_per_cluster, final_top_n)}
    return len(truth & got) / len(truth)
