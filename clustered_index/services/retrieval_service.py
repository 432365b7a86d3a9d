from __future__ import annotations
from typing import Any, Dict, List, Optional, Sequence
import logging
import numpy as np

from clustered_index.adapters.embedding_providers.base import EmbeddingProvider
from clustered_index.adapters.embedding_providers.cohere_provider import CohereProvider
from clustered_index.core.config import settings
from clustered_index.core.errors import InputError
from clustered_index.indexing.base import SearchResult
from clustered_index.indexing.clustered import ClusteredSearchEngine
from clustered_index.models.index import Index

logger = logging.getLogger(__name__)


class RetrievalService:
    """
    Orchestrates turning a query into a vector (explicit embedding, or text via
    the embedding provider), running the clustered search, and packing hits
    for the downstream answer layer. Holds the Index by reference; nothing here
    mutates it.
    """

    def __init__(
        self,
        index: Index,
        embedder: Optional[EmbeddingProvider] = None,
        top_m_clusters: Optional[int] = None,
        top_k_per_cluster: Optional[int] = None,
        final_top_n: Optional[int] = None,
    ) -> None:
        self.index = index
        self.engine = ClusteredSearchEngine(index)
        self.embedder = embedder or CohereProvider()
        self.top_m_clusters = top_m_clusters if top_m_clusters is not None else settings.TOP_M_CLUSTERS
        self.top_k_per_cluster = top_k_per_cluster if top_k_per_cluster is not None else settings.TOP_K_PER_CLUSTER
        self.final_top_n = final_top_n if final_top_n is not None else settings.FINAL_TOP_N

    def _query_vector(self, query_text: Optional[str], query_embedding: Optional[Sequence[float]]) -> np.ndarray:
        if query_embedding is not None:
            # caller-supplied vectors are used as-is (caller owns normalization)
            return np.asarray(query_embedding, dtype=np.float32)
        if query_text:
            return self.embedder.embed_query(query_text, self.index.dimensions)
        raise InputError("Provide either query_text or query_embedding")

    def retrieve(
        self,
        *,
        query_text: Optional[str] = None,
        query_embedding: Optional[Sequence[float]] = None,
        top_m_clusters: Optional[int] = None,
        top_k_per_cluster: Optional[int] = None,
        final_top_n: Optional[int] = None,
        mode: str = "clustered",  # "clustered" | "flat"
    ) -> List[SearchResult]:
        q = self._query_vector(query_text, query_embedding)
        n = final_top_n if final_top_n is not None else self.final_top_n

        if mode == "clustered":
            hits = self.engine.search(
                q,
                top_m_clusters if top_m_clusters is not None else self.top_m_clusters,
                top_k_per_cluster if top_k_per_cluster is not None else self.top_k_per_cluster,
                n,
            )
        elif mode == "flat":
            hits = self.engine.exact_search(q, n)
        else:
            raise InputError("mode must be 'clustered' or 'flat'")

        logger.info(f"Retrieved {len(hits)} documents (mode={mode})")
        return hits

    def search(self, **kwargs: Any) -> Dict[str, Any]:
        """`retrieve` plus packing into a JSON-ready dict."""
        mode = kwargs.get("mode", "clustered")
        hits = self.retrieve(**kwargs)
        return {
            "hits": [h.to_dict() for h in hits],
            "mode": mode,
            "missing_clusters": self.index.missing_cluster_ids,
        }
