"""
In-memory index built by the loader. Read-only after construction: vectors
are non-writeable float32 arrays and the cluster map is a mapping proxy, so
one Index can be shared across concurrent searches without locking.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from functools import cached_property
from types import MappingProxyType
from typing import Iterator, List, Mapping, Optional, Sequence, Tuple
import numpy as np

from clustered_index.core.errors import LoadError
from clustered_index.indexing.vectors import EmbeddingVector, as_embedding
from clustered_index.models.document import DocumentRecord
from clustered_index.models.manifest import Manifest


@dataclass(frozen=True, eq=False)
class Centroid:
    cluster_id: int
    vector: EmbeddingVector


@dataclass(frozen=True, eq=False)
class Cluster:
    """
    One partition of the corpus. records[i] and vectors[i] describe the same
    document; they come from parallel arrays on disk and are never reordered.
    """
    cluster_id: int
    centroid: Optional[EmbeddingVector]
    records: Tuple[DocumentRecord, ...]
    vectors: np.ndarray  # (count, dimensions), read-only

    def __post_init__(self) -> None:
        if len(self.records) != self.vectors.shape[0]:
            raise ValueError(
                f"cluster {self.cluster_id}: {len(self.records)} records but {self.vectors.shape[0]} vectors"
            )
        if self.vectors.flags.writeable:
            frozen = self.vectors.view()
            frozen.setflags(write=False)
            object.__setattr__(self, "vectors", frozen)

    @classmethod
    def empty(cls, cluster_id: int, dimensions: int, centroid: Optional[EmbeddingVector] = None) -> "Cluster":
        vectors = np.zeros((0, dimensions), dtype=np.float32)
        vectors.setflags(write=False)
        return cls(cluster_id=cluster_id, centroid=centroid, records=(), vectors=vectors)

    @property
    def count(self) -> int:
        return len(self.records)

    @property
    def members(self) -> Iterator[Tuple[DocumentRecord, EmbeddingVector]]:
        for i, record in enumerate(self.records):
            yield record, self.vectors[i]

    @cached_property
    def scanner(self):
        # local import: brute_force depends on this module's types
        from clustered_index.indexing.brute_force import BruteForceIndex
        return BruteForceIndex(self.vectors)


@dataclass(frozen=True, eq=False)
class ClusterLoadFailure:
    cluster_id: int
    error: LoadError

    @property
    def message(self) -> str:
        return str(self.error)

    def to_dict(self) -> dict:
        return {
            "cluster_id": self.cluster_id,
            "error": type(self.error).__name__,
            "message": self.message,
        }


@dataclass(frozen=True, eq=False)
class Index:
    """
    Materialized clustered index.
    - centroids: one per declared cluster (length k), in file order
    - clusters: clusterId -> Cluster for every cluster that loaded
    - load_errors: clusters that were dropped while loading
    """
    dimensions: int
    centroids: Tuple[Centroid, ...]
    clusters: Mapping[int, Cluster]
    manifest: Optional[Manifest] = None
    load_errors: Tuple[ClusterLoadFailure, ...] = field(default=())

    def __post_init__(self) -> None:
        object.__setattr__(self, "centroids", tuple(self.centroids))
        object.__setattr__(self, "clusters", MappingProxyType(dict(self.clusters)))
        object.__setattr__(self, "load_errors", tuple(self.load_errors))

    @cached_property
    def centroid_matrix(self) -> np.ndarray:
        """(k, dimensions) matrix of centroids, row i == centroids[i]."""
        if not self.centroids:
            m = np.zeros((0, self.dimensions), dtype=np.float32)
        else:
            m = np.vstack([c.vector for c in self.centroids]).astype(np.float32, copy=False)
        m.setflags(write=False)
        return m

    @cached_property
    def centroid_ids(self) -> np.ndarray:
        return np.array([c.cluster_id for c in self.centroids], dtype=np.int64)

    @property
    def k(self) -> int:
        return len(self.centroids)

    @property
    def size(self) -> int:
        """Number of documents across all loaded clusters."""
        return sum(c.count for c in self.clusters.values())

    @property
    def missing_cluster_ids(self) -> List[int]:
        return sorted(f.cluster_id for f in self.load_errors)

    def summary(self) -> dict:
        return {
            "model_id": self.manifest.model_id if self.manifest else None,
            "cluster_algorithm": self.manifest.cluster_algorithm_tag if self.manifest else None,
            "dimensions": self.dimensions,
            "k": self.k,
            "clusters_loaded": len(self.clusters),
            "documents": self.size,
            "missing_clusters": self.missing_cluster_ids,
        }

    @classmethod
    def from_arrays(
        cls,
        dimensions: int,
        centroids: Sequence[Tuple[int, Sequence[float]]],
        members: Mapping[int, Tuple[Sequence[DocumentRecord], Sequence[Sequence[float]]]],
    ) -> "Index":
        """Assemble an Index from plain Python values (handy for tests and small corpora)."""
        cents = [Centroid(cid, as_embedding(vec, dimensions)) for cid, vec in centroids]
        by_id = {c.cluster_id: c.vector for c in cents}
        clusters = {}
        for cid, (records, vectors) in members.items():
            if len(records) == 0:
                clusters[cid] = Cluster.empty(cid, dimensions, by_id.get(cid))
                continue
            matrix = np.array(vectors, dtype=np.float32).reshape(len(records), dimensions)
            clusters[cid] = Cluster(cid, by_id.get(cid), tuple(records), matrix)
        return cls(dimensions=dimensions, centroids=tuple(cents), clusters=clusters)
