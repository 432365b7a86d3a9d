from __future__ import annotations
from dataclasses import dataclass
from typing import List, Protocol, Tuple
import numpy as np

from clustered_index.models.document import DocumentRecord, RecordMetadata


@dataclass(frozen=True)
class SearchResult:
    """
    A ranked hit handed to the downstream caller.
    score is the dot product of query and document vector (cosine for unit vectors).
    """
    id: str
    text: str
    metadata: RecordMetadata
    score: float
    cluster_id: int

    @classmethod
    def from_record(cls, record: DocumentRecord, score: float, cluster_id: int) -> "SearchResult":
        return cls(id=record.id, text=record.text, metadata=record.metadata, score=score, cluster_id=cluster_id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "text": self.text,
            "metadata": self.metadata.model_dump(by_alias=True),
            "score": self.score,
            "cluster_id": self.cluster_id,
        }


class Scanner(Protocol):
    """
    Interface for exact scanners over a block of vectors.
    `search(query, k)` returns top-k (row_index, score) pairs, best first.
    """
    def search(self, query: np.ndarray, k: int) -> List[Tuple[int, float]]:
        ...
