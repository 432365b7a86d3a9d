from __future__ import annotations
from typing import Protocol

from clustered_index.indexing.vectors import EmbeddingVector


class EmbeddingProvider(Protocol):
    """
    Upstream collaborator: turns query text into a unit-norm vector of exactly
    `dimensions` components. The search engine trusts this and never re-normalizes.
    """
    def embed_query(self, text: str, dimensions: int) -> EmbeddingVector:
        ...
