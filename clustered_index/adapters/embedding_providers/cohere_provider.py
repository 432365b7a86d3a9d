from __future__ import annotations
import httpx

from clustered_index.core.config import settings
from clustered_index.indexing.vectors import EmbeddingVector, as_embedding, normalize


class CohereProvider:
    """Cohere query embedder honouring the unit-norm, fixed-dimension contract."""
    def __init__(self, api_key: str | None = None, model: str | None = None, client: httpx.Client | None = None) -> None:
        self.api_key = api_key or settings.COHERE_API_KEY
        self.model = model or settings.COHERE_MODEL
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=10.0)

    def embed_query(self, text: str, dimensions: int) -> EmbeddingVector:
        if not self.api_key:
            raise ValueError("COHERE_API_KEY not configured")
        r = self._client.post(
            "https://api.cohere.ai/v1/embed",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            json={
                "texts": [text],
                "model": self.model,
                "input_type": "search_query",  # queries, not documents
            },
        )
        r.raise_for_status()
        emb = r.json()["embeddings"][0]
        # wrong model for this index -> DimensionMismatch rather than meaningless scores
        return normalize(as_embedding(emb, dimensions))

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
