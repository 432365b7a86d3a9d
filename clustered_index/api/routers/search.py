from __future__ import annotations
from typing import Any, Dict
from fastapi import APIRouter, HTTPException, Request
from fastapi import status as http
import httpx

router = APIRouter()


@router.post("/search")
async def search(request: Request, body: Dict[str, Any]):
    """
    Retrieve the best-matching documents.

    Request JSON:
    {
      "query_text": "string" | null,
      "query_embedding": [float, ...] | null,
      "top_m_clusters": 3,
      "top_k_per_cluster": 5,
      "final_top_n": 5,
      "mode": "clustered" | "flat"
    }
    """
    index = request.app.state.index
    if index is None:
        raise HTTPException(
            http.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Index not loaded: {request.app.state.load_error}",
        )

    query_text = body.get("query_text")
    query_embedding = body.get("query_embedding")
    if not query_text and not query_embedding:
        raise HTTPException(http.HTTP_400_BAD_REQUEST, detail="Provide query_text or query_embedding")

    svc = request.app.state.retrieval
    try:
        res = svc.search(
            query_text=query_text,
            query_embedding=query_embedding,
            top_m_clusters=body.get("top_m_clusters"),
            top_k_per_cluster=body.get("top_k_per_cluster"),
            final_top_n=body.get("final_top_n"),
            mode=body.get("mode", "clustered"),
        )
    except (ValueError, TypeError) as e:
        raise HTTPException(http.HTTP_400_BAD_REQUEST, detail=str(e))
    except httpx.HTTPError as e:
        raise HTTPException(http.HTTP_502_BAD_GATEWAY, detail=f"Embedding provider failed: {e}")
    return {**res, "load_errors": [f.to_dict() for f in index.load_errors]}
