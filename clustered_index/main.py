from contextlib import asynccontextmanager
import logging
from fastapi import FastAPI

from clustered_index.adapters.embedding_providers.cohere_provider import CohereProvider
from clustered_index.api.routers.index import router as index_router
from clustered_index.api.routers.search import router as search_router
from clustered_index.core.config import settings
from clustered_index.core.errors import LoadError
from clustered_index.services.loader import IndexLoader, LoadProgress
from clustered_index.services.retrieval_service import RetrievalService

logger = logging.getLogger(__name__)


def _log_progress(p: LoadProgress) -> None:
    logger.info(f"[{p.loaded}/{p.total}] {p.message}")


def create_app(manifest_url: str | None = None) -> FastAPI:
    """
    Build the API. The index is loaded once at startup and kept on app.state
    together with one RetrievalService (and its embedding client) shared by
    all requests. A failed load leaves app.state.index as None and search
    answers 503.
    """
    url = manifest_url or settings.INDEX_MANIFEST_URL

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.manifest_url = url
        app.state.index = None
        app.state.retrieval = None
        app.state.load_error = None
        embedder = CohereProvider()
        try:
            app.state.index = await IndexLoader().load(url, progress=_log_progress)
            app.state.retrieval = RetrievalService(app.state.index, embedder=embedder)
        except LoadError as e:
            logger.error(f"❌ Index failed to load from {url}: {e}")
            app.state.load_error = str(e)
        try:
            yield
        finally:
            embedder.close()

    app = FastAPI(title="Clustered Semantic Index", lifespan=lifespan)
    app.include_router(index_router, prefix="/vector_db/index", tags=["index"])
    app.include_router(search_router, prefix="/vector_db", tags=["search"])
    return app


app = create_app()
