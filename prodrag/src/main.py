"""
prodrag - Application Entry Point
==================================
FastAPI application factory.  ``create_app()`` registers the routes from
``prodrag/src/api/routes.py`` and, during the lifespan startup, builds the
shared ``RAGManager`` (embedding client, vector store, generation client)
from one ``Settings`` instance.

A pre-built ``RAGManager`` can be injected (tests do this) to skip
model and database initialisation entirely.

Run:
    python -m prodrag.src.main
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from prodrag.config.settings import Settings, get_settings
from prodrag.src.api.routes import router
from prodrag.src.core.embedder import EmbeddingClient
from prodrag.src.core.generator import GenerationClient
from prodrag.src.core.rag_engine import RAGManager
from prodrag.src.database.vector_store import ProductVectorStore
from prodrag.src.utils.logger import configure_logging, get_logger

logger = get_logger(__name__)


def build_rag_manager(settings: Settings) -> RAGManager:
    """Wire the production query pipeline from settings."""
    store = ProductVectorStore.from_settings(settings)
    if not store.exists():
        logger.warning("Index '%s' does not exist yet; run the ETL before asking questions.", settings.LANCEDB_TABLE_NAME)
    return RAGManager(embedder=EmbeddingClient.from_settings(settings), store=store, generator=GenerationClient.from_settings(settings), top_k=settings.SEARCH_TOP_K)


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "Invalid request body", "details": str(exc.errors())})


def create_app(settings: Settings | None = None, rag_manager: RAGManager | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Parameters
    ----------
    settings
        Configuration; loaded from the environment when omitted (and no
        ``rag_manager`` is injected).
    rag_manager
        Pre-built query pipeline.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if getattr(app.state, "rag_manager", None) is None:
            resolved = settings or get_settings()
            configure_logging(resolved.ENV)
            app.state.rag_manager = build_rag_manager(resolved)
            logger.info("RAG pipeline ready.")
        yield

    app = FastAPI(title="prodrag — Product Q&A", version="1.0.0", lifespan=lifespan)
    app.state.rag_manager = rag_manager
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.include_router(router)
    return app


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run(create_app(_settings), host=_settings.API_HOST, port=_settings.API_PORT)
