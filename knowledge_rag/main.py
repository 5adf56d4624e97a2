"""Knowledge service FastAPI application entry point.

Wires together all providers and services via dependency injection.
Loads configuration from environment variables and ``.env``, configures
structured logging, and exposes the knowledge API under ``/api/v1``.

Also provides :func:`build_services` for CLI or scripting usage outside
the web server.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from knowledge_rag.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from knowledge_rag.api.routes import router as api_router
from knowledge_rag.config.settings import Settings
from knowledge_rag.providers.analytics import SQLiteAnalyticsSink
from knowledge_rag.providers.extraction import (
    CompositeTextExtractor,
    PDFTextExtractor,
    PlainTextExtractor,
)
from knowledge_rag.providers.vector_store import ChromaDBProvider
from knowledge_rag.services.analytics_tracker import AnalyticsTracker
from knowledge_rag.services.document_service import DocumentLifecycleManager
from knowledge_rag.services.embedding_service import build_embedding_chain
from knowledge_rag.services.ingestion import IngestionPipeline, TextChunker
from knowledge_rag.services.search_service import SearchEngine
from knowledge_rag.utils.errors import ConfigurationError
from knowledge_rag.utils.logging import configure_logging, get_logger

_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()

configure_logging(log_level=settings.log_level, app_env=settings.app_env)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Composition root
# ---------------------------------------------------------------------------


def _build_all(app_settings: Settings) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.

    Raises
    ------
    ConfigurationError
        If the knowledge settings are out of range.
    """
    problems = app_settings.validate_knowledge_config()
    if problems:
        raise ConfigurationError(message="; ".join(problems))

    # -- Shared resources --
    http_client = httpx.AsyncClient(timeout=app_settings.embedding_timeout_seconds)

    # -- Embedding chain (priority order, hash fallback last) --
    embedding_chain = build_embedding_chain(app_settings, http_client)

    # -- Storage --
    vector_store = ChromaDBProvider(
        persist_directory=app_settings.chromadb_persist_dir,
        collection_prefix=app_settings.chromadb_collection_prefix,
    )
    analytics_sink = SQLiteAnalyticsSink(db_path=app_settings.analytics_db_path)
    analytics_tracker = AnalyticsTracker(
        sink=analytics_sink,
        track_searches=app_settings.track_searches,
        track_document_usage=app_settings.track_document_usage,
    )

    # -- Ingestion --
    text_extractor = CompositeTextExtractor([PlainTextExtractor(), PDFTextExtractor()])
    ingestion_pipeline = IngestionPipeline(
        chunker=TextChunker(max_chunk_size=app_settings.max_chunk_size),
        embedding_chain=embedding_chain,
        vector_store=vector_store,
        text_extractor=text_extractor,
        max_concurrent_embeddings=app_settings.max_concurrent_embeddings,
        parallel_embeddings=app_settings.parallel_embeddings,
        max_file_size=app_settings.max_file_size,
        allowed_file_types=app_settings.get_allowed_file_types(),
    )

    # -- Retrieval & lifecycle --
    search_engine = SearchEngine(
        embedding_chain=embedding_chain,
        vector_store=vector_store,
        analytics=analytics_tracker,
        default_limit=app_settings.search_limit,
        default_threshold=app_settings.search_threshold,
        max_limit=app_settings.search_max_limit,
        rag_context_limit=app_settings.rag_context_limit,
        rag_context_threshold=app_settings.rag_context_threshold,
    )
    document_manager = DocumentLifecycleManager(
        vector_store=vector_store,
        analytics=analytics_tracker,
        default_page_size=app_settings.docs_page_size,
        max_page_size=app_settings.docs_max_page_size,
    )

    # -- Provider registry for /health --
    api_providers = [
        p for p in embedding_chain.providers if p.get_provider_name() != "hash"
    ]
    provider_registry: dict[str, bool] = {
        "embedding": True,
        "embedding_api": bool(api_providers),
        "analytics": True,
    }

    # -- Provider list for /providers --
    provider_list: list[dict[str, Any]] = [
        {
            "name": p.get_provider_name(),
            "type": "embedding",
            "available": p.is_available(),
            "dimensions": p.get_dimension(),
            "cost_per_1k_tokens": p.get_cost_per_1k_tokens(),
        }
        for p in embedding_chain.providers
    ]
    provider_list.append(
        {"name": vector_store.get_provider_name(), "type": "vector_store", "available": True}
    )
    provider_list.append(
        {"name": analytics_sink.get_provider_name(), "type": "analytics", "available": True}
    )
    provider_list.append(
        {
            "name": "CompositeTextExtractor",
            "type": "extraction",
            "available": True,
            "extensions": text_extractor.supported_extensions(),
        }
    )

    return {
        "http_client": http_client,
        "embedding_chain": embedding_chain,
        "vector_store": vector_store,
        "analytics_sink": analytics_sink,
        "analytics_tracker": analytics_tracker,
        "ingestion_pipeline": ingestion_pipeline,
        "search_engine": search_engine,
        "document_manager": document_manager,
        "provider_registry": provider_registry,
        "provider_list": provider_list,
    }


def build_services(custom_settings: Settings | None = None) -> dict[str, Any]:
    """Construct all knowledge services outside the web server.

    Parameters
    ----------
    custom_settings:
        Application settings.  Uses module-level ``settings`` if not provided.

    Returns
    -------
    dict
        The same components :func:`_build_all` places on ``app.state``.
        The caller owns ``http_client`` and must close it.
    """
    return _build_all(custom_settings or settings)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise all providers and services on startup, clean up on shutdown."""
    components = _build_all(settings)

    for key, value in components.items():
        setattr(application.state, key, value)

    # Analytics tables are created on first start
    await components["analytics_sink"].initialize()

    _logger.info(
        "app_startup",
        version=_VERSION,
        environment=settings.app_env,
        embedding_providers=components["embedding_chain"].provider_names(),
        providers=len(components["provider_list"]),
    )

    yield

    # -- Shutdown: flush analytics, then close shared httpx client --
    tracker: AnalyticsTracker = components["analytics_tracker"]
    await tracker.drain()

    http_client: httpx.AsyncClient = components["http_client"]
    await http_client.aclose()
    _logger.info("app_shutdown", message="HTTP client closed")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="knowledge-rag API",
        version=_VERSION,
        description=(
            "Multi-tenant knowledge base: ingest documents, search them by "
            "semantic similarity, and assemble grounding context for chat."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)

    # -- API routes --
    application.include_router(api_router)

    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "knowledge_rag.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
