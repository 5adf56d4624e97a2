"""FastAPI API routes for the knowledge service.

Provides REST endpoints for document ingestion, listing and deletion,
similarity search, generation-context assembly, health checks, and
provider listing.  Service dependencies are resolved from ``app.state``
via FastAPI's ``Depends`` using the ``Annotated`` pattern.

# ─── API ROUTE MAP ────────────────────────────────────────────────────
#
# Endpoint                                      Method  Description
# ─────────────────────────────────────────────────────────────────────
# /api/v1/tenants/{tid}/documents               POST    Ingest plain text
# /api/v1/tenants/{tid}/documents/file          POST    Ingest raw file body
# /api/v1/tenants/{tid}/documents               GET     Page through documents
# /api/v1/tenants/{tid}/documents/{name}        DELETE  Delete a document's chunks
# /api/v1/tenants/{tid}/search                  POST    Ad-hoc similarity search
# /api/v1/tenants/{tid}/context                 POST    Grounding context for chat
# /api/v1/health                                GET     Health check + provider status
# /api/v1/providers                             GET     List configured providers
#
# Every route reads its service from app.state, populated at startup by
# main.py's _build_all.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request

from knowledge_rag.api.schemas import (
    ContextRequest,
    DocumentDeleteResponse,
    DocumentListResponse,
    DocumentUploadRequest,
    DocumentUploadResponse,
    ErrorResponse,
    HealthResponse,
    ProvidersResponse,
    SearchRequest,
)
from knowledge_rag.models.knowledge import IngestionResult, RagContext, SearchResponse
from knowledge_rag.services.document_service import DOCUMENT_NOT_FOUND, DocumentLifecycleManager
from knowledge_rag.services.ingestion import IngestionPipeline
from knowledge_rag.services.search_service import SearchEngine
from knowledge_rag.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

_VERSION = "0.1.0"


# ---------------------------------------------------------------------------
# Dependency helpers
# ---------------------------------------------------------------------------


def _get_ingestion_pipeline(request: Request) -> IngestionPipeline:
    """Return the ingestion pipeline from application state."""
    return request.app.state.ingestion_pipeline


def _get_search_engine(request: Request) -> SearchEngine:
    """Return the search engine from application state."""
    return request.app.state.search_engine


def _get_document_manager(request: Request) -> DocumentLifecycleManager:
    """Return the document lifecycle manager from application state."""
    return request.app.state.document_manager


IngestionDep = Annotated[IngestionPipeline, Depends(_get_ingestion_pipeline)]
SearchDep = Annotated[SearchEngine, Depends(_get_search_engine)]
DocumentsDep = Annotated[DocumentLifecycleManager, Depends(_get_document_manager)]


def _upload_outcome(result: IngestionResult) -> DocumentUploadResponse:
    if not result.success:
        _logger.info("upload_rejected", document=result.document_name, error=result.error)
        raise HTTPException(status_code=422, detail=result.error or "Ingestion failed")
    return DocumentUploadResponse(result=result)


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@router.post(
    "/tenants/{tenant_id}/documents",
    response_model=DocumentUploadResponse,
    status_code=201,
    responses={422: {"model": ErrorResponse}},
    summary="Ingest a plain-text document",
)
async def upload_document(
    tenant_id: str,
    body: DocumentUploadRequest,
    pipeline: IngestionDep,
) -> DocumentUploadResponse:
    """Chunk, embed and store a document.

    Re-uploading a document with the same name replaces its earlier chunks.
    Chunks that could not be embedded are listed in ``result.warnings``.
    """
    result = await pipeline.ingest(
        tenant_id=tenant_id,
        agent_id=body.agent_id,
        document_name=body.document_name,
        raw_text=body.text,
        extra_metadata=body.metadata,
    )
    return _upload_outcome(result)


@router.post(
    "/tenants/{tenant_id}/documents/file",
    response_model=DocumentUploadResponse,
    status_code=201,
    responses={422: {"model": ErrorResponse}},
    summary="Ingest an uploaded file",
)
async def upload_document_file(
    tenant_id: str,
    request: Request,
    pipeline: IngestionDep,
    file_name: Annotated[str, Query(min_length=1, max_length=255)],
    agent_id: str | None = None,
) -> DocumentUploadResponse:
    """Ingest the raw request body as a file named *file_name*.

    The extension of *file_name* selects the text extractor and must be on
    the configured whitelist.
    """
    data = await request.body()
    result = await pipeline.ingest_file(
        tenant_id=tenant_id,
        agent_id=agent_id,
        file_name=file_name,
        data=data,
    )
    return _upload_outcome(result)


@router.get(
    "/tenants/{tenant_id}/documents",
    response_model=DocumentListResponse,
    summary="List a tenant's documents",
)
async def list_documents(
    tenant_id: str,
    documents: DocumentsDep,
    agent_id: str | None = None,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int | None, Query(ge=1)] = None,
) -> DocumentListResponse:
    """Page through documents, newest first.  Omitting ``agent_id`` lists all agents."""
    result = await documents.list_documents(
        tenant_id, agent_id=agent_id, page=page, page_size=page_size
    )
    return DocumentListResponse(
        documents=result.documents,
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        has_more=result.has_more,
    )


@router.delete(
    "/tenants/{tenant_id}/documents/{document_name}",
    response_model=DocumentDeleteResponse,
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    summary="Delete every chunk of a document",
)
async def delete_document(
    tenant_id: str,
    document_name: str,
    documents: DocumentsDep,
    agent_id: str | None = None,
) -> DocumentDeleteResponse:
    """Delete a document and the analytics rows that reference its chunks.

    Without ``agent_id`` the tenant-global copy of the document is deleted.
    """
    result = await documents.delete_document(tenant_id, agent_id, document_name)
    if not result.success:
        status_code = 404 if result.error == DOCUMENT_NOT_FOUND else 503
        raise HTTPException(status_code=status_code, detail=result.error)

    return DocumentDeleteResponse(
        document_name=result.document_name,
        deleted_chunk_count=result.deleted_chunk_count,
    )


# ---------------------------------------------------------------------------
# Retrieval
# ---------------------------------------------------------------------------


@router.post(
    "/tenants/{tenant_id}/search",
    response_model=SearchResponse,
    summary="Similarity search over a tenant's knowledge",
)
async def search_knowledge(
    tenant_id: str,
    body: SearchRequest,
    engine: SearchDep,
) -> SearchResponse:
    """Return the chunks most similar to the query.

    Search unavailability is reported in the body (``success: false``), not
    as an HTTP error, so chat clients can continue without context.
    """
    return await engine.search(
        tenant_id,
        body.agent_id,
        body.query,
        limit=body.limit,
        threshold=body.threshold,
        session_id=body.session_id,
    )


@router.post(
    "/tenants/{tenant_id}/context",
    response_model=RagContext,
    summary="Assemble grounding context for a chat message",
)
async def build_context(
    tenant_id: str,
    body: ContextRequest,
    engine: SearchDep,
) -> RagContext:
    return await engine.build_context(
        tenant_id,
        body.agent_id,
        body.message,
        session_id=body.session_id,
    )


# ---------------------------------------------------------------------------
# System endpoints
# ---------------------------------------------------------------------------


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Application health check",
)
async def health_check(request: Request) -> HealthResponse:
    """Return application health, version, and provider availability.

    ``healthy`` needs the vector store and at least one API embedding
    provider; with only the local hash fallback the service is ``degraded``.
    """
    providers: dict[str, Any] = {}
    if hasattr(request.app.state, "provider_registry"):
        providers = dict(request.app.state.provider_registry)

    vector_store = getattr(request.app.state, "vector_store", None)
    if vector_store is not None:
        providers["vector_store"] = await asyncio.to_thread(vector_store.is_available)

    store_ok = providers.get("vector_store", False)
    if store_ok and providers.get("embedding_api", False):
        status = "healthy"
    elif store_ok:
        status = "degraded"
    else:
        status = "unhealthy"

    return HealthResponse(
        status=status,
        version=_VERSION,
        providers=providers,
    )


@router.get(
    "/providers",
    response_model=ProvidersResponse,
    summary="List configured providers",
)
async def list_providers(request: Request) -> ProvidersResponse:
    """List all configured providers, their types, and availability status."""
    providers: list[dict[str, Any]] = []
    if hasattr(request.app.state, "provider_list"):
        providers = request.app.state.provider_list

    return ProvidersResponse(providers=providers)
