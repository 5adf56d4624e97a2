"""Pydantic request/response schemas for the knowledge API.

Defines the public contract for the REST endpoints: document upload,
listing, deletion, similarity search, generation context, health and
provider listing.

Convention: request schemas end with "Request", response schemas end with
"Response".  Search and context responses reuse the domain models from
:mod:`knowledge_rag.models.knowledge` directly so the HTTP shape never
drifts from what the services return.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from knowledge_rag.models.knowledge import DocumentSummary, IngestionResult


class DocumentUploadRequest(BaseModel):
    """Plain-text document submitted for ingestion."""

    document_name: str = Field(..., min_length=1, max_length=255)
    text: str
    agent_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class DocumentUploadResponse(BaseModel):
    """Outcome of one ingestion, as returned by the pipeline."""

    result: IngestionResult


class DocumentListResponse(BaseModel):
    """One page of documents for a tenant."""

    documents: list[DocumentSummary] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 50
    has_more: bool = False


class DocumentDeleteResponse(BaseModel):
    """Outcome of deleting every chunk of a document."""

    document_name: str
    deleted_chunk_count: int = 0


class SearchRequest(BaseModel):
    """Ad-hoc similarity search.

    Out-of-range ``limit`` and ``threshold`` values are clamped by the
    search engine rather than rejected here.
    """

    query: str = Field(..., min_length=1, max_length=4000)
    agent_id: str | None = None
    limit: int | None = None
    threshold: float | None = None
    session_id: str | None = None


class ContextRequest(BaseModel):
    """Chat message for which grounding context should be assembled."""

    message: str = Field(..., min_length=1, max_length=4000)
    agent_id: str | None = None
    session_id: str | None = None


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


class ProvidersResponse(BaseModel):
    """List of configured service providers and their availability."""

    providers: list[dict[str, Any]]


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
