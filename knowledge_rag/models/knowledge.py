"""Knowledge base data models.

Pydantic v2 models for the values that flow through ingestion, search and
deletion.  All models are frozen: a chunk is never mutated once written,
re-ingestion replaces it.

A *document* has no row of its own.  It is identified by the tuple
``(tenant_id, agent_id, original_file_name)`` carried in every chunk's
metadata, and :class:`DocumentSummary` is derived by grouping chunks.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Metadata keys written on every chunk.  Kept camelCase so rows stay
# readable by tooling that consumes the same store.
META_ORIGINAL_FILE_NAME = "originalFileName"
META_CHUNK_INDEX = "chunkIndex"
META_TOTAL_CHUNKS = "totalChunks"
META_EMBEDDING_PROVIDER = "embeddingProvider"
META_CREATED_AT = "createdAt"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# EmbeddingResult: output of one successful provider call.
# ---------------------------------------------------------------------------
class EmbeddingResult(BaseModel):
    """A vector plus the provider that produced it.

    Dimensionality is provider-dependent, so the provider name travels
    with the vector all the way into storage.
    """

    model_config = ConfigDict(frozen=True)

    vector: list[float] = Field(description="The embedding vector.")
    provider_name: str = Field(description="Name of the provider that produced the vector.")
    dimensions: int = Field(ge=0, description="Fixed dimensionality of the provider.")


# ---------------------------------------------------------------------------
# DocumentChunk: the atomic indexed unit.
# ---------------------------------------------------------------------------
class DocumentChunk(BaseModel):
    """A bounded-length slice of a document's text, ready for storage."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str = Field(description="Deterministic identifier for this chunk.")
    tenant_id: str = Field(description="Owning tenant.")
    agent_id: str | None = Field(
        default=None, description="Owning agent; None for tenant-global knowledge."
    )
    document_name: str = Field(description="Original file name of the parent document.")
    chunk_index: int = Field(ge=0, description="Zero-based position within the document.")
    text: str = Field(min_length=1, description="The chunk's textual content.")
    embedding_provider: str = Field(description="Provider that embedded this chunk.")
    embedding_dimensions: int = Field(ge=0, description="Length of the stored vector.")
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="originalFileName, chunkIndex, totalChunks and caller metadata.",
    )


# ---------------------------------------------------------------------------
# Search models
# ---------------------------------------------------------------------------
class SearchQuery(BaseModel):
    """A natural-language query after defaults and clamping were applied."""

    model_config = ConfigDict(frozen=True)

    query_text: str
    tenant_id: str
    agent_id: str | None = None
    limit: int = Field(ge=1)
    threshold: float = Field(ge=0.0, le=1.0)
    session_id: str | None = None


class SearchHit(BaseModel):
    """One ranked chunk returned by a similarity search."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Chunk identifier.")
    content: str = Field(description="Chunk text.")
    similarity: float = Field(ge=0.0, le=1.0, description="Cosine similarity to the query.")
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def original_file_name(self) -> str | None:
        return self.metadata.get(META_ORIGINAL_FILE_NAME)


class SearchResponse(BaseModel):
    """Structured search outcome; ``success=False`` is a soft failure."""

    model_config = ConfigDict(frozen=True)

    success: bool
    documents: list[SearchHit] = Field(default_factory=list)
    error: str | None = None
    embedding_provider: str | None = Field(
        default=None, description="Provider that embedded the query, when it got that far."
    )
    execution_time_ms: int = Field(default=0, ge=0)


class RagContext(BaseModel):
    """Retrieved chunks formatted for a downstream generation prompt."""

    model_config = ConfigDict(frozen=True)

    has_context: bool = False
    context: str = ""
    sources: list[str] = Field(
        default_factory=list, description="Original file names, in rank order."
    )
    documents: list[SearchHit] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Lifecycle results
# ---------------------------------------------------------------------------
class IngestionResult(BaseModel):
    """Summary of a single document ingestion run.

    ``success`` stays True when individual chunks fail; those failures are
    counted in ``failed_chunks`` and described in ``warnings``.
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    document_name: str
    chunk_count: int = Field(default=0, ge=0, description="Chunks actually persisted.")
    failed_chunks: int = Field(default=0, ge=0)
    warnings: list[str] = Field(default_factory=list)
    embedding_providers: list[str] = Field(
        default_factory=list, description="Distinct providers used for the persisted chunks."
    )
    ingestion_time: float = Field(default=0.0, ge=0.0, description="Wall-clock seconds.")
    error: str | None = None


class DeletionResult(BaseModel):
    """Outcome of a cascading document delete."""

    model_config = ConfigDict(frozen=True)

    success: bool
    document_name: str
    deleted_chunk_count: int = Field(default=0, ge=0)
    error: str | None = None


class DocumentSummary(BaseModel):
    """One logical document, derived by grouping its chunks."""

    model_config = ConfigDict(frozen=True)

    original_file_name: str
    agent_id: str | None = None
    chunk_count: int = Field(ge=0)
    embedding_provider: str | None = None
    created_at: datetime | None = None
    metadata: dict[str, Any] = Field(
        default_factory=dict, description="Caller metadata from the first chunk."
    )


class DocumentPage(BaseModel):
    """A page of :class:`DocumentSummary` rows."""

    model_config = ConfigDict(frozen=True)

    documents: list[DocumentSummary] = Field(default_factory=list)
    total: int = Field(default=0, ge=0)
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=50, ge=1)

    @property
    def has_more(self) -> bool:
        return self.page * self.page_size < self.total


class StoredChunk(BaseModel):
    """A chunk row as read back from the store for listing (no vector)."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    agent_id: str | None = None
    document_name: str
    chunk_index: int = 0
    embedding_provider: str = ""
    created_at: datetime = Field(default_factory=_utcnow)
    metadata: dict[str, Any] = Field(default_factory=dict)
