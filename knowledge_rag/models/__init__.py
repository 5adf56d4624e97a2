"""Knowledge subsystem models: re-exports all public model classes.

    - knowledge.py : chunks, embeddings, search results, lifecycle results
    - analytics.py : append-only analytics events
"""

from __future__ import annotations

from knowledge_rag.models.analytics import (
    ContextUsageEvent,
    DocumentEventType,
    SearchHitEvent,
    SearchQueryEvent,
)
from knowledge_rag.models.knowledge import (
    DeletionResult,
    DocumentChunk,
    DocumentPage,
    DocumentSummary,
    EmbeddingResult,
    IngestionResult,
    RagContext,
    SearchHit,
    SearchQuery,
    SearchResponse,
    StoredChunk,
)

__all__ = [
    "ContextUsageEvent",
    "DeletionResult",
    "DocumentChunk",
    "DocumentEventType",
    "DocumentPage",
    "DocumentSummary",
    "EmbeddingResult",
    "IngestionResult",
    "RagContext",
    "SearchHit",
    "SearchHitEvent",
    "SearchQuery",
    "SearchQueryEvent",
    "SearchResponse",
    "StoredChunk",
]
