"""Analytics event models.

Append-only, tenant-scoped events recorded by the analytics tracker.  The
core never reads them back; a separate reporting path consumes the sink.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentEventType(str, Enum):
    """Per-chunk event kinds stored in the document analytics table."""

    SEARCH_HIT = "search_hit"
    CONTEXT_USED = "context_used"


class _TenantEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    tenant_id: str
    agent_id: str | None = None
    session_id: str | None = None
    occurred_at: datetime = Field(default_factory=_utcnow)


class SearchQueryEvent(_TenantEvent):
    """One executed search, successful or not."""

    query: str
    results_count: int = Field(ge=0)
    top_similarity_score: float | None = Field(default=None, ge=0.0, le=1.0)
    execution_time_ms: int = Field(default=0, ge=0)


class SearchHitEvent(_TenantEvent):
    """A chunk returned by a search, at a given rank."""

    chunk_id: str
    rank: int = Field(ge=1)
    similarity_score: float = Field(ge=0.0, le=1.0)

    @property
    def event_type(self) -> DocumentEventType:
        return DocumentEventType.SEARCH_HIT


class ContextUsageEvent(_TenantEvent):
    """A chunk that was included in a generation context."""

    chunk_id: str
    similarity_score: float = Field(ge=0.0, le=1.0)

    @property
    def event_type(self) -> DocumentEventType:
        return DocumentEventType.CONTEXT_USED
