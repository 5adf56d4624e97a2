"""Abstract base class for analytics sinks.

An append-only event writer.  The knowledge core never reads events back;
the only non-append operation is the purge that keeps document deletion
cascading to dependent analytics rows.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from knowledge_rag.models.analytics import (
    ContextUsageEvent,
    SearchHitEvent,
    SearchQueryEvent,
)


# Concrete implementation: SQLiteAnalyticsSink (knowledge_rag/providers/analytics/)
class IAnalyticsSink(ABC):
    """Contract for analytics persistence."""

    @abstractmethod
    async def record_search_query(self, event: SearchQueryEvent) -> None:
        """Append a search query event and bump daily usage counters."""

    @abstractmethod
    async def record_document_event(
        self, event: SearchHitEvent | ContextUsageEvent
    ) -> None:
        """Append a per-chunk event (search hit or context usage)."""

    @abstractmethod
    async def delete_document_events(self, chunk_ids: list[str]) -> int:
        """Remove per-chunk events referencing *chunk_ids*; return the row count."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"sqlite"``."""
