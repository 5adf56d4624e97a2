"""Fire-and-forget knowledge analytics.

Every ``track_*`` coroutine swallows and logs its own failures, so an
analytics outage can never break a search or ingestion.  :meth:`dispatch`
schedules a tracker coroutine on a detached task and returns immediately;
the tracker keeps a strong reference to every pending task until it
finishes, and :meth:`drain` awaits whatever is still in flight (used at
shutdown and in tests).
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

import structlog

from knowledge_rag.interfaces.analytics_sink import IAnalyticsSink
from knowledge_rag.models.analytics import (
    ContextUsageEvent,
    SearchHitEvent,
    SearchQueryEvent,
)

logger = structlog.get_logger(logger_name=__name__)


class AnalyticsTracker:
    """Records search queries, search hits and context usage.

    Parameters
    ----------
    sink:
        Append-only analytics writer.
    track_searches:
        When False, search query events are dropped.
    track_document_usage:
        When False, search hit and context usage events are dropped.
    """

    def __init__(
        self,
        sink: IAnalyticsSink,
        track_searches: bool = True,
        track_document_usage: bool = True,
    ) -> None:
        self._sink = sink
        self._track_searches = track_searches
        self._track_document_usage = track_document_usage
        self._pending: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Tracking operations (never raise)
    # ------------------------------------------------------------------

    async def track_search_query(self, event: SearchQueryEvent) -> None:
        if not self._track_searches:
            return
        try:
            await self._sink.record_search_query(event)
        except Exception as exc:
            logger.warning(
                "analytics_search_query_failed",
                tenant_id=event.tenant_id,
                sink=self._sink.get_provider_name(),
                error=str(exc),
            )

    async def track_search_hit(self, event: SearchHitEvent) -> None:
        if not self._track_document_usage:
            return
        try:
            await self._sink.record_document_event(event)
        except Exception as exc:
            logger.warning(
                "analytics_search_hit_failed",
                tenant_id=event.tenant_id,
                chunk_id=event.chunk_id,
                error=str(exc),
            )

    async def track_context_usage(self, event: ContextUsageEvent) -> None:
        if not self._track_document_usage:
            return
        try:
            await self._sink.record_document_event(event)
        except Exception as exc:
            logger.warning(
                "analytics_context_usage_failed",
                tenant_id=event.tenant_id,
                chunk_id=event.chunk_id,
                error=str(exc),
            )

    async def track_search(
        self,
        query_event: SearchQueryEvent,
        hit_events: list[SearchHitEvent],
    ) -> None:
        """Record a query event, then its hits in rank order."""
        await self.track_search_query(query_event)
        for hit in hit_events:
            await self.track_search_hit(hit)

    async def track_context(self, events: list[ContextUsageEvent]) -> None:
        for event in events:
            await self.track_context_usage(event)

    async def purge_document_events(self, chunk_ids: list[str]) -> int:
        """Cascade a document deletion into the sink; returns rows removed, 0 on failure."""
        try:
            return await self._sink.delete_document_events(chunk_ids)
        except Exception as exc:
            logger.warning(
                "analytics_purge_failed",
                chunk_count=len(chunk_ids),
                error=str(exc),
            )
            return 0

    # ------------------------------------------------------------------
    # Detached execution
    # ------------------------------------------------------------------

    def dispatch(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        """Run *coro* on a detached task without awaiting it."""
        task = asyncio.get_running_loop().create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every dispatched task to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
