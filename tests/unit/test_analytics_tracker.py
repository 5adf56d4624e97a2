"""Unit tests for AnalyticsTracker: flags, failure isolation, detached dispatch."""

from __future__ import annotations

import asyncio

import pytest

from knowledge_rag.models.analytics import (
    ContextUsageEvent,
    DocumentEventType,
    SearchHitEvent,
    SearchQueryEvent,
)
from knowledge_rag.services.analytics_tracker import AnalyticsTracker
from tests.conftest import RecordingAnalyticsSink


def _query() -> SearchQueryEvent:
    return SearchQueryEvent(tenant_id="acme", query="refunds", results_count=1, top_similarity_score=0.9)


def _hit(rank: int = 1) -> SearchHitEvent:
    return SearchHitEvent(tenant_id="acme", chunk_id=f"c{rank}", rank=rank, similarity_score=0.9)


def _usage() -> ContextUsageEvent:
    return ContextUsageEvent(tenant_id="acme", chunk_id="c1", similarity_score=0.8)


class TestTracking:
    @pytest.mark.asyncio
    async def test_records_every_event_kind(self, analytics_sink: RecordingAnalyticsSink) -> None:
        tracker = AnalyticsTracker(analytics_sink)

        await tracker.track_search(_query(), [_hit(1), _hit(2)])
        await tracker.track_context([_usage()])

        kinds = [type(e).__name__ for e in analytics_sink.events]
        assert kinds == ["SearchQueryEvent", "SearchHitEvent", "SearchHitEvent", "ContextUsageEvent"]

    def test_event_types(self) -> None:
        assert _hit().event_type is DocumentEventType.SEARCH_HIT
        assert _usage().event_type is DocumentEventType.CONTEXT_USED

    @pytest.mark.asyncio
    async def test_search_flag_disables_query_events(self, analytics_sink: RecordingAnalyticsSink) -> None:
        tracker = AnalyticsTracker(analytics_sink, track_searches=False)

        await tracker.track_search(_query(), [_hit()])

        assert [type(e).__name__ for e in analytics_sink.events] == ["SearchHitEvent"]

    @pytest.mark.asyncio
    async def test_usage_flag_disables_document_events(self, analytics_sink: RecordingAnalyticsSink) -> None:
        tracker = AnalyticsTracker(analytics_sink, track_document_usage=False)

        await tracker.track_search(_query(), [_hit()])
        await tracker.track_context([_usage()])

        assert [type(e).__name__ for e in analytics_sink.events] == ["SearchQueryEvent"]

    @pytest.mark.asyncio
    async def test_sink_failures_are_swallowed(self) -> None:
        tracker = AnalyticsTracker(RecordingAnalyticsSink(fail=True))

        await tracker.track_search_query(_query())
        await tracker.track_search_hit(_hit())
        await tracker.track_context_usage(_usage())

    @pytest.mark.asyncio
    async def test_purge_returns_zero_on_failure(self) -> None:
        tracker = AnalyticsTracker(RecordingAnalyticsSink(fail=True))
        assert await tracker.purge_document_events(["c1", "c2"]) == 0

    @pytest.mark.asyncio
    async def test_purge_forwards_chunk_ids(self, analytics_sink: RecordingAnalyticsSink) -> None:
        tracker = AnalyticsTracker(analytics_sink)

        assert await tracker.purge_document_events(["c1", "c2"]) == 2
        assert analytics_sink.purged == ["c1", "c2"]


class TestDispatch:
    @pytest.mark.asyncio
    async def test_dispatch_returns_before_completion(self, analytics_sink: RecordingAnalyticsSink) -> None:
        tracker = AnalyticsTracker(analytics_sink)
        release = asyncio.Event()

        async def slow_record() -> None:
            await release.wait()
            await tracker.track_search_query(_query())

        tracker.dispatch(slow_record())

        assert tracker.pending_count == 1
        assert analytics_sink.events == []

        release.set()
        await tracker.drain()

        assert tracker.pending_count == 0
        assert len(analytics_sink.events) == 1

    @pytest.mark.asyncio
    async def test_drain_with_nothing_pending(self, analytics_sink: RecordingAnalyticsSink) -> None:
        await AnalyticsTracker(analytics_sink).drain()
