"""Unit tests for SQLiteAnalyticsSink against a real database file."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import aiosqlite
import pytest
import pytest_asyncio

from knowledge_rag.models.analytics import ContextUsageEvent, SearchHitEvent, SearchQueryEvent
from knowledge_rag.providers.analytics.sqlite_analytics_sink import SQLiteAnalyticsSink
from knowledge_rag.utils.errors import AnalyticsError

_DAY = datetime(2024, 3, 5, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def sink(tmp_path: Path) -> SQLiteAnalyticsSink:
    instance = SQLiteAnalyticsSink(db_path=tmp_path / "nested" / "analytics.db")
    await instance.initialize()
    return instance


async def _rows(sink: SQLiteAnalyticsSink, sql: str) -> list[tuple]:
    async with aiosqlite.connect(str(sink._db_path)) as db:
        cursor = await db.execute(sql)
        return list(await cursor.fetchall())


class TestInitialize:
    @pytest.mark.asyncio
    async def test_creates_parent_directory_and_tables(self, sink: SQLiteAnalyticsSink) -> None:
        tables = await _rows(sink, "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")

        names = {row[0] for row in tables}
        assert {"search_analytics", "document_analytics", "usage_metrics"} <= names

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, sink: SQLiteAnalyticsSink) -> None:
        await sink.initialize()

    def test_provider_name(self, tmp_path: Path) -> None:
        assert SQLiteAnalyticsSink(db_path=tmp_path / "a.db").get_provider_name() == "sqlite"


class TestRecording:
    @pytest.mark.asyncio
    async def test_search_row_and_daily_counters(self, sink: SQLiteAnalyticsSink) -> None:
        await sink.record_search_query(
            SearchQueryEvent(
                tenant_id="acme",
                agent_id="support",
                query="refunds",
                results_count=2,
                top_similarity_score=0.82,
                execution_time_ms=14,
                session_id="s-1",
                occurred_at=_DAY,
            )
        )
        await sink.record_search_query(
            SearchQueryEvent(tenant_id="acme", query="nothing", results_count=0, occurred_at=_DAY)
        )

        searches = await _rows(
            sink, "SELECT query, results_count, top_similarity_score, user_session FROM search_analytics ORDER BY id"
        )
        metrics = await _rows(
            sink, "SELECT metric_type, metric_date, count FROM usage_metrics ORDER BY metric_type"
        )

        assert searches == [("refunds", 2, 0.82, "s-1"), ("nothing", 0, None, None)]
        assert metrics == [
            ("knowledge_hits", "2024-03-05", 1),
            ("knowledge_searches", "2024-03-05", 2),
        ]

    @pytest.mark.asyncio
    async def test_document_events(self, sink: SQLiteAnalyticsSink) -> None:
        await sink.record_document_event(
            SearchHitEvent(tenant_id="acme", chunk_id="c1", rank=1, similarity_score=0.9)
        )
        await sink.record_document_event(
            ContextUsageEvent(tenant_id="acme", chunk_id="c1", similarity_score=0.9, session_id="s")
        )

        rows = await _rows(
            sink, "SELECT document_id, event_type, rank, user_session FROM document_analytics ORDER BY id"
        )

        assert rows == [("c1", "search_hit", 1, None), ("c1", "context_used", None, "s")]

    @pytest.mark.asyncio
    async def test_uninitialised_database_raises(self, tmp_path: Path) -> None:
        bare = SQLiteAnalyticsSink(db_path=tmp_path / "bare.db")

        with pytest.raises(AnalyticsError):
            await bare.record_search_query(SearchQueryEvent(tenant_id="acme", query="q", results_count=0))


class TestPurge:
    @pytest.mark.asyncio
    async def test_removes_only_listed_chunks(self, sink: SQLiteAnalyticsSink) -> None:
        for chunk_id in ("c1", "c2", "c3"):
            await sink.record_document_event(
                SearchHitEvent(tenant_id="acme", chunk_id=chunk_id, rank=1, similarity_score=0.5)
            )

        removed = await sink.delete_document_events(["c1", "c3", "missing"])

        assert removed == 2
        remaining = await _rows(sink, "SELECT document_id FROM document_analytics")
        assert remaining == [("c2",)]

    @pytest.mark.asyncio
    async def test_empty_list_is_noop(self, sink: SQLiteAnalyticsSink) -> None:
        assert await sink.delete_document_events([]) == 0

    @pytest.mark.asyncio
    async def test_large_purge_is_batched(self, sink: SQLiteAnalyticsSink) -> None:
        ids = [f"c{i}" for i in range(1200)]
        async with aiosqlite.connect(str(sink._db_path)) as db:
            await db.executemany(
                "INSERT INTO document_analytics (tenant_id, document_id, event_type, created_at) "
                "VALUES ('acme', ?, 'search_hit', '2024-01-01')",
                [(i,) for i in ids],
            )
            await db.commit()

        assert await sink.delete_document_events(ids) == 1200
