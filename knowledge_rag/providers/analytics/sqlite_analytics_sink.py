"""SQLite-backed analytics sink.

Appends search and per-chunk events to a local SQLite database using
``aiosqlite`` for async I/O.  Three tables:

- ``search_analytics``  : one row per executed search
- ``document_analytics``: one row per search hit or context usage
- ``usage_metrics``     : daily per-tenant counters (knowledge_searches,
  knowledge_hits), bumped alongside every search row
"""

from __future__ import annotations

from pathlib import Path

import aiosqlite
import structlog

from knowledge_rag.interfaces.analytics_sink import IAnalyticsSink
from knowledge_rag.models.analytics import (
    ContextUsageEvent,
    SearchHitEvent,
    SearchQueryEvent,
)
from knowledge_rag.utils.errors import AnalyticsError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/knowledge_analytics.db")

_CREATE_TABLES_SQL = [
    """\
CREATE TABLE IF NOT EXISTS search_analytics (
    id                   INTEGER PRIMARY KEY AUTOINCREMENT,
    tenant_id            TEXT    NOT NULL,
    agent_id             TEXT,
    query                TEXT    NOT NULL,
    results_count        INTEGER NOT NULL DEFAULT 0,
    top_similarity_score REAL,
    execution_time_ms    INTEGER NOT NULL DEFAULT 0,
    user_session         TEXT,
    created_at           TEXT    NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS document_analytics (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    tenant_id        TEXT    NOT NULL,
    agent_id         TEXT,
    document_id      TEXT    NOT NULL,
    event_type       TEXT    NOT NULL CHECK (event_type IN ('search_hit', 'context_used')),
    rank             INTEGER,
    similarity_score REAL,
    user_session     TEXT,
    created_at       TEXT    NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS usage_metrics (
    tenant_id   TEXT    NOT NULL,
    metric_type TEXT    NOT NULL,
    metric_date TEXT    NOT NULL,
    count       INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (tenant_id, metric_type, metric_date)
);
""",
]

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_search_tenant ON search_analytics(tenant_id, created_at);",
    "CREATE INDEX IF NOT EXISTS idx_docevents_tenant ON document_analytics(tenant_id, created_at);",
    "CREATE INDEX IF NOT EXISTS idx_docevents_document ON document_analytics(document_id);",
]

_INSERT_SEARCH_SQL = """\
INSERT INTO search_analytics
    (tenant_id, agent_id, query, results_count, top_similarity_score,
     execution_time_ms, user_session, created_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?);
"""

_INSERT_DOCUMENT_EVENT_SQL = """\
INSERT INTO document_analytics
    (tenant_id, agent_id, document_id, event_type, rank, similarity_score,
     user_session, created_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?);
"""

_INCREMENT_METRIC_SQL = """\
INSERT INTO usage_metrics (tenant_id, metric_type, metric_date, count)
VALUES (?, ?, ?, 1)
ON CONFLICT(tenant_id, metric_type, metric_date)
DO UPDATE SET count = count + 1;
"""

# SQLite's default bind-parameter ceiling is 999 on older builds.
_DELETE_BATCH = 500


class SQLiteAnalyticsSink(IAnalyticsSink):
    """Append-only SQLite analytics persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the analytics tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            for table_sql in _CREATE_TABLES_SQL:
                await db.execute(table_sql)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("analytics_db_initialized", path=str(self._db_path))

    async def record_search_query(self, event: SearchQueryEvent) -> None:
        """Insert a search row and bump the daily search/hit counters."""
        metric_date = event.occurred_at.date().isoformat()
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(
                    _INSERT_SEARCH_SQL,
                    (
                        event.tenant_id,
                        event.agent_id,
                        event.query,
                        event.results_count,
                        event.top_similarity_score,
                        event.execution_time_ms,
                        event.session_id,
                        event.occurred_at.isoformat(),
                    ),
                )
                await db.execute(
                    _INCREMENT_METRIC_SQL,
                    (event.tenant_id, "knowledge_searches", metric_date),
                )
                if event.results_count > 0:
                    await db.execute(
                        _INCREMENT_METRIC_SQL,
                        (event.tenant_id, "knowledge_hits", metric_date),
                    )
                await db.commit()
        except aiosqlite.Error as exc:
            raise AnalyticsError(
                message=f"Failed to record search query: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def record_document_event(
        self, event: SearchHitEvent | ContextUsageEvent
    ) -> None:
        """Insert a search_hit or context_used row."""
        rank = event.rank if isinstance(event, SearchHitEvent) else None
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(
                    _INSERT_DOCUMENT_EVENT_SQL,
                    (
                        event.tenant_id,
                        event.agent_id,
                        event.chunk_id,
                        event.event_type.value,
                        rank,
                        event.similarity_score,
                        event.session_id,
                        event.occurred_at.isoformat(),
                    ),
                )
                await db.commit()
        except aiosqlite.Error as exc:
            raise AnalyticsError(
                message=f"Failed to record {event.event_type.value} event: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def delete_document_events(self, chunk_ids: list[str]) -> int:
        """Purge per-chunk events for deleted chunks; return rows removed."""
        if not chunk_ids:
            return 0

        deleted = 0
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                for start in range(0, len(chunk_ids), _DELETE_BATCH):
                    batch = chunk_ids[start : start + _DELETE_BATCH]
                    placeholders = ", ".join("?" for _ in batch)
                    cursor = await db.execute(
                        f"DELETE FROM document_analytics WHERE document_id IN ({placeholders})",
                        batch,
                    )
                    deleted += cursor.rowcount
                await db.commit()
        except aiosqlite.Error as exc:
            raise AnalyticsError(
                message=f"Failed to purge document events: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("analytics_document_events_purged", chunk_count=len(chunk_ids), rows=deleted)
        return deleted

    def get_provider_name(self) -> str:
        return "sqlite"
