"""Analytics sink implementations."""

from knowledge_rag.providers.analytics.sqlite_analytics_sink import SQLiteAnalyticsSink

__all__ = ["SQLiteAnalyticsSink"]
