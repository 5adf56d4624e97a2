"""Utility modules for the knowledge subsystem.

- **errors** -- Exception hierarchy rooted at KnowledgeBaseError; each
  stage raises its own subclass so services can turn store failures into
  soft results while letting configuration errors surface.
- **concurrency** -- semaphore-throttled gather used for bounded
  embedding fan-out during ingestion.
- **logging** -- structlog setup with a dual renderer: coloured console
  output in development, structured JSON in production.
"""

from knowledge_rag.utils.concurrency import sequential_gather, throttled_gather
from knowledge_rag.utils.errors import (
    AnalyticsError,
    ChunkingError,
    ConfigurationError,
    EmbeddingChainError,
    ExtractionError,
    KnowledgeBaseError,
    ProviderError,
    StoreError,
)
from knowledge_rag.utils.logging import configure_logging, get_logger, log_scope

__all__ = [
    "AnalyticsError",
    "ChunkingError",
    "ConfigurationError",
    "EmbeddingChainError",
    "ExtractionError",
    "KnowledgeBaseError",
    "ProviderError",
    "StoreError",
    "configure_logging",
    "get_logger",
    "log_scope",
    "sequential_gather",
    "throttled_gather",
]
