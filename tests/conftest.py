"""Shared pytest fixtures for the knowledge-rag test suite."""

from __future__ import annotations

import asyncio
import hashlib
import math
import struct
from typing import Any

import pytest

from knowledge_rag.interfaces.analytics_sink import IAnalyticsSink
from knowledge_rag.interfaces.embedding_provider import IEmbeddingProvider
from knowledge_rag.interfaces.vector_store_provider import IVectorStoreProvider
from knowledge_rag.models.analytics import (
    ContextUsageEvent,
    SearchHitEvent,
    SearchQueryEvent,
)
from knowledge_rag.models.knowledge import DocumentChunk, SearchHit, StoredChunk
from knowledge_rag.services.analytics_tracker import AnalyticsTracker
from knowledge_rag.services.embedding_service import EmbeddingProviderChain
from knowledge_rag.utils.errors import ProviderError

# ---------------------------------------------------------------------------
# Deterministic embedding helpers
# ---------------------------------------------------------------------------

_EMBEDDING_DIM = 128


def _hash_to_vector(text: str, dim: int = _EMBEDDING_DIM) -> list[float]:
    """Generate a deterministic fixed-length vector by hashing *text*.

    Uses SHA-256 to hash the text, then unpacks bytes into floats and
    normalises to unit length.  Same text always produces the same vector.
    """
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    raw = digest
    while len(raw) < dim * 4:
        raw += hashlib.sha256(raw).digest()
    raw = raw[: dim * 4]
    values = [v if math.isfinite(v) else 0.0 for v in struct.unpack(f"<{dim}f", raw)]
    # Clip wild exponents so the norm stays finite
    values = [max(-1e6, min(1e6, v)) for v in values]
    magnitude = max(sum(v * v for v in values) ** 0.5, 1e-10)
    return [v / magnitude for v in values]


class MockEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider for tests.

    ``fail=True`` makes every call raise :class:`ProviderError`, which is
    how chain failover is exercised.
    """

    def __init__(
        self,
        name: str = "mock-embedding",
        dimension: int = _EMBEDDING_DIM,
        fail: bool = False,
    ) -> None:
        self._name = name
        self._dimension = dimension
        self._fail = fail
        self.calls: list[str] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed_single(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        self.calls.append(text)
        if self._fail:
            raise ProviderError(message="service unavailable", provider_name=self._name)
        return _hash_to_vector(text, self._dimension)

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return self._name

    def get_cost_per_1k_tokens(self) -> float:
        return 0.0

    def is_available(self) -> bool:
        return True


class BlockingEmbeddingProvider(MockEmbeddingProvider):
    """Provider whose calls hang until cancelled.

    ``started`` is set once the first call is in flight; ``cancelled``
    records that the in-flight call saw the cancellation.
    """

    def __init__(self, name: str = "blocking") -> None:
        super().__init__(name=name)
        self.started = asyncio.Event()
        self.cancelled = False

    async def embed_single(self, text: str) -> list[float]:
        self.calls.append(text)
        self.started.set()
        try:
            await asyncio.sleep(60)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return _hash_to_vector(text, self._dimension)


class InMemoryVectorStore(IVectorStoreProvider):
    """Dict-backed vector store scored by cosine similarity.

    Mirrors the scoping rules of the real store: ``agent_id=None`` spans the
    tenant for searches and listings but addresses the tenant-global copy
    for document-level operations.
    """

    def __init__(self) -> None:
        self._store: dict[str, tuple[DocumentChunk, list[float]]] = {}

    async def upsert_chunk(self, chunk: DocumentChunk, vector: list[float]) -> None:
        self._store[chunk.chunk_id] = (chunk, list(vector))

    async def similarity_search(
        self,
        tenant_id: str,
        agent_id: str | None,
        query_vector: list[float],
        limit: int,
        threshold: float,
        embedding_provider: str | None = None,
    ) -> list[SearchHit]:
        hits: list[SearchHit] = []
        for chunk, vector in self._store.values():
            if chunk.tenant_id != tenant_id:
                continue
            if agent_id is not None and chunk.agent_id != agent_id:
                continue
            if embedding_provider is not None and chunk.embedding_provider != embedding_provider:
                continue
            if len(vector) != len(query_vector):
                continue
            similarity = max(0.0, min(1.0, _cosine(query_vector, vector)))
            if similarity < threshold:
                continue
            hits.append(
                SearchHit(
                    id=chunk.chunk_id,
                    content=chunk.text,
                    similarity=similarity,
                    metadata=dict(chunk.metadata),
                )
            )
        hits.sort(key=lambda h: h.similarity, reverse=True)
        return hits[:limit]

    def _document_ids(self, tenant_id: str, agent_id: str | None, document_name: str) -> list[str]:
        return [
            cid
            for cid, (chunk, _) in self._store.items()
            if chunk.tenant_id == tenant_id
            and chunk.agent_id == agent_id
            and chunk.document_name == document_name
        ]

    async def delete_by_document(
        self, tenant_id: str, agent_id: str | None, document_name: str
    ) -> int:
        ids = self._document_ids(tenant_id, agent_id, document_name)
        for cid in ids:
            del self._store[cid]
        return len(ids)

    async def delete_chunks(self, chunk_ids: list[str]) -> int:
        removed = 0
        for cid in chunk_ids:
            if self._store.pop(cid, None) is not None:
                removed += 1
        return removed

    async def get_document_chunk_ids(
        self, tenant_id: str, agent_id: str | None, document_name: str
    ) -> list[str]:
        return self._document_ids(tenant_id, agent_id, document_name)

    async def list_chunks(
        self, tenant_id: str, agent_id: str | None = None
    ) -> list[StoredChunk]:
        rows: list[StoredChunk] = []
        for chunk, _ in self._store.values():
            if chunk.tenant_id != tenant_id:
                continue
            if agent_id is not None and chunk.agent_id != agent_id:
                continue
            rows.append(
                StoredChunk(
                    chunk_id=chunk.chunk_id,
                    agent_id=chunk.agent_id,
                    document_name=chunk.document_name,
                    chunk_index=chunk.chunk_index,
                    embedding_provider=chunk.embedding_provider,
                    metadata=dict(chunk.metadata),
                )
            )
        return rows

    def chunks(self) -> list[DocumentChunk]:
        return [chunk for chunk, _ in self._store.values()]

    def get_provider_name(self) -> str:
        return "memory"

    def is_available(self) -> bool:
        return True


def _cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class RecordingAnalyticsSink(IAnalyticsSink):
    """Analytics sink that keeps every event in order, for assertions."""

    def __init__(self, fail: bool = False) -> None:
        self._fail = fail
        self.events: list[Any] = []
        self.purged: list[str] = []

    async def record_search_query(self, event: SearchQueryEvent) -> None:
        if self._fail:
            raise RuntimeError("analytics database is locked")
        self.events.append(event)

    async def record_document_event(self, event: SearchHitEvent | ContextUsageEvent) -> None:
        if self._fail:
            raise RuntimeError("analytics database is locked")
        self.events.append(event)

    async def delete_document_events(self, chunk_ids: list[str]) -> int:
        if self._fail:
            raise RuntimeError("analytics database is locked")
        self.purged.extend(chunk_ids)
        return len(chunk_ids)

    def get_provider_name(self) -> str:
        return "recording"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_embedding_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


@pytest.fixture
def embedding_chain(mock_embedding_provider: MockEmbeddingProvider) -> EmbeddingProviderChain:
    """Single-provider chain over the deterministic mock embedder."""
    return EmbeddingProviderChain([mock_embedding_provider], timeout_seconds=5.0)


@pytest.fixture
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def analytics_sink() -> RecordingAnalyticsSink:
    return RecordingAnalyticsSink()


@pytest.fixture
def analytics_tracker(analytics_sink: RecordingAnalyticsSink) -> AnalyticsTracker:
    return AnalyticsTracker(sink=analytics_sink)
