"""Query-time retrieval over the knowledge base.

:class:`SearchEngine` embeds a query through the embedding chain, asks the
vector store for the closest chunks embedded by the same provider, and
returns them ranked by similarity.  Search unavailability is a soft
failure: embedding-chain and store errors come back as
``SearchResponse(success=False)`` so a chat pipeline can carry on
without retrieved context.  Analytics are dispatched on detached tasks and
never delay the response.
"""

from __future__ import annotations

import math
import time
from typing import TYPE_CHECKING

import structlog

from knowledge_rag.models.analytics import (
    ContextUsageEvent,
    SearchHitEvent,
    SearchQueryEvent,
)
from knowledge_rag.models.knowledge import (
    RagContext,
    SearchHit,
    SearchQuery,
    SearchResponse,
)
from knowledge_rag.utils.errors import EmbeddingChainError, StoreError

if TYPE_CHECKING:
    from knowledge_rag.interfaces.vector_store_provider import IVectorStoreProvider
    from knowledge_rag.services.analytics_tracker import AnalyticsTracker
    from knowledge_rag.services.embedding_service import EmbeddingProviderChain

logger = structlog.get_logger(logger_name=__name__)

CONTEXT_SEPARATOR = "\n\n---\n\n"
_UNKNOWN_SOURCE = "Unknown"


def clamp_threshold(value: float | None, default: float) -> float:
    """Clamp a similarity threshold into ``[0, 1]``; None or NaN means *default*."""
    if value is None or math.isnan(value):
        value = default
    return min(1.0, max(0.0, float(value)))


def clamp_limit(value: int | None, default: int, max_limit: int) -> int:
    """Clamp a result limit into ``[1, max_limit]``; None means *default*."""
    if value is None:
        value = default
    return min(max(1, max_limit), max(1, int(value)))


class SearchEngine:
    """Similarity search and generation-context assembly.

    Parameters
    ----------
    embedding_chain:
        Embeds the query text (a single call per search).
    vector_store:
        Answers cosine top-K queries.
    analytics:
        Optional tracker; when None no events are recorded.
    default_limit, default_threshold, max_limit:
        Ad-hoc search defaults and the hard cap on result count.
    rag_context_limit, rag_context_threshold:
        Defaults used by :meth:`build_context`.
    """

    def __init__(
        self,
        embedding_chain: EmbeddingProviderChain,
        vector_store: IVectorStoreProvider,
        analytics: AnalyticsTracker | None = None,
        default_limit: int = 5,
        default_threshold: float = 0.7,
        max_limit: int = 50,
        rag_context_limit: int = 3,
        rag_context_threshold: float = 0.7,
    ) -> None:
        self._embedding_chain = embedding_chain
        self._vector_store = vector_store
        self._analytics = analytics
        self._default_limit = default_limit
        self._default_threshold = default_threshold
        self._max_limit = max_limit
        self._rag_context_limit = rag_context_limit
        self._rag_context_threshold = rag_context_threshold

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def resolve_query(
        self,
        tenant_id: str,
        agent_id: str | None,
        query_text: str,
        limit: int | None = None,
        threshold: float | None = None,
        session_id: str | None = None,
    ) -> SearchQuery:
        """Apply defaults and clamping to caller-supplied search parameters."""
        return SearchQuery(
            query_text=query_text,
            tenant_id=tenant_id,
            agent_id=agent_id,
            limit=clamp_limit(limit, self._default_limit, self._max_limit),
            threshold=clamp_threshold(threshold, self._default_threshold),
            session_id=session_id,
        )

    async def search(
        self,
        tenant_id: str,
        agent_id: str | None,
        query_text: str,
        limit: int | None = None,
        threshold: float | None = None,
        session_id: str | None = None,
    ) -> SearchResponse:
        """Return the chunks most similar to *query_text*.

        ``agent_id=None`` searches the tenant's whole knowledge base.  Out of
        range ``limit``/``threshold`` values are clamped, never rejected.
        """
        query = self.resolve_query(tenant_id, agent_id, query_text, limit, threshold, session_id)
        start = time.monotonic()

        try:
            embedding = await self._embedding_chain.embed(query.query_text)
        except EmbeddingChainError as exc:
            return self._soft_failure(query, start, f"Query embedding failed: {exc}")

        try:
            rows = await self._vector_store.similarity_search(
                tenant_id=query.tenant_id,
                agent_id=query.agent_id,
                query_vector=embedding.vector,
                limit=query.limit,
                threshold=query.threshold,
                embedding_provider=embedding.provider_name,
            )
        except StoreError as exc:
            return self._soft_failure(
                query, start, f"Search failed: {exc}", embedding.provider_name
            )

        hits = sorted(
            (row for row in rows if row.similarity >= query.threshold),
            key=lambda row: row.similarity,
            reverse=True,
        )[: query.limit]
        elapsed_ms = self._elapsed_ms(start)

        self._track_search(query, hits, elapsed_ms)
        logger.info(
            "knowledge_search",
            tenant_id=query.tenant_id,
            agent_id=query.agent_id,
            embedding_provider=embedding.provider_name,
            limit=query.limit,
            threshold=query.threshold,
            results_count=len(hits),
            top_similarity=hits[0].similarity if hits else None,
            execution_time_ms=elapsed_ms,
        )
        return SearchResponse(
            success=True,
            documents=hits,
            embedding_provider=embedding.provider_name,
            execution_time_ms=elapsed_ms,
        )

    async def build_context(
        self,
        tenant_id: str,
        agent_id: str | None,
        message: str,
        session_id: str | None = None,
    ) -> RagContext:
        """Retrieve and format grounding context for a generation prompt.

        Uses the RAG-specific limit and threshold.  Any search failure yields
        an empty context, so the caller falls back to an ungrounded answer.
        """
        response = await self.search(
            tenant_id,
            agent_id,
            message,
            limit=self._rag_context_limit,
            threshold=self._rag_context_threshold,
            session_id=session_id,
        )
        if not response.success or not response.documents:
            return RagContext()

        if self._analytics is not None:
            events = [
                ContextUsageEvent(
                    tenant_id=tenant_id,
                    agent_id=agent_id,
                    session_id=session_id,
                    chunk_id=hit.id,
                    similarity_score=hit.similarity,
                )
                for hit in response.documents
            ]
            self._analytics.dispatch(self._analytics.track_context(events))

        return RagContext(
            has_context=True,
            context=format_context(response.documents),
            sources=[hit.original_file_name or _UNKNOWN_SOURCE for hit in response.documents],
            documents=response.documents,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _soft_failure(
        self,
        query: SearchQuery,
        start: float,
        error: str,
        embedding_provider: str | None = None,
    ) -> SearchResponse:
        elapsed_ms = self._elapsed_ms(start)
        logger.warning(
            "knowledge_search_failed",
            tenant_id=query.tenant_id,
            agent_id=query.agent_id,
            error=error,
        )
        self._track_search(query, [], elapsed_ms)
        return SearchResponse(
            success=False,
            documents=[],
            error=error,
            embedding_provider=embedding_provider,
            execution_time_ms=elapsed_ms,
        )

    def _track_search(self, query: SearchQuery, hits: list[SearchHit], elapsed_ms: int) -> None:
        if self._analytics is None:
            return

        query_event = SearchQueryEvent(
            tenant_id=query.tenant_id,
            agent_id=query.agent_id,
            session_id=query.session_id,
            query=query.query_text,
            results_count=len(hits),
            top_similarity_score=hits[0].similarity if hits else None,
            execution_time_ms=elapsed_ms,
        )
        hit_events = [
            SearchHitEvent(
                tenant_id=query.tenant_id,
                agent_id=query.agent_id,
                session_id=query.session_id,
                chunk_id=hit.id,
                rank=rank,
                similarity_score=hit.similarity,
            )
            for rank, hit in enumerate(hits, start=1)
        ]
        self._analytics.dispatch(self._analytics.track_search(query_event, hit_events))

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.monotonic() - start) * 1000)


def format_context(hits: list[SearchHit]) -> str:
    """Render hits as ``[Document: name]`` blocks separated by rules."""
    blocks = [
        f"[Document: {hit.original_file_name or _UNKNOWN_SOURCE}]\n{hit.content}"
        for hit in hits
    ]
    return CONTEXT_SEPARATOR.join(blocks)
