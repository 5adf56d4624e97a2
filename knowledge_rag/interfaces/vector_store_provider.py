"""Abstract base class for vector-store service providers.

The core only requires cosine-similarity top-K with a numeric threshold,
per-row provider tagging and delete-by-document.  The index implementation
is the adapter's business.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from knowledge_rag.models.knowledge import DocumentChunk, SearchHit, StoredChunk


# Concrete implementation: ChromaDBProvider (knowledge_rag/providers/vector_store/)
class IVectorStoreProvider(ABC):
    """Contract for chunk persistence and similarity search.

    **Agent scoping.** ``similarity_search`` and ``list_chunks`` treat
    ``agent_id=None`` as "every chunk of the tenant".  The document-level
    methods (``delete_by_document``, ``get_document_chunk_ids``) treat it
    as "the tenant-global document", because a document is identified by
    the exact ``(tenant, agent, file name)`` tuple.
    """

    @abstractmethod
    async def upsert_chunk(self, chunk: DocumentChunk, vector: list[float]) -> None:
        """Insert or replace a chunk row keyed by ``chunk.chunk_id``.

        Raises
        ------
        knowledge_rag.utils.errors.StoreError
            If the write fails.
        """

    @abstractmethod
    async def similarity_search(
        self,
        tenant_id: str,
        agent_id: str | None,
        query_vector: list[float],
        limit: int,
        threshold: float,
        embedding_provider: str | None = None,
    ) -> list[SearchHit]:
        """Return up to *limit* chunks with cosine similarity >= *threshold*.

        Parameters
        ----------
        embedding_provider:
            When given, only chunks embedded by this provider are compared.
            Vectors from different providers are not dimension-compatible.

        Returns
        -------
        list[SearchHit]
            Ranked by similarity, descending.

        Raises
        ------
        knowledge_rag.utils.errors.StoreError
            If the query fails.
        """

    @abstractmethod
    async def delete_by_document(
        self, tenant_id: str, agent_id: str | None, document_name: str
    ) -> int:
        """Delete every chunk of one document and return how many were removed."""

    @abstractmethod
    async def delete_chunks(self, chunk_ids: list[str]) -> int:
        """Delete chunks by id and return how many existed.

        Unknown ids are ignored.  Used to drop the stale rows of a
        re-ingested document once its new version is written.
        """

    @abstractmethod
    async def get_document_chunk_ids(
        self, tenant_id: str, agent_id: str | None, document_name: str
    ) -> list[str]:
        """Return the ids of every chunk belonging to one document."""

    @abstractmethod
    async def list_chunks(
        self, tenant_id: str, agent_id: str | None = None
    ) -> list[StoredChunk]:
        """Return chunk rows (without vectors) for document listing."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"chromadb"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the store is reachable."""
