"""Document-level lifecycle: listing and cascading deletion.

A logical document expands into many chunk rows that share the same
``(tenant, agent, originalFileName)`` identity.  Deletion always matches on
that identity, never on a single chunk id, so every chunk the document
produced is removed together with the analytics rows that reference them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from knowledge_rag.models.knowledge import (
    DeletionResult,
    DocumentPage,
    DocumentSummary,
    StoredChunk,
)
from knowledge_rag.utils.errors import StoreError

if TYPE_CHECKING:
    from knowledge_rag.interfaces.vector_store_provider import IVectorStoreProvider
    from knowledge_rag.services.analytics_tracker import AnalyticsTracker

logger = structlog.get_logger(logger_name=__name__)

DOCUMENT_NOT_FOUND = "Document not found"


class DocumentLifecycleManager:
    """Owns delete-by-document and paginated document listing."""

    def __init__(
        self,
        vector_store: IVectorStoreProvider,
        analytics: AnalyticsTracker | None = None,
        default_page_size: int = 50,
        max_page_size: int = 100,
    ) -> None:
        self._vector_store = vector_store
        self._analytics = analytics
        self._default_page_size = default_page_size
        self._max_page_size = max_page_size

    async def delete_document(
        self,
        tenant_id: str,
        agent_id: str | None,
        original_file_name: str,
    ) -> DeletionResult:
        """Remove every chunk of one document and its dependent analytics rows.

        ``agent_id=None`` addresses the tenant-global copy of the document.
        """
        try:
            chunk_ids = await self._vector_store.get_document_chunk_ids(
                tenant_id, agent_id, original_file_name
            )
            if not chunk_ids:
                logger.info(
                    "document_delete_not_found",
                    tenant_id=tenant_id,
                    agent_id=agent_id,
                    document=original_file_name,
                )
                return DeletionResult(
                    success=False,
                    document_name=original_file_name,
                    error=DOCUMENT_NOT_FOUND,
                )

            deleted = await self._vector_store.delete_by_document(
                tenant_id, agent_id, original_file_name
            )
        except StoreError as exc:
            logger.error(
                "document_delete_failed",
                tenant_id=tenant_id,
                document=original_file_name,
                error=str(exc),
            )
            return DeletionResult(
                success=False,
                document_name=original_file_name,
                error=str(exc),
            )

        purged = 0
        if self._analytics is not None:
            purged = await self._analytics.purge_document_events(chunk_ids)

        logger.info(
            "document_deleted",
            tenant_id=tenant_id,
            agent_id=agent_id,
            document=original_file_name,
            deleted_chunks=deleted,
            purged_events=purged,
        )
        return DeletionResult(
            success=True,
            document_name=original_file_name,
            deleted_chunk_count=deleted,
        )

    async def list_documents(
        self,
        tenant_id: str,
        agent_id: str | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> DocumentPage:
        """Return one page of documents, newest first.

        ``agent_id=None`` lists every document of the tenant.

        Raises
        ------
        StoreError
            If the store cannot be read.
        """
        page = max(1, page)
        size = page_size if page_size is not None else self._default_page_size
        size = min(max(1, size), self._max_page_size)

        chunks = await self._vector_store.list_chunks(tenant_id, agent_id)
        documents = group_chunks(chunks)

        offset = (page - 1) * size
        return DocumentPage(
            documents=documents[offset : offset + size],
            total=len(documents),
            page=page,
            page_size=size,
        )


def group_chunks(chunks: list[StoredChunk]) -> list[DocumentSummary]:
    """Collapse chunk rows into one summary per ``(agent, file name)``, newest first."""
    groups: dict[tuple[str | None, str], list[StoredChunk]] = {}
    for chunk in chunks:
        groups.setdefault((chunk.agent_id, chunk.document_name), []).append(chunk)

    summaries: list[DocumentSummary] = []
    for (agent_id, name), rows in groups.items():
        rows.sort(key=lambda row: row.chunk_index)
        first = rows[0]
        summaries.append(
            DocumentSummary(
                original_file_name=name,
                agent_id=agent_id,
                chunk_count=len(rows),
                embedding_provider=first.embedding_provider or None,
                created_at=min(row.created_at for row in rows),
                metadata=first.metadata,
            )
        )

    summaries.sort(
        key=lambda s: (s.created_at.timestamp() if s.created_at else 0.0, s.original_file_name),
        reverse=True,
    )
    return summaries
