"""Orchestrator for the document ingestion pipeline.

Pipeline stages: **extract -> chunk -> embed -> store**.

:class:`IngestionPipeline` coordinates four injected collaborators (text
extractor, chunker, embedding chain, vector store) without any of them
knowing about each other.

Partial-failure policy: a chunk whose embedding or persistence fails is
skipped and reported in ``warnings``; already-persisted chunks are never
rolled back.  Re-ingesting a document writes the new chunks first and then
deletes the rows of the previous version that were not rewritten, so a
failed re-upload never loses the stored version.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from pathlib import PurePath
from typing import TYPE_CHECKING, Any

import structlog

from knowledge_rag.models.knowledge import (
    META_CHUNK_INDEX,
    META_CREATED_AT,
    META_EMBEDDING_PROVIDER,
    META_ORIGINAL_FILE_NAME,
    META_TOTAL_CHUNKS,
    DocumentChunk,
    IngestionResult,
)
from knowledge_rag.services.ingestion.chunker import TextChunker
from knowledge_rag.utils.concurrency import sequential_gather, throttled_gather
from knowledge_rag.utils.errors import ExtractionError, StoreError

if TYPE_CHECKING:
    from knowledge_rag.interfaces.text_extractor import ITextExtractor
    from knowledge_rag.interfaces.vector_store_provider import IVectorStoreProvider
    from knowledge_rag.services.embedding_service import EmbeddingProviderChain

logger = structlog.get_logger(logger_name=__name__)

_CHUNK_NAMESPACE = uuid.UUID("6f1c2d0e-8a4b-4f4e-9c55-3b0e7d1a9f21")


def make_chunk_id(
    tenant_id: str,
    agent_id: str | None,
    document_name: str,
    chunk_index: int,
    text: str,
    embedding_provider: str,
    dimensions: int,
) -> str:
    """Return a deterministic chunk id.

    Identical content at the same position of the same document, embedded
    into the same vector space, always maps to the same id, so re-ingesting
    unchanged text is idempotent.  The vector space is part of the key
    because each space lives in its own store collection.
    """
    key = "\x1f".join(
        [
            tenant_id,
            agent_id or "",
            document_name,
            str(chunk_index),
            text,
            embedding_provider,
            str(dimensions),
        ]
    )
    return str(uuid.uuid5(_CHUNK_NAMESPACE, key))


class IngestionPipeline:
    """Turns a document's text into embedded, persisted chunks.

    Parameters
    ----------
    chunker:
        Splits raw text into bounded-size chunks.
    embedding_chain:
        Failover chain producing one vector per chunk.
    vector_store:
        Persists chunks and their vectors.
    text_extractor:
        Optional; required only by :meth:`ingest_file`.
    max_concurrent_embeddings:
        Upper bound on in-flight embedding calls during one ingestion.
    parallel_embeddings:
        When False, chunks are embedded strictly one after another.
    max_file_size:
        Upload size ceiling in bytes for :meth:`ingest_file`.
    allowed_file_types:
        Upload extension whitelist for :meth:`ingest_file`.
    """

    def __init__(
        self,
        chunker: TextChunker,
        embedding_chain: EmbeddingProviderChain,
        vector_store: IVectorStoreProvider,
        text_extractor: ITextExtractor | None = None,
        max_concurrent_embeddings: int = 5,
        parallel_embeddings: bool = True,
        max_file_size: int = 10 * 1024 * 1024,
        allowed_file_types: list[str] | None = None,
    ) -> None:
        self._chunker = chunker
        self._embedding_chain = embedding_chain
        self._vector_store = vector_store
        self._text_extractor = text_extractor
        self._max_concurrent = max(1, max_concurrent_embeddings)
        self._parallel = parallel_embeddings
        self._max_file_size = max_file_size
        self._allowed_file_types = allowed_file_types

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest(
        self,
        tenant_id: str,
        agent_id: str | None,
        document_name: str,
        raw_text: str,
        extra_metadata: dict[str, Any] | None = None,
    ) -> IngestionResult:
        """Chunk, embed and persist one document's text.

        An earlier version of the document is replaced: its rows are looked
        up first and only the ones the new version did not rewrite are
        deleted, after the new chunks are stored.  If no new chunk could be
        stored the earlier version is left as it was.  Text with nothing to
        index removes the earlier version.
        """
        start = time.monotonic()
        extra_metadata = dict(extra_metadata or {})

        chunks = self._chunker.chunk(raw_text)

        try:
            previous_ids = await self._vector_store.get_document_chunk_ids(
                tenant_id, agent_id, document_name
            )
        except StoreError as exc:
            logger.error(
                "ingestion_replace_failed",
                tenant_id=tenant_id,
                document=document_name,
                error=str(exc),
            )
            return IngestionResult(
                success=False,
                document_name=document_name,
                error=f"Could not replace existing document: {exc}",
                ingestion_time=round(time.monotonic() - start, 3),
            )

        if not chunks:
            warnings = ["Document contains no indexable text"]
            if previous_ids:
                try:
                    removed = await self._vector_store.delete_chunks(previous_ids)
                except StoreError as exc:
                    logger.error(
                        "ingestion_replace_failed",
                        tenant_id=tenant_id,
                        document=document_name,
                        error=str(exc),
                    )
                    return IngestionResult(
                        success=False,
                        document_name=document_name,
                        error=f"Could not replace existing document: {exc}",
                        ingestion_time=round(time.monotonic() - start, 3),
                    )
                warnings.append(f"Removed {removed} chunks of the previous version")
            logger.info(
                "ingestion_empty_document",
                tenant_id=tenant_id,
                document=document_name,
                removed_chunks=len(previous_ids),
            )
            return IngestionResult(
                success=True,
                document_name=document_name,
                chunk_count=0,
                warnings=warnings,
                ingestion_time=round(time.monotonic() - start, 3),
            )

        created_at = time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
        coros = [
            self._embed_and_store(
                tenant_id=tenant_id,
                agent_id=agent_id,
                document_name=document_name,
                chunk_index=index,
                text=text,
                total_chunks=len(chunks),
                extra_metadata={**extra_metadata, META_CREATED_AT: created_at},
            )
            for index, text in enumerate(chunks)
        ]
        if self._parallel:
            outcomes = await throttled_gather(
                coros, semaphore=asyncio.Semaphore(self._max_concurrent)
            )
        else:
            outcomes = await sequential_gather(coros)

        warnings = []
        providers: list[str] = []
        written: set[str] = set()
        for index, outcome in enumerate(outcomes):
            if isinstance(outcome, BaseException):
                warnings.append(f"Chunk {index} skipped: {outcome}")
                logger.warning(
                    "ingestion_chunk_failed",
                    document=document_name,
                    chunk_index=index,
                    error=str(outcome),
                )
                continue
            chunk_id, provider_name = outcome
            written.add(chunk_id)
            if provider_name not in providers:
                providers.append(provider_name)

        persisted = len(written)
        failed = len(chunks) - persisted

        # The earlier version is only dropped once the new one is stored.
        stale_ids = [cid for cid in previous_ids if cid not in written]
        if persisted > 0 and stale_ids:
            try:
                removed = await self._vector_store.delete_chunks(stale_ids)
            except StoreError as exc:
                warnings.append(f"Previous version could not be removed: {exc}")
                logger.error(
                    "ingestion_stale_cleanup_failed",
                    tenant_id=tenant_id,
                    document=document_name,
                    stale_chunks=len(stale_ids),
                    error=str(exc),
                )
            else:
                logger.info(
                    "ingestion_replaced_document",
                    document=document_name,
                    old_chunks=removed,
                )

        elapsed = round(time.monotonic() - start, 3)
        result = IngestionResult(
            success=persisted > 0,
            document_name=document_name,
            chunk_count=persisted,
            failed_chunks=failed,
            warnings=warnings,
            embedding_providers=providers,
            ingestion_time=elapsed,
            error=None if persisted > 0 else "No chunk could be indexed",
        )

        logger.info(
            "ingestion_complete",
            tenant_id=tenant_id,
            agent_id=agent_id,
            document=document_name,
            chunks=persisted,
            failed_chunks=failed,
            providers=providers,
            time_s=elapsed,
        )
        return result

    async def ingest_file(
        self,
        tenant_id: str,
        agent_id: str | None,
        file_name: str,
        data: bytes,
        extra_metadata: dict[str, Any] | None = None,
    ) -> IngestionResult:
        """Validate an upload, extract its text, then :meth:`ingest` it.

        Validation and extraction problems come back as a failed
        :class:`IngestionResult`; nothing is written in that case.
        """
        extension = PurePath(file_name).suffix.lower().lstrip(".")

        if self._allowed_file_types is not None and extension not in self._allowed_file_types:
            return self._rejected(file_name, f"File type '.{extension}' is not allowed")
        if len(data) > self._max_file_size:
            return self._rejected(
                file_name,
                f"File is {len(data)} bytes, limit is {self._max_file_size}",
            )
        if self._text_extractor is None:
            return self._rejected(file_name, "No text extractor configured")

        try:
            text = await asyncio.to_thread(self._text_extractor.extract, data, extension)
        except ExtractionError as exc:
            logger.warning("ingestion_extraction_failed", file_name=file_name, error=str(exc))
            return self._rejected(file_name, str(exc))

        metadata = {
            "fileType": extension,
            "fileSize": len(data),
            "sourceLength": len(text),
            **(extra_metadata or {}),
        }
        return await self.ingest(tenant_id, agent_id, file_name, text, metadata)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _embed_and_store(
        self,
        tenant_id: str,
        agent_id: str | None,
        document_name: str,
        chunk_index: int,
        text: str,
        total_chunks: int,
        extra_metadata: dict[str, Any],
    ) -> tuple[str, str]:
        """Embed and persist one chunk; return its id and embedding provider."""
        embedding = await self._embedding_chain.embed(text)

        metadata = {
            **extra_metadata,
            META_ORIGINAL_FILE_NAME: document_name,
            META_CHUNK_INDEX: chunk_index,
            META_TOTAL_CHUNKS: total_chunks,
            META_EMBEDDING_PROVIDER: embedding.provider_name,
        }
        chunk = DocumentChunk(
            chunk_id=make_chunk_id(
                tenant_id,
                agent_id,
                document_name,
                chunk_index,
                text,
                embedding.provider_name,
                embedding.dimensions,
            ),
            tenant_id=tenant_id,
            agent_id=agent_id,
            document_name=document_name,
            chunk_index=chunk_index,
            text=text,
            embedding_provider=embedding.provider_name,
            embedding_dimensions=embedding.dimensions,
            metadata=metadata,
        )
        await self._vector_store.upsert_chunk(chunk, embedding.vector)
        return chunk.chunk_id, embedding.provider_name

    @staticmethod
    def _rejected(document_name: str, error: str) -> IngestionResult:
        logger.info("ingestion_rejected", document=document_name, error=error)
        return IngestionResult(success=False, document_name=document_name, error=error)
