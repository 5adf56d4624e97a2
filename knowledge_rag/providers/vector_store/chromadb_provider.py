"""ChromaDB vector store provider adapter.

Wraps ``chromadb.PersistentClient`` to implement :class:`IVectorStoreProvider`.
Fully local and Python-native, no external service required.

A Chroma collection is fixed to one dimensionality, and one provider can
change dimensionality when its model is reconfigured.  The adapter therefore
keeps one collection per embedding provider and vector length, named
``{collection_prefix}_{provider}_{dimensions}``.  A query embedded by
provider X at D dimensions is only ever compared against chunks embedded by
X at D.  Document-level operations (delete, listing) span every collection
carrying the prefix.
"""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from typing import Any

# Disable ChromaDB's anonymous telemetry before the client is imported.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import chromadb
import structlog

from knowledge_rag.interfaces.vector_store_provider import IVectorStoreProvider
from knowledge_rag.models.knowledge import DocumentChunk, SearchHit, StoredChunk
from knowledge_rag.utils.errors import StoreError

logger = structlog.get_logger(logger_name=__name__)

_GLOBAL_AGENT = ""
_PAGE_SIZE = 5000


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Prevents ChromaDB from loading its default ONNX model.

    Every vector is computed by the embedding chain and passed explicitly.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError("Embeddings are always supplied by the caller.")

    def name(self) -> str:
        return "noop_precomputed"


class ChromaDBProvider(IVectorStoreProvider):
    """Vector store provider backed by ChromaDB with local persistence."""

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        collection_prefix: str = "knowledge",
    ) -> None:
        self._persist_directory = persist_directory
        self._collection_prefix = collection_prefix
        self._client = chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        self._collections: dict[str, Any] = {}

    # ------------------------------------------------------------------
    # Collection management
    # ------------------------------------------------------------------

    def _collection_name(self, embedding_provider: str, dimensions: int) -> str:
        return f"{self._collection_prefix}_{embedding_provider}_{dimensions}"

    def _open_collection(self, name: str, create: bool, dimensions: int | None = None) -> Any:
        if name in self._collections:
            return self._collections[name]

        metadata: dict[str, Any] = {"hnsw:space": "cosine"}
        if dimensions is not None:
            metadata["embedding_dimensions"] = dimensions

        try:
            if create:
                collection = self._client.get_or_create_collection(
                    name=name,
                    metadata=metadata,
                    embedding_function=_NoopEmbeddingFunction(),
                )
            else:
                collection = self._client.get_collection(
                    name=name, embedding_function=_NoopEmbeddingFunction()
                )
        except ValueError:
            # Collections persisted with a different embedding-function
            # config refuse the no-op one; open them as persisted.
            if create:
                collection = self._client.get_or_create_collection(name=name, metadata=metadata)
            else:
                collection = self._client.get_collection(name=name)

        self._collections[name] = collection
        return collection

    def _all_collections(self) -> list[Any]:
        """Return every collection owned by this adapter (matching the prefix)."""
        prefix = f"{self._collection_prefix}_"
        names: list[str] = []
        for entry in self._client.list_collections():
            name = entry if isinstance(entry, str) else entry.name
            if name.startswith(prefix):
                names.append(name)
        return [self._open_collection(name, create=False) for name in sorted(names)]

    # ------------------------------------------------------------------
    # Metadata translation
    # ------------------------------------------------------------------

    @staticmethod
    def _agent_value(agent_id: str | None) -> str:
        return agent_id if agent_id is not None else _GLOBAL_AGENT

    @staticmethod
    def _where(conditions: dict[str, Any]) -> dict[str, Any]:
        # Chroma requires an explicit $and once there is more than one key.
        if len(conditions) == 1:
            return dict(conditions)
        return {"$and": [{key: value} for key, value in conditions.items()]}

    def _document_where(
        self, tenant_id: str, agent_id: str | None, document_name: str
    ) -> dict[str, Any]:
        return self._where(
            {
                "tenant_id": tenant_id,
                "agent_id": self._agent_value(agent_id),
                "document_name": document_name,
            }
        )

    def _chunk_to_metadata(self, chunk: DocumentChunk) -> dict[str, Any]:
        """Flatten a chunk into Chroma metadata (str/int/float/bool values only)."""
        return {
            "tenant_id": chunk.tenant_id,
            "agent_id": self._agent_value(chunk.agent_id),
            "document_name": chunk.document_name,
            "chunk_index": chunk.chunk_index,
            "embedding_provider": chunk.embedding_provider,
            "embedding_dimensions": chunk.embedding_dimensions,
            "created_at": datetime.now(timezone.utc).isoformat(),
            "metadata_json": json.dumps(chunk.metadata, default=str, sort_keys=True),
        }

    @staticmethod
    def _caller_metadata(meta: dict[str, Any] | None) -> dict[str, Any]:
        if not meta:
            return {}
        raw = meta.get("metadata_json")
        if not raw:
            return {}
        try:
            decoded = json.loads(raw)
        except (TypeError, ValueError):
            return {}
        return decoded if isinstance(decoded, dict) else {}

    def _metadata_to_stored_chunk(self, chunk_id: str, meta: dict[str, Any]) -> StoredChunk:
        created_raw = meta.get("created_at")
        created_at = (
            datetime.fromisoformat(created_raw)
            if created_raw
            else datetime.now(timezone.utc)
        )
        agent = meta.get("agent_id") or None
        return StoredChunk(
            chunk_id=chunk_id,
            agent_id=agent,
            document_name=meta.get("document_name", ""),
            chunk_index=int(meta.get("chunk_index", 0)),
            embedding_provider=meta.get("embedding_provider", ""),
            created_at=created_at,
            metadata=self._caller_metadata(meta),
        )

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def upsert_chunk(self, chunk: DocumentChunk, vector: list[float]) -> None:
        """Upsert one chunk into the collection for its provider and vector length."""
        try:
            collection = self._open_collection(
                self._collection_name(chunk.embedding_provider, len(vector)),
                create=True,
                dimensions=len(vector),
            )
            collection.upsert(
                ids=[chunk.chunk_id],
                embeddings=[vector],
                documents=[chunk.text],
                metadatas=[self._chunk_to_metadata(chunk)],
            )
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB upsert failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.debug(
            "chromadb_upsert_chunk",
            chunk_id=chunk.chunk_id,
            document=chunk.document_name,
            embedding_provider=chunk.embedding_provider,
        )

    async def similarity_search(
        self,
        tenant_id: str,
        agent_id: str | None,
        query_vector: list[float],
        limit: int,
        threshold: float,
        embedding_provider: str | None = None,
    ) -> list[SearchHit]:
        """Cosine top-K over the collection(s) matching the query's provider.

        Without *embedding_provider*, every collection whose stored vectors
        have the query's dimensionality is searched and results are merged.
        """
        conditions: dict[str, Any] = {"tenant_id": tenant_id}
        if agent_id is not None:
            conditions["agent_id"] = agent_id
        where = self._where(conditions)

        try:
            if embedding_provider is not None:
                name = self._collection_name(embedding_provider, len(query_vector))
                collections = [c for c in self._all_collections() if c.name == name]
            else:
                collections = [
                    c
                    for c in self._all_collections()
                    if (c.metadata or {}).get("embedding_dimensions") == len(query_vector)
                ]

            hits: list[SearchHit] = []
            for collection in collections:
                count = collection.count()
                if count == 0:
                    continue
                results = collection.query(
                    query_embeddings=[query_vector],
                    n_results=min(limit, count),
                    where=where,
                    include=["documents", "metadatas", "distances"],
                )
                hits.extend(self._results_to_hits(results, threshold))
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB similarity search failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        hits.sort(key=lambda hit: hit.similarity, reverse=True)
        hits = hits[:limit]

        logger.info(
            "chromadb_similarity_search",
            tenant_id=tenant_id,
            agent_id=agent_id,
            embedding_provider=embedding_provider,
            collections=len(collections),
            results_count=len(hits),
            top_score=hits[0].similarity if hits else 0.0,
        )
        return hits

    def _results_to_hits(self, results: dict[str, Any], threshold: float) -> list[SearchHit]:
        if not results.get("ids") or not results["ids"][0]:
            return []

        ids = results["ids"][0]
        documents = results["documents"][0] if results.get("documents") else [""] * len(ids)
        metadatas = results["metadatas"][0] if results.get("metadatas") else [{}] * len(ids)
        distances = results["distances"][0] if results.get("distances") else [1.0] * len(ids)

        hits: list[SearchHit] = []
        for chunk_id, text, meta, distance in zip(ids, documents, metadatas, distances, strict=True):
            similarity = max(0.0, min(1.0, 1.0 - distance))
            if similarity < threshold:
                continue
            hits.append(
                SearchHit(
                    id=chunk_id,
                    content=text or "",
                    similarity=similarity,
                    metadata=self._caller_metadata(meta),
                )
            )
        return hits

    async def get_document_chunk_ids(
        self, tenant_id: str, agent_id: str | None, document_name: str
    ) -> list[str]:
        where = self._document_where(tenant_id, agent_id, document_name)
        try:
            chunk_ids: list[str] = []
            for collection in self._all_collections():
                existing = collection.get(where=where, include=["metadatas"])
                chunk_ids.extend(existing["ids"] or [])
            return chunk_ids
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB chunk lookup failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def delete_by_document(
        self, tenant_id: str, agent_id: str | None, document_name: str
    ) -> int:
        """Delete every chunk of one document, across all provider collections."""
        where = self._document_where(tenant_id, agent_id, document_name)
        try:
            deleted = 0
            for collection in self._all_collections():
                existing = collection.get(where=where, include=["metadatas"])
                count = len(existing["ids"]) if existing["ids"] else 0
                if count > 0:
                    collection.delete(where=where)
                    deleted += count
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB delete_by_document failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info(
            "chromadb_delete_by_document",
            tenant_id=tenant_id,
            agent_id=agent_id,
            document=document_name,
            deleted_count=deleted,
        )
        return deleted

    async def delete_chunks(self, chunk_ids: list[str]) -> int:
        """Delete chunks by id from whichever collections hold them."""
        if not chunk_ids:
            return 0
        try:
            deleted = 0
            for collection in self._all_collections():
                existing = collection.get(ids=list(chunk_ids), include=["metadatas"])
                found = existing["ids"] or []
                if found:
                    collection.delete(ids=found)
                    deleted += len(found)
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB delete_chunks failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chromadb_delete_chunks", requested=len(chunk_ids), deleted_count=deleted)
        return deleted

    async def list_chunks(
        self, tenant_id: str, agent_id: str | None = None
    ) -> list[StoredChunk]:
        """Return chunk rows for a tenant, paginating to stay under SQLite bind limits."""
        conditions: dict[str, Any] = {"tenant_id": tenant_id}
        if agent_id is not None:
            conditions["agent_id"] = agent_id
        where = self._where(conditions)

        try:
            rows: list[StoredChunk] = []
            for collection in self._all_collections():
                offset = 0
                while True:
                    page = collection.get(
                        where=where,
                        include=["metadatas"],
                        limit=_PAGE_SIZE,
                        offset=offset,
                    )
                    ids = page["ids"] or []
                    metadatas = page["metadatas"] or [{}] * len(ids)
                    for chunk_id, meta in zip(ids, metadatas, strict=True):
                        rows.append(self._metadata_to_stored_chunk(chunk_id, meta or {}))
                    if len(ids) < _PAGE_SIZE:
                        break
                    offset += _PAGE_SIZE
            return rows
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB list_chunks failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        """Return ``True`` if the ChromaDB client responds to a heartbeat."""
        try:
            self._client.heartbeat()
            return True
        except Exception:
            return False
