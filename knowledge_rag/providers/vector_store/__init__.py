"""Vector store provider implementations.

ChromaDB is the sole vector store implementation.  It persists chunk
embeddings on disk under CHROMADB_PERSIST_DIR and answers cosine
top-K queries with metadata filtering.  Any other store (pgvector,
Qdrant) only needs a class implementing IVectorStoreProvider registered
in main.py.
"""

from knowledge_rag.providers.vector_store.chromadb_provider import ChromaDBProvider

__all__ = ["ChromaDBProvider"]
