"""Public interface definitions for the knowledge subsystem's collaborators.

Every external service is reached through the abstract base classes in
this package.  Concrete adapters live in ``knowledge_rag/providers/`` and
are wired together in ``knowledge_rag/main.py``.

CONCRETE PROVIDER MAP:
    Interface              →  Concrete implementations
    ─────────────────────────────────────────────────────────────
    IEmbeddingProvider     →  OpenAIEmbeddingProvider, CohereEmbeddingProvider,
                              HuggingFaceEmbeddingProvider,
                              VoyageEmbeddingProvider, HashEmbeddingProvider
    IVectorStoreProvider   →  ChromaDBProvider
    IAnalyticsSink         →  SQLiteAnalyticsSink
    ITextExtractor         →  PlainTextExtractor, PDFTextExtractor,
                              CompositeTextExtractor
"""

from knowledge_rag.interfaces.analytics_sink import IAnalyticsSink
from knowledge_rag.interfaces.embedding_provider import IEmbeddingProvider
from knowledge_rag.interfaces.text_extractor import ITextExtractor
from knowledge_rag.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "IAnalyticsSink",
    "IEmbeddingProvider",
    "ITextExtractor",
    "IVectorStoreProvider",
]
