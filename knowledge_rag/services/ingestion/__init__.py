"""Document ingestion for the knowledge base.

Orchestrates **extract -> chunk -> embed -> store**:

1. **Extract** (ITextExtractor) -- uploaded bytes to plain text.
2. **Chunk** (chunker.py / TextChunker) -- paragraph, then sentence, then
   word granularity, never exceeding the configured size.
3. **Embed** (EmbeddingProviderChain) -- one vector per chunk with bounded
   concurrency and provider failover.
4. **Store** (IVectorStoreProvider) -- one row per chunk, tagged with the
   provider that embedded it.
"""

from knowledge_rag.services.ingestion.chunker import TextChunker, chunk_text
from knowledge_rag.services.ingestion.ingestion_service import IngestionPipeline, make_chunk_id

__all__ = [
    "IngestionPipeline",
    "TextChunker",
    "chunk_text",
    "make_chunk_id",
]
