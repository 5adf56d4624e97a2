"""Embedding provider implementations.

Five implementations of IEmbeddingProvider, in chain priority order:
    1. OpenAIEmbeddingProvider      : text-embedding-3-small (1536 dims).
    2. CohereEmbeddingProvider      : embed-english-light-v3.0 (384 dims).
    3. HuggingFaceEmbeddingProvider : all-MiniLM-L6-v2 inference API (384 dims).
    4. VoyageEmbeddingProvider      : voyage-lite-02-instruct (1024 dims).
    5. HashEmbeddingProvider        : local hash fallback (256 dims), always last.

``EMBEDDING_PROVIDER_REGISTRY`` maps the settings key of each API-backed
provider to its constructor.  The chain builder walks it in order and
instantiates only the providers whose credentials are configured.
"""

from __future__ import annotations

from typing import Callable

import httpx

from knowledge_rag.config.settings import Settings
from knowledge_rag.interfaces.embedding_provider import IEmbeddingProvider
from knowledge_rag.providers.embedding.cohere_embedding_provider import CohereEmbeddingProvider
from knowledge_rag.providers.embedding.hash_embedding_provider import HashEmbeddingProvider
from knowledge_rag.providers.embedding.huggingface_embedding_provider import (
    HuggingFaceEmbeddingProvider,
)
from knowledge_rag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from knowledge_rag.providers.embedding.voyage_embedding_provider import VoyageEmbeddingProvider

ProviderFactory = Callable[[Settings, httpx.AsyncClient], IEmbeddingProvider]

# Ordered: dict insertion order is the failover priority.
EMBEDDING_PROVIDER_REGISTRY: dict[str, ProviderFactory] = {
    "openai": lambda settings, _client: OpenAIEmbeddingProvider(settings),
    "cohere": lambda settings, client: CohereEmbeddingProvider(settings, client),
    "huggingface": lambda settings, client: HuggingFaceEmbeddingProvider(settings, client),
    "voyage": lambda settings, client: VoyageEmbeddingProvider(settings, client),
}

__all__ = [
    "EMBEDDING_PROVIDER_REGISTRY",
    "CohereEmbeddingProvider",
    "HashEmbeddingProvider",
    "HuggingFaceEmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "VoyageEmbeddingProvider",
]
