"""Abstract base class for text-embedding service providers.

Implementations wrap OpenAI, Cohere, HuggingFace Inference, Voyage, or the
local hash fallback.  Providers are interchangeable and are tried in
priority order by
:class:`~knowledge_rag.services.embedding_service.EmbeddingProviderChain`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations (knowledge_rag/providers/embedding/):
#   OpenAIEmbeddingProvider      : text-embedding-3-small, 1536-d
#   CohereEmbeddingProvider      : embed-english-light-v3.0, 384-d
#   HuggingFaceEmbeddingProvider : all-MiniLM-L6-v2 inference API, 384-d
#   VoyageEmbeddingProvider      : voyage-lite-02-instruct, 1024-d
#   HashEmbeddingProvider        : local bag-of-words hash, 256-d, never fails
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by the knowledge base."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Returns
        -------
        list[list[float]]
            Vectors corresponding positionally to *texts*, each of length
            :meth:`get_dimension`.

        Raises
        ------
        knowledge_rag.utils.errors.ProviderError
            If the underlying API call fails.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the fixed dimensionality of this provider's vectors."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return the identifier stored alongside every vector, e.g. ``"openai"``."""

    @abstractmethod
    def get_cost_per_1k_tokens(self) -> float:
        """Return the approximate USD cost per 1000 tokens.

        Informational only: logged and reported, never enforced.
        """

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured (credentials present)."""
