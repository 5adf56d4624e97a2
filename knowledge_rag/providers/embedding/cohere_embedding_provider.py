"""Cohere embedding provider adapter (``embed-english-light-v3.0``)."""

from __future__ import annotations

from typing import Any

import httpx

from knowledge_rag.config.settings import Settings
from knowledge_rag.providers.embedding.http_embedding_provider import HTTPEmbeddingProvider

_COHERE_ENDPOINT = "https://api.cohere.ai/v1/embed"


class CohereEmbeddingProvider(HTTPEmbeddingProvider):
    """Embedding provider backed by Cohere's v1 embed endpoint.

    The light English model produces 384-dimensional vectors and accepts
    up to 96 texts per call.
    """

    _endpoint = _COHERE_ENDPOINT
    _batch_limit = 96

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(api_key=settings.cohere_api_key, http_client=http_client)
        self._model = "embed-english-light-v3.0"

    def _build_payload(self, texts: list[str]) -> dict[str, Any]:
        return {
            "texts": texts,
            "model": self._model,
            "input_type": "search_document",
        }

    def _parse_vectors(self, data: Any) -> list[list[float]]:
        return data["embeddings"]

    def get_dimension(self) -> int:
        return 384

    def get_provider_name(self) -> str:
        return "cohere"

    def get_cost_per_1k_tokens(self) -> float:
        return 0.0001
