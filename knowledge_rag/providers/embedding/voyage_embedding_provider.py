"""Voyage AI embedding provider adapter (``voyage-lite-02-instruct``)."""

from __future__ import annotations

from typing import Any

import httpx

from knowledge_rag.config.settings import Settings
from knowledge_rag.providers.embedding.http_embedding_provider import HTTPEmbeddingProvider

_VOYAGE_ENDPOINT = "https://api.voyageai.com/v1/embeddings"


class VoyageEmbeddingProvider(HTTPEmbeddingProvider):
    """Embedding provider backed by Voyage's OpenAI-shaped embeddings API."""

    _endpoint = _VOYAGE_ENDPOINT
    _batch_limit = 128

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(api_key=settings.voyage_api_key, http_client=http_client)
        self._model = "voyage-lite-02-instruct"

    def _build_payload(self, texts: list[str]) -> dict[str, Any]:
        return {"input": texts, "model": self._model}

    def _parse_vectors(self, data: Any) -> list[list[float]]:
        rows = sorted(data["data"], key=lambda row: row.get("index", 0))
        return [row["embedding"] for row in rows]

    def get_dimension(self) -> int:
        return 1024

    def get_provider_name(self) -> str:
        return "voyage"

    def get_cost_per_1k_tokens(self) -> float:
        return 0.00013
