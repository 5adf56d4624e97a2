"""HuggingFace Inference API embedding provider adapter.

Calls the hosted feature-extraction pipeline for
``sentence-transformers/all-MiniLM-L6-v2`` (384 dims).  Free with rate
limits; ``wait_for_model`` makes a cold model load block instead of 503.
"""

from __future__ import annotations

from typing import Any

import httpx

from knowledge_rag.config.settings import Settings
from knowledge_rag.providers.embedding.http_embedding_provider import HTTPEmbeddingProvider

_HF_MODEL = "sentence-transformers/all-MiniLM-L6-v2"
_HF_ENDPOINT = f"https://api-inference.huggingface.co/models/{_HF_MODEL}"


class HuggingFaceEmbeddingProvider(HTTPEmbeddingProvider):
    """Embedding provider backed by the HuggingFace Inference API."""

    _endpoint = _HF_ENDPOINT
    _batch_limit = 32

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(api_key=settings.huggingface_api_key, http_client=http_client)

    def _build_payload(self, texts: list[str]) -> dict[str, Any]:
        return {"inputs": texts, "options": {"wait_for_model": True}}

    def _parse_vectors(self, data: Any) -> list[list[float]]:
        # The pipeline returns a bare list of vectors, or a dict on error.
        if isinstance(data, dict):
            raise TypeError(data.get("error", "unexpected object response"))
        return data

    def get_dimension(self) -> int:
        return 384

    def get_provider_name(self) -> str:
        return "huggingface"

    def get_cost_per_1k_tokens(self) -> float:
        return 0.0
