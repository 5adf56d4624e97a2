"""Shared plumbing for embedding providers that speak plain JSON over HTTP.

Cohere, HuggingFace Inference and Voyage have no SDK dependency here; they
are called through a shared ``httpx.AsyncClient`` owned by the composition
root.  Every transport or HTTP-status failure is converted into a
:class:`~knowledge_rag.utils.errors.ProviderError` so the embedding chain
can fail over to the next provider.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Any

import httpx
import structlog

from knowledge_rag.interfaces.embedding_provider import IEmbeddingProvider
from knowledge_rag.utils.errors import ProviderError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_TIMEOUT = 30.0


class HTTPEmbeddingProvider(IEmbeddingProvider):
    """Base class for bearer-token JSON embedding APIs.

    Subclasses define the endpoint, the request body and how vectors are
    pulled out of the response.  Batching and error mapping live here.
    """

    _endpoint: str = ""
    _batch_limit: int = 96

    def __init__(
        self,
        api_key: str,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._http_client = http_client or httpx.AsyncClient(timeout=_DEFAULT_TIMEOUT)

    # ------------------------------------------------------------------
    # Subclass hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def _build_payload(self, texts: list[str]) -> dict[str, Any]:
        """Return the JSON request body for one batch."""

    @abstractmethod
    def _parse_vectors(self, data: Any) -> list[list[float]]:
        """Pull the vectors out of a decoded JSON response."""

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts*, splitting into batches of ``_batch_limit``."""
        if not texts:
            return []

        all_embeddings: list[list[float]] = []
        for start in range(0, len(texts), self._batch_limit):
            batch = texts[start : start + self._batch_limit]
            data = await self._post(self._build_payload(batch))
            try:
                vectors = self._parse_vectors(data)
            except (KeyError, IndexError, TypeError) as exc:
                raise ProviderError(
                    message=f"Unexpected response shape: {exc!r}",
                    provider_name=self.get_provider_name(),
                ) from exc

            if len(vectors) != len(batch):
                raise ProviderError(
                    message=f"Expected {len(batch)} vectors, got {len(vectors)}",
                    provider_name=self.get_provider_name(),
                )
            for vector in vectors:
                self._check_dimension(vector)

            all_embeddings.extend(vectors)
            logger.info(
                "http_embedding_batch",
                provider=self.get_provider_name(),
                batch_size=len(batch),
            )
        return all_embeddings

    async def embed_single(self, text: str) -> list[float]:
        result = await self.embed([text])
        return result[0]

    def is_available(self) -> bool:
        return bool(self._api_key)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _post(self, payload: dict[str, Any]) -> Any:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        try:
            response = await self._http_client.post(
                self._endpoint, json=payload, headers=headers
            )
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            raise ProviderError(
                message=f"HTTP {exc.response.status_code}: {exc.response.reason_phrase}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderError(
                message=f"Request failed: {exc!r}",
                provider_name=self.get_provider_name(),
            ) from exc
        except ValueError as exc:
            raise ProviderError(
                message="Response body is not valid JSON",
                provider_name=self.get_provider_name(),
            ) from exc

    def _check_dimension(self, vector: list[float]) -> None:
        if len(vector) != self.get_dimension():
            raise ProviderError(
                message=(
                    f"Vector has {len(vector)} dimensions, "
                    f"expected {self.get_dimension()}"
                ),
                provider_name=self.get_provider_name(),
            )
