"""Embedding provider failover chain.

Wraps an ordered list of :class:`IEmbeddingProvider` adapters behind a
single ``embed(text)`` call.  Providers are tried in priority order; the
first success wins and the remaining providers are not called.  Each
attempt is bounded by a per-call timeout so one slow API cannot stall the
chain.  Failures are collected as ``(provider, message)`` pairs and only
surface, as :class:`EmbeddingChainError`, when every provider failed.

The chain produced by :func:`build_embedding_chain` always ends with the
local hash provider, which cannot fail, so in practice ``embed`` only
raises on cancellation.
"""

from __future__ import annotations

import asyncio

import httpx
import structlog

from knowledge_rag.config.settings import Settings
from knowledge_rag.interfaces.embedding_provider import IEmbeddingProvider
from knowledge_rag.models.knowledge import EmbeddingResult
from knowledge_rag.providers.embedding import EMBEDDING_PROVIDER_REGISTRY, HashEmbeddingProvider
from knowledge_rag.utils.errors import EmbeddingChainError

logger = structlog.get_logger(logger_name=__name__)


class EmbeddingProviderChain:
    """Ordered embedding providers with failover.

    Parameters
    ----------
    providers:
        Providers in priority order.  The list is copied; the chain never
        mutates it afterwards.
    timeout_seconds:
        Upper bound for a single provider call.  ``None`` disables it.
    """

    def __init__(
        self,
        providers: list[IEmbeddingProvider],
        timeout_seconds: float | None = 30.0,
    ) -> None:
        self._providers = list(providers)
        self._timeout = timeout_seconds

    @property
    def providers(self) -> list[IEmbeddingProvider]:
        return list(self._providers)

    def provider_names(self) -> list[str]:
        return [p.get_provider_name() for p in self._providers]

    def describe_providers(self) -> list[str]:
        """Return ``"name (D-d, $cost/1k)"`` strings in priority order."""
        return [
            f"{p.get_provider_name()} ({p.get_dimension()}-d, "
            f"${p.get_cost_per_1k_tokens():g}/1k)"
            for p in self._providers
        ]

    async def embed(self, text: str) -> EmbeddingResult:
        """Embed *text* with the first provider that succeeds.

        Raises
        ------
        EmbeddingChainError
            If every provider failed; ``failures`` lists each attempt.
        """
        failures: list[tuple[str, str]] = []

        for provider in self._providers:
            name = provider.get_provider_name()
            try:
                if self._timeout is not None:
                    vector = await asyncio.wait_for(
                        provider.embed_single(text), timeout=self._timeout
                    )
                else:
                    vector = await provider.embed_single(text)
            except asyncio.TimeoutError:
                message = f"timed out after {self._timeout}s"
                failures.append((name, message))
                logger.warning("embedding_provider_failed", provider=name, error=message)
                continue
            except Exception as exc:
                failures.append((name, str(exc)))
                logger.warning("embedding_provider_failed", provider=name, error=str(exc))
                continue

            dimension = provider.get_dimension()
            if len(vector) != dimension:
                message = f"returned {len(vector)} dimensions, expected {dimension}"
                failures.append((name, message))
                logger.warning("embedding_provider_failed", provider=name, error=message)
                continue

            if failures:
                logger.info(
                    "embedding_failover_succeeded",
                    provider=name,
                    failed_providers=[f[0] for f in failures],
                )
            return EmbeddingResult(
                vector=list(vector), provider_name=name, dimensions=dimension
            )

        logger.error("embedding_chain_exhausted", failures=failures)
        raise EmbeddingChainError(failures=failures)


def build_embedding_chain(
    settings: Settings,
    http_client: httpx.AsyncClient | None = None,
) -> EmbeddingProviderChain:
    """Build the failover chain from configured credentials.

    API-backed providers are instantiated in registry order, only when
    their credential is present; the hash provider is always appended.
    """
    client = http_client or httpx.AsyncClient(timeout=settings.embedding_timeout_seconds)
    configured = set(settings.get_configured_embedding_providers())

    providers: list[IEmbeddingProvider] = [
        factory(settings, client)
        for key, factory in EMBEDDING_PROVIDER_REGISTRY.items()
        if key in configured
    ]
    providers.append(HashEmbeddingProvider())

    chain = EmbeddingProviderChain(providers, timeout_seconds=settings.embedding_timeout_seconds)
    logger.info("embedding_chain_built", providers=chain.describe_providers())
    return chain
