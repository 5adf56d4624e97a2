"""Unit tests for EmbeddingProviderChain failover and the chain builder."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from knowledge_rag.config.settings import Settings
from knowledge_rag.services.embedding_service import (
    EmbeddingProviderChain,
    build_embedding_chain,
)
from knowledge_rag.utils.errors import EmbeddingChainError
from tests.conftest import BlockingEmbeddingProvider, MockEmbeddingProvider


class _SlowProvider(MockEmbeddingProvider):
    async def embed_single(self, text: str) -> list[float]:
        await asyncio.sleep(5)
        return await super().embed_single(text)


class _ShortVectorProvider(MockEmbeddingProvider):
    async def embed_single(self, text: str) -> list[float]:
        return [0.1, 0.2]


# ======================================================================
# Failover
# ======================================================================


class TestFailover:
    @pytest.mark.asyncio
    async def test_first_provider_wins(self) -> None:
        first = MockEmbeddingProvider(name="first")
        second = MockEmbeddingProvider(name="second")
        chain = EmbeddingProviderChain([first, second])

        result = await chain.embed("hello")

        assert result.provider_name == "first"
        assert result.dimensions == 128
        assert len(result.vector) == 128
        assert second.calls == []

    @pytest.mark.asyncio
    async def test_falls_over_to_next_provider(self) -> None:
        broken = MockEmbeddingProvider(name="broken", fail=True)
        backup = MockEmbeddingProvider(name="backup", dimension=64)
        chain = EmbeddingProviderChain([broken, backup])

        result = await chain.embed("hello")

        assert result.provider_name == "backup"
        assert result.dimensions == 64
        assert broken.calls == ["hello"]

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self) -> None:
        chain = EmbeddingProviderChain(
            [_SlowProvider(name="slow"), MockEmbeddingProvider(name="fast")],
            timeout_seconds=0.05,
        )

        result = await chain.embed("hello")

        assert result.provider_name == "fast"

    @pytest.mark.asyncio
    async def test_wrong_dimension_counts_as_failure(self) -> None:
        chain = EmbeddingProviderChain(
            [_ShortVectorProvider(name="short"), MockEmbeddingProvider(name="ok")]
        )
        result = await chain.embed("hello")
        assert result.provider_name == "ok"

    @pytest.mark.asyncio
    async def test_all_failures_are_reported(self) -> None:
        chain = EmbeddingProviderChain(
            [
                MockEmbeddingProvider(name="a", fail=True),
                _SlowProvider(name="b"),
            ],
            timeout_seconds=0.05,
        )

        with pytest.raises(EmbeddingChainError) as exc_info:
            await chain.embed("hello")

        failures = exc_info.value.failures
        assert [name for name, _ in failures] == ["a", "b"]
        assert "service unavailable" in failures[0][1]
        assert "timed out" in failures[1][1]
        assert "All embedding providers failed" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_empty_chain_raises(self) -> None:
        with pytest.raises(EmbeddingChainError):
            await EmbeddingProviderChain([]).embed("hello")


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_reaches_in_flight_call_and_stops_failover(self) -> None:
        blocking = BlockingEmbeddingProvider()
        backup = MockEmbeddingProvider(name="backup")
        chain = EmbeddingProviderChain([blocking, backup], timeout_seconds=30)

        task = asyncio.create_task(chain.embed("hello"))
        await blocking.started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert blocking.cancelled is True
        assert backup.calls == []

    @pytest.mark.asyncio
    async def test_cancel_without_timeout(self) -> None:
        blocking = BlockingEmbeddingProvider()
        backup = MockEmbeddingProvider(name="backup")
        chain = EmbeddingProviderChain([blocking, backup], timeout_seconds=None)

        task = asyncio.create_task(chain.embed("hello"))
        await blocking.started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert backup.calls == []


# ======================================================================
# Introspection
# ======================================================================


class TestDescribe:
    def test_describe_providers(self) -> None:
        chain = EmbeddingProviderChain(
            [MockEmbeddingProvider(name="first"), MockEmbeddingProvider(name="second", dimension=8)]
        )

        assert chain.provider_names() == ["first", "second"]
        assert chain.describe_providers() == ["first (128-d, $0/1k)", "second (8-d, $0/1k)"]

    def test_providers_list_is_a_copy(self) -> None:
        chain = EmbeddingProviderChain([MockEmbeddingProvider()])
        chain.providers.clear()
        assert len(chain.providers) == 1


# ======================================================================
# build_embedding_chain
# ======================================================================


def _settings(**overrides) -> Settings:
    defaults = {
        "openai_api_key": "",
        "cohere_api_key": "",
        "huggingface_api_key": "",
        "voyage_api_key": "",
    }
    defaults.update(overrides)
    return Settings(**defaults)


class TestBuildEmbeddingChain:
    def test_no_credentials_yields_hash_only(self) -> None:
        chain = build_embedding_chain(_settings(), httpx.AsyncClient())
        assert chain.provider_names() == ["hash"]

    def test_configured_providers_in_priority_order(self) -> None:
        chain = build_embedding_chain(
            _settings(voyage_api_key="v", openai_api_key="o", huggingface_api_key="h"),
            httpx.AsyncClient(),
        )
        assert chain.provider_names() == ["openai", "huggingface", "voyage", "hash"]

    @pytest.mark.asyncio
    async def test_hash_fallback_never_fails(self) -> None:
        chain = build_embedding_chain(_settings(), httpx.AsyncClient())

        result = await chain.embed("anything at all")

        assert result.provider_name == "hash"
        assert result.dimensions == 256
