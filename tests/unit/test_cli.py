"""Unit tests for the knowledge CLI (knowledge_rag.cli.ingest)."""

from __future__ import annotations

from argparse import Namespace
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from knowledge_rag.cli.ingest import (
    _build_parser,
    _handle_delete,
    _handle_file,
    _handle_list,
    _handle_search,
    main,
)
from knowledge_rag.models.knowledge import DeletionResult
from knowledge_rag.providers.extraction import CompositeTextExtractor, PlainTextExtractor
from knowledge_rag.services.analytics_tracker import AnalyticsTracker
from knowledge_rag.services.document_service import DocumentLifecycleManager
from knowledge_rag.services.embedding_service import EmbeddingProviderChain
from knowledge_rag.services.ingestion import IngestionPipeline, TextChunker
from knowledge_rag.services.search_service import SearchEngine
from tests.conftest import InMemoryVectorStore, RecordingAnalyticsSink

_HANDBOOK = (
    "Refunds are issued within fourteen days of purchase.\n\n"
    "Shipping is free for orders above fifty euros."
)


def _services(
    embedding_chain: EmbeddingProviderChain, vector_store: InMemoryVectorStore
) -> dict:
    tracker = AnalyticsTracker(RecordingAnalyticsSink())
    return {
        "ingestion_pipeline": IngestionPipeline(
            chunker=TextChunker(max_chunk_size=200),
            embedding_chain=embedding_chain,
            vector_store=vector_store,
            text_extractor=CompositeTextExtractor([PlainTextExtractor()]),
        ),
        "search_engine": SearchEngine(embedding_chain, vector_store, analytics=tracker),
        "document_manager": DocumentLifecycleManager(vector_store, tracker),
        "analytics_tracker": tracker,
    }


# ======================================================================
# Parser
# ======================================================================


class TestBuildParser:
    def test_file_subcommand(self) -> None:
        args = _build_parser().parse_args(
            ["file", "--tenant", "acme", "--agent", "support", "--path", "/tmp/faq.md"]
        )

        assert args.command == "file"
        assert args.tenant == "acme"
        assert args.agent == "support"
        assert args.path == "/tmp/faq.md"
        assert args.name is None

    def test_search_subcommand(self) -> None:
        args = _build_parser().parse_args(
            ["search", "--tenant", "acme", "refund policy", "--limit", "3", "--threshold", "0.4"]
        )

        assert args.query == "refund policy"
        assert args.agent is None
        assert args.limit == 3
        assert args.threshold == 0.4

    def test_list_subcommand_defaults(self) -> None:
        args = _build_parser().parse_args(["list", "--tenant", "acme"])

        assert args.page == 1
        assert args.page_size is None

    def test_delete_subcommand_short_yes(self) -> None:
        args = _build_parser().parse_args(
            ["delete", "--tenant", "acme", "--name", "faq.md", "-y"]
        )

        assert args.name == "faq.md"
        assert args.yes is True

    def test_tenant_is_required(self) -> None:
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["list"])

    def test_no_subcommand(self) -> None:
        assert _build_parser().parse_args([]).command is None


class TestMain:
    def test_no_command_exits_with_one(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as excinfo:
            main([])

        assert excinfo.value.code == 1
        assert "usage" in capsys.readouterr().out.lower()

    def test_providers_hash_only(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        for key in ("OPENAI_API_KEY", "COHERE_API_KEY", "HUGGINGFACE_API_KEY", "VOYAGE_API_KEY"):
            monkeypatch.setenv(key, "")

        with pytest.raises(SystemExit) as excinfo:
            main(["providers"])

        out = capsys.readouterr().out
        assert excinfo.value.code == 0
        assert "1. hash (256-d" in out

    def test_providers_lists_configured_first(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        for key in ("OPENAI_API_KEY", "HUGGINGFACE_API_KEY", "VOYAGE_API_KEY"):
            monkeypatch.setenv(key, "")
        monkeypatch.setenv("COHERE_API_KEY", "co-test")

        with pytest.raises(SystemExit):
            main(["providers"])

        out = capsys.readouterr().out
        assert out.index("1. cohere") < out.index("2. hash")


# ======================================================================
# Handlers
# ======================================================================


class TestHandlers:
    @pytest.mark.asyncio
    async def test_file_then_list(
        self,
        tmp_path: Path,
        embedding_chain: EmbeddingProviderChain,
        vector_store: InMemoryVectorStore,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        source = tmp_path / "faq.md"
        source.write_text(_HANDBOOK, encoding="utf-8")
        services = _services(embedding_chain, vector_store)

        code = await _handle_file(
            Namespace(tenant="acme", agent=None, path=str(source), name=None), services
        )
        listed = await _handle_list(
            Namespace(tenant="acme", agent=None, page=1, page_size=None), services
        )

        out = capsys.readouterr().out
        assert code == 0
        assert listed == 0
        assert "Chunks stored:" in out
        assert "faq.md" in out
        assert "(tenant)" in out

    @pytest.mark.asyncio
    async def test_file_missing_path(
        self,
        tmp_path: Path,
        embedding_chain: EmbeddingProviderChain,
        vector_store: InMemoryVectorStore,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        args = Namespace(tenant="acme", agent=None, path=str(tmp_path / "nope.md"), name=None)

        code = await _handle_file(args, _services(embedding_chain, vector_store))

        assert code == 1
        assert "file not found" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_file_rejected_extension(
        self,
        tmp_path: Path,
        embedding_chain: EmbeddingProviderChain,
        vector_store: InMemoryVectorStore,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        source = tmp_path / "slides.pptx"
        source.write_bytes(b"binary")
        services = _services(embedding_chain, vector_store)
        services["ingestion_pipeline"] = IngestionPipeline(
            chunker=TextChunker(),
            embedding_chain=embedding_chain,
            vector_store=vector_store,
            text_extractor=CompositeTextExtractor([PlainTextExtractor()]),
            allowed_file_types=["txt", "md"],
        )

        code = await _handle_file(
            Namespace(tenant="acme", agent=None, path=str(source), name=None), services
        )

        assert code == 1
        assert "not allowed" in capsys.readouterr().err
        assert vector_store.chunks() == []

    @pytest.mark.asyncio
    async def test_search_prints_ranked_hits(
        self,
        embedding_chain: EmbeddingProviderChain,
        vector_store: InMemoryVectorStore,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        services = _services(embedding_chain, vector_store)
        await services["ingestion_pipeline"].ingest("acme", None, "faq.md", _HANDBOOK)
        stored = vector_store.chunks()[0].text

        # The mock embedding maps identical text to an identical vector.
        code = await _handle_search(
            Namespace(tenant="acme", agent=None, query=stored, limit=1, threshold=0.99),
            services,
        )

        out = capsys.readouterr().out
        assert code == 0
        assert "1 result(s) via mock-embedding" in out
        assert "faq.md" in out

    @pytest.mark.asyncio
    async def test_search_without_matches(
        self,
        embedding_chain: EmbeddingProviderChain,
        vector_store: InMemoryVectorStore,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        code = await _handle_search(
            Namespace(tenant="acme", agent=None, query="anything", limit=None, threshold=None),
            _services(embedding_chain, vector_store),
        )

        assert code == 0
        assert "No matching chunks." in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_delete_with_yes(
        self,
        embedding_chain: EmbeddingProviderChain,
        vector_store: InMemoryVectorStore,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        services = _services(embedding_chain, vector_store)
        await services["ingestion_pipeline"].ingest("acme", None, "faq.md", _HANDBOOK)

        code = await _handle_delete(
            Namespace(tenant="acme", agent=None, name="faq.md", yes=True), services
        )

        assert code == 0
        assert "Deleted" in capsys.readouterr().out
        assert vector_store.chunks() == []

    @pytest.mark.asyncio
    async def test_delete_aborted_at_prompt(self, monkeypatch: pytest.MonkeyPatch) -> None:
        manager = MagicMock()
        manager.delete_document = AsyncMock()
        monkeypatch.setattr("builtins.input", lambda _prompt: "n")

        code = await _handle_delete(
            Namespace(tenant="acme", agent=None, name="faq.md", yes=False),
            {"document_manager": manager},
        )

        assert code == 1
        manager.delete_document.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_unknown_document(self, capsys: pytest.CaptureFixture[str]) -> None:
        manager = MagicMock()
        manager.delete_document = AsyncMock(
            return_value=DeletionResult(success=False, document_name="x.md", error="Document not found")
        )

        code = await _handle_delete(
            Namespace(tenant="acme", agent="support", name="x.md", yes=True),
            {"document_manager": manager},
        )

        assert code == 1
        assert "Document not found" in capsys.readouterr().err
        manager.delete_document.assert_awaited_once_with("acme", "support", "x.md")


# ======================================================================
# End to end through main()
# ======================================================================


class TestMainEndToEnd:
    @pytest.fixture()
    def local_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
        for key in ("OPENAI_API_KEY", "COHERE_API_KEY", "HUGGINGFACE_API_KEY", "VOYAGE_API_KEY"):
            monkeypatch.setenv(key, "")
        monkeypatch.setenv("CHROMADB_PERSIST_DIR", str(tmp_path / "chroma"))
        monkeypatch.setenv("ANALYTICS_DB_PATH", str(tmp_path / "analytics.db"))
        return tmp_path

    def test_ingest_search_delete(
        self, local_env: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        source = local_env / "faq.txt"
        source.write_text(_HANDBOOK, encoding="utf-8")

        with pytest.raises(SystemExit) as ingested:
            main(["file", "--tenant", "acme", "--path", str(source)])
        assert ingested.value.code == 0

        with pytest.raises(SystemExit) as searched:
            main(["search", "--tenant", "acme", "refunds issued", "--threshold", "0.1"])
        assert searched.value.code == 0
        assert "via hash" in capsys.readouterr().out

        with pytest.raises(SystemExit) as deleted:
            main(["delete", "--tenant", "acme", "--name", "faq.txt", "--yes"])
        assert deleted.value.code == 0

        with pytest.raises(SystemExit):
            main(["list", "--tenant", "acme"])
        assert "No documents." in capsys.readouterr().out
