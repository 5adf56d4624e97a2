"""Standalone CLI for managing a tenant's knowledge base.

Usage::

    python -m knowledge_rag.cli.ingest file --tenant acme --path handbook.pdf
    python -m knowledge_rag.cli.ingest search --tenant acme "refund policy"
    python -m knowledge_rag.cli.ingest list --tenant acme --agent support
    python -m knowledge_rag.cli.ingest delete --tenant acme --name handbook.pdf
    python -m knowledge_rag.cli.ingest providers

Each command builds the same services the API server uses, runs once, and
exits with status 0 on success or 1 on failure.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any

from knowledge_rag.config.settings import Settings
from knowledge_rag.utils.logging import log_scope


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_file(args: argparse.Namespace, services: dict[str, Any]) -> int:
    """Ingest one local file."""
    path = Path(args.path)
    if not path.is_file():
        print(f"Error: file not found: {path}", file=sys.stderr)
        return 1

    print(f"Ingesting {path.name} for tenant '{args.tenant}'")
    result = await services["ingestion_pipeline"].ingest_file(
        tenant_id=args.tenant,
        agent_id=args.agent,
        file_name=args.name or path.name,
        data=path.read_bytes(),
    )
    if not result.success:
        print(f"Error: {result.error}", file=sys.stderr)
        return 1

    print("\nIngestion complete:")
    print(f"  Chunks stored:  {result.chunk_count}")
    print(f"  Chunks failed:  {result.failed_chunks}")
    print(f"  Providers:      {', '.join(result.embedding_providers)}")
    print(f"  Time:           {result.ingestion_time:.2f}s")
    for warning in result.warnings:
        print(f"  Warning: {warning}")
    return 0


async def _handle_search(args: argparse.Namespace, services: dict[str, Any]) -> int:
    """Run an ad-hoc similarity search and print ranked hits."""
    response = await services["search_engine"].search(
        args.tenant,
        args.agent,
        args.query,
        limit=args.limit,
        threshold=args.threshold,
    )
    await services["analytics_tracker"].drain()

    if not response.success:
        print(f"Error: {response.error}", file=sys.stderr)
        return 1
    if not response.documents:
        print("No matching chunks.")
        return 0

    print(f"{len(response.documents)} result(s) via {response.embedding_provider}:")
    for rank, hit in enumerate(response.documents, start=1):
        preview = hit.content.replace("\n", " ")[:120]
        print(f"\n  {rank}. [{hit.similarity:.3f}] {hit.original_file_name or 'Unknown'}")
        print(f"     {preview}")
    return 0


async def _handle_list(args: argparse.Namespace, services: dict[str, Any]) -> int:
    page = await services["document_manager"].list_documents(
        args.tenant, agent_id=args.agent, page=args.page, page_size=args.page_size
    )
    if not page.documents:
        print("No documents.")
        return 0

    print(f"Documents (page {page.page}, {page.total} total)")
    print("=" * 60)
    for doc in page.documents:
        created = doc.created_at.strftime("%Y-%m-%d %H:%M") if doc.created_at else "-"
        agent = doc.agent_id or "(tenant)"
        print(f"  {doc.original_file_name:<30} {doc.chunk_count:>5} chunks  {agent:<12} {created}")
    if page.has_more:
        print(f"\n  More available: --page {page.page + 1}")
    return 0


async def _handle_delete(args: argparse.Namespace, services: dict[str, Any]) -> int:
    if not args.yes:
        answer = input(f"Delete '{args.name}' for tenant '{args.tenant}'? [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            print("  Aborted.")
            return 1

    result = await services["document_manager"].delete_document(
        args.tenant, args.agent, args.name
    )
    if not result.success:
        print(f"Error: {result.error}", file=sys.stderr)
        return 1

    print(f"Deleted {result.deleted_chunk_count} chunks of '{result.document_name}'.")
    return 0


def _handle_providers(app_settings: Settings) -> int:
    """Print the embedding chain in failover order without touching storage."""
    from knowledge_rag.services.embedding_service import build_embedding_chain

    chain = build_embedding_chain(app_settings)
    print("Embedding providers (failover order)")
    print("=" * 40)
    for position, description in enumerate(chain.describe_providers(), start=1):
        print(f"  {position}. {description}")
    return 0


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    # Deferred: building services opens ChromaDB and the embedding clients.
    from knowledge_rag.main import build_services

    services = build_services(app_settings)
    try:
        await services["analytics_sink"].initialize()
        with log_scope(tenant_id=args.tenant, agent_id=args.agent, command=args.command):
            if args.command == "file":
                return await _handle_file(args, services)
            if args.command == "search":
                return await _handle_search(args, services)
            if args.command == "list":
                return await _handle_list(args, services)
            return await _handle_delete(args, services)
    finally:
        await services["http_client"].aclose()


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _add_scope_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--tenant", required=True, help="Tenant id")
    parser.add_argument("--agent", default=None, help="Agent id (omit for tenant-wide)")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the knowledge CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m knowledge_rag.cli.ingest",
        description="Manage a tenant's knowledge base.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Knowledge commands")

    # -- file --
    file_parser = subparsers.add_parser("file", help="Ingest a local file")
    _add_scope_arguments(file_parser)
    file_parser.add_argument("--path", required=True, help="Path to the file")
    file_parser.add_argument(
        "--name", default=None, help="Document name to store (default: file name)"
    )

    # -- search --
    search_parser = subparsers.add_parser("search", help="Similarity search")
    _add_scope_arguments(search_parser)
    search_parser.add_argument("query", help="Natural-language query")
    search_parser.add_argument("--limit", type=int, default=None, help="Maximum results")
    search_parser.add_argument(
        "--threshold", type=float, default=None, help="Minimum similarity (0-1)"
    )

    # -- list --
    list_parser = subparsers.add_parser("list", help="List documents, newest first")
    _add_scope_arguments(list_parser)
    list_parser.add_argument("--page", type=int, default=1, help="Page number")
    list_parser.add_argument("--page-size", type=int, default=None, dest="page_size")

    # -- delete --
    delete_parser = subparsers.add_parser("delete", help="Delete a document")
    _add_scope_arguments(delete_parser)
    delete_parser.add_argument("--name", required=True, help="Original file name")
    delete_parser.add_argument(
        "--yes", "-y", action="store_true", help="Skip confirmation prompt"
    )

    # -- providers --
    subparsers.add_parser("providers", help="Show the embedding failover chain")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the knowledge tool.

    ``providers`` only needs the settings; every other command builds the
    full service graph.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()

    if args.command == "providers":
        sys.exit(_handle_providers(app_settings))

    sys.exit(asyncio.run(_run(args, app_settings)))


if __name__ == "__main__":
    main()
