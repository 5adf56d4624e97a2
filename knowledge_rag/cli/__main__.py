"""Allow ``python -m knowledge_rag.cli`` execution."""

from knowledge_rag.cli.ingest import main

main()
