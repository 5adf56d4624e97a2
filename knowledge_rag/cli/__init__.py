"""CLI tools for the knowledge service.

- ``python -m knowledge_rag.cli.ingest`` ingests files, searches, lists and
  deletes documents, and shows the embedding failover chain.
"""
