"""Application settings loaded from environment variables via pydantic-settings.

Values are read from (in priority order) process environment variables,
then a ``.env`` file in the working directory, then the defaults below.
Field names map to upper-cased env vars automatically; the chunk size
additionally accepts the shorter ``CHUNK_SIZE`` name.

An empty API key means "provider not configured": the embedding chain
builder skips it and falls through to the next provider in priority order.
"""

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Knowledge subsystem settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Embedding Providers (priority order) ===
    openai_api_key: str = ""
    openai_base_url: str = ""
    openai_embedding_model: str = "text-embedding-3-small"
    cohere_api_key: str = ""
    huggingface_api_key: str = ""
    voyage_api_key: str = ""
    embedding_timeout_seconds: float = 30.0

    # === Chunking ===
    max_chunk_size: int = Field(
        default=1000,
        validation_alias=AliasChoices("max_chunk_size", "chunk_size"),
    )

    # === Search ===
    search_threshold: float = 0.7
    search_limit: int = 5
    search_max_limit: int = 50
    # Generation context uses its own, usually tighter, defaults.
    rag_context_limit: int = 3
    rag_context_threshold: float = 0.7

    # === Ingestion ===
    parallel_embeddings: bool = True
    max_concurrent_embeddings: int = 5
    max_file_size: int = 10 * 1024 * 1024
    allowed_file_types: str = "pdf,txt,md,csv,json"

    # === Document listing ===
    docs_page_size: int = 50
    docs_max_page_size: int = 100

    # === Analytics ===
    track_searches: bool = True
    track_document_usage: bool = True
    analytics_db_path: str = "data/knowledge_analytics.db"

    # === Vector Store ===
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection_prefix: str = "knowledge"

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    def get_configured_embedding_providers(self) -> list[str]:
        """Return registry keys of API-backed providers with non-empty credentials."""
        providers: list[str] = []
        if self.openai_api_key:
            providers.append("openai")
        if self.cohere_api_key:
            providers.append("cohere")
        if self.huggingface_api_key:
            providers.append("huggingface")
        if self.voyage_api_key:
            providers.append("voyage")
        return providers

    def get_allowed_file_types(self) -> list[str]:
        """Return the upload extension whitelist, lower-cased and without dots."""
        return [
            ext.strip().lower().lstrip(".")
            for ext in self.allowed_file_types.split(",")
            if ext.strip()
        ]

    def validate_knowledge_config(self) -> list[str]:
        """Return human-readable problems with the knowledge settings.

        An empty list means the configuration is usable.
        """
        errors: list[str] = []

        if self.max_chunk_size < 100 or self.max_chunk_size > 10000:
            errors.append("CHUNK_SIZE must be between 100 and 10000")

        if not 0 <= self.search_threshold <= 1:
            errors.append("SEARCH_THRESHOLD must be between 0 and 1")
        if not 0 <= self.rag_context_threshold <= 1:
            errors.append("RAG_CONTEXT_THRESHOLD must be between 0 and 1")

        if self.search_limit < 1:
            errors.append("SEARCH_LIMIT must be at least 1")
        if self.search_max_limit < self.search_limit:
            errors.append("SEARCH_MAX_LIMIT must be at least SEARCH_LIMIT")
        if self.rag_context_limit < 1:
            errors.append("RAG_CONTEXT_LIMIT must be at least 1")
        if self.max_concurrent_embeddings < 1:
            errors.append("MAX_CONCURRENT_EMBEDDINGS must be at least 1")
        if self.embedding_timeout_seconds <= 0:
            errors.append("EMBEDDING_TIMEOUT_SECONDS must be positive")

        if self.max_file_size < 1024:
            errors.append("MAX_FILE_SIZE must be at least 1KB")
        if self.docs_page_size < 1 or self.docs_max_page_size < self.docs_page_size:
            errors.append("DOCS_PAGE_SIZE must be between 1 and DOCS_MAX_PAGE_SIZE")

        return errors
