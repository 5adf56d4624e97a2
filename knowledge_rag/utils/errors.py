"""Custom exception hierarchy for the knowledge subsystem.

All application exceptions inherit from :class:`KnowledgeBaseError`, which
carries an optional ``provider_name`` so error handlers can identify which
backend (e.g. "openai", "chromadb", "sqlite") caused the failure.

The hierarchy follows the document lifecycle:

    KnowledgeBaseError  (base -- catch-all for any knowledge error)
    +-- ExtractionError      (upload bytes -> plain text)
    +-- ChunkingError        (invalid chunker configuration)
    +-- ProviderError        (a single embedding provider failed)
    +-- EmbeddingChainError  (every provider in the chain failed)
    +-- StoreError           (vector-store persistence or query failure)
    +-- AnalyticsError       (analytics sink write failure)
    +-- ConfigurationError   (startup / invalid settings)

Only ChunkingError, EmbeddingChainError and ConfigurationError are
expected to escape a service.  ProviderError is absorbed by chain
failover, StoreError is turned into a ``success=False`` result and
AnalyticsError is logged and dropped by the tracker.
"""


class KnowledgeBaseError(Exception):
    """Base exception for all knowledge subsystem errors.

    The ``__str__`` method prefixes the provider name in brackets for
    structured log output, e.g. ``[cohere] HTTP 429``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Ingestion errors
# ---------------------------------------------------------------------------

class ExtractionError(KnowledgeBaseError):
    """Raised when uploaded bytes cannot be turned into plain text."""

    def __init__(
        self,
        message: str = "Text extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ChunkingError(KnowledgeBaseError):
    """Raised when the chunker is configured with an unusable size."""

    def __init__(
        self,
        message: str = "Invalid chunking configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Embedding errors
# ---------------------------------------------------------------------------

class ProviderError(KnowledgeBaseError):
    """Raised by a single embedding provider.

    The embedding chain catches this and moves on to the next provider
    in priority order.
    """

    def __init__(
        self,
        message: str = "Embedding provider call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingChainError(KnowledgeBaseError):
    """Raised when every provider in the embedding chain failed.

    ``failures`` holds one ``(provider_name, error_message)`` pair per
    attempted provider, in the order they were tried.
    """

    def __init__(
        self,
        failures: list[tuple[str, str]] | None = None,
        message: str | None = None,
    ) -> None:
        self._failures = list(failures or [])
        if message is None:
            lines = [f"{name}: {error}" for name, error in self._failures]
            message = "All embedding providers failed:\n" + "\n".join(lines)
        super().__init__(message=message, provider_name=None)

    @property
    def failures(self) -> list[tuple[str, str]]:
        return list(self._failures)


# ---------------------------------------------------------------------------
# Storage errors
# ---------------------------------------------------------------------------

class StoreError(KnowledgeBaseError):
    """Raised when a vector-store write, query or delete fails."""

    def __init__(
        self,
        message: str = "Vector store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class AnalyticsError(KnowledgeBaseError):
    """Raised when the analytics sink cannot record an event."""

    def __init__(
        self,
        message: str = "Analytics write failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------

class ConfigurationError(KnowledgeBaseError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
