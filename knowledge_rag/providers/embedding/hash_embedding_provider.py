"""Deterministic bag-of-words hash embedding, the chain's last resort.

Not semantic, but always available: no network, no credentials, and no
failure mode.  Two texts sharing many words still land close together in
cosine space, which keeps search usable when every API provider is down.

Algorithm:
    1. Lower-case the text and split on whitespace.
    2. Hash every token with a 32-bit polynomial string hash (multiplier
       31 over UTF-16 code units, wrapped to a signed 32-bit integer).
    3. Add ``1 / sqrt(token_count)`` to bucket ``abs(hash) % dimensions``.
    4. L2-normalise.  An empty input yields the zero vector.
"""

from __future__ import annotations

import math

from knowledge_rag.interfaces.embedding_provider import IEmbeddingProvider

HASH_DIMENSIONS = 256


def string_hash32(token: str) -> int:
    """Return the signed 32-bit polynomial hash of *token*.

    Iterates UTF-16 code units so non-BMP characters hash as surrogate
    pairs, giving the same value other runtimes compute for the string.
    """
    encoded = token.encode("utf-16-le", "surrogatepass")
    value = 0
    for i in range(0, len(encoded), 2):
        code_unit = encoded[i] | (encoded[i + 1] << 8)
        value = (value * 31 + code_unit) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return value


def hash_embedding(text: str, dimensions: int = HASH_DIMENSIONS) -> list[float]:
    """Compute the normalised hash embedding of *text*."""
    vector = [0.0] * dimensions
    tokens = text.lower().split()
    if not tokens:
        return vector

    weight = 1.0 / math.sqrt(len(tokens))
    for token in tokens:
        vector[abs(string_hash32(token)) % dimensions] += weight

    norm = math.sqrt(sum(v * v for v in vector))
    if norm == 0:
        return vector
    return [v / norm for v in vector]


class HashEmbeddingProvider(IEmbeddingProvider):
    """Local, free, never-failing embedding provider (256 dims)."""

    def __init__(self, dimensions: int = HASH_DIMENSIONS) -> None:
        self._dimension = dimensions

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return [hash_embedding(text, self._dimension) for text in texts]

    async def embed_single(self, text: str) -> list[float]:
        return hash_embedding(text, self._dimension)

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "hash"

    def get_cost_per_1k_tokens(self) -> float:
        return 0.0

    def is_available(self) -> bool:
        return True
