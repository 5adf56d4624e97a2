"""Text chunking with paragraph and sentence boundary preservation.

Splits extracted document text into bounded-size segments for embedding.
Each granularity is only used when the coarser one still yields an
oversized unit:

1. **Paragraphs** -- split on blank lines and greedily packed (joined with
   a blank line) while the packed chunk stays within ``max_chunk_size``.
   A paragraph that fits is never split.
2. **Sentences** -- a paragraph longer than ``max_chunk_size`` is split at
   sentence-ending punctuation (abbreviation-aware) and sentences are
   greedily packed, joined with a space.
3. **Words, then characters** -- a single sentence longer than
   ``max_chunk_size`` is packed word by word; a lone token longer than the
   limit is cut into fixed-width slices.

Every emitted chunk is non-empty, stripped, and at most ``max_chunk_size``
characters long.  The function is pure: identical input always yields an
identical chunk sequence, which keeps re-ingestion reproducible.
"""

from __future__ import annotations

import re

import structlog

from knowledge_rag.utils.errors import ChunkingError

logger = structlog.get_logger(logger_name=__name__)

_PARAGRAPH_SEPARATOR = "\n\n"
_SENTENCE_SEPARATOR = " "

# Periods after these do not end a sentence ("Dr. Smith").
_ABBREVIATIONS = frozenset(
    {
        "Dr",
        "Mr",
        "Mrs",
        "Ms",
        "Prof",
        "Jr",
        "Sr",
        "St",
        "vs",
        "etc",
        "approx",
        "inc",
        "ltd",
        "e.g",
        "i.e",
    }
)

_ABBREVIATION_RE = re.compile(
    r"\b(" + "|".join(re.escape(a) for a in sorted(_ABBREVIATIONS)) + r")\."
)
_SENTENCE_END_RE = re.compile(r"[.!?]+(?:\s+|$)")


class TextChunker:
    """Splits text into chunks no longer than ``max_chunk_size`` characters.

    Parameters
    ----------
    max_chunk_size:
        Upper bound, in characters, for every emitted chunk.

    Raises
    ------
    ChunkingError
        If ``max_chunk_size`` is not a positive integer.
    """

    def __init__(self, max_chunk_size: int = 1000) -> None:
        if max_chunk_size <= 0:
            raise ChunkingError(
                message=f"max_chunk_size must be positive, got {max_chunk_size}"
            )
        self._max_size = max_chunk_size

    @property
    def max_chunk_size(self) -> int:
        return self._max_size

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(self, text: str) -> list[str]:
        """Split *text* into ordered, bounded, non-empty chunks.

        Blank or whitespace-only input returns an empty list.
        """
        if not text or not text.strip():
            return []

        chunks = self._pack_paragraphs(self._split_paragraphs(text))
        chunks = [c.strip() for c in chunks]
        chunks = [c for c in chunks if c]

        logger.debug(
            "chunking_complete",
            num_chunks=len(chunks),
            max_chunk_size=self._max_size,
            input_chars=len(text),
        )
        return chunks

    # ------------------------------------------------------------------
    # Paragraph / sentence splitting
    # ------------------------------------------------------------------

    @staticmethod
    def _split_paragraphs(text: str) -> list[str]:
        """Split *text* on blank lines, discarding blanks."""
        parts = re.split(r"\n\s*\n", text)
        return [p.strip() for p in parts if p.strip()]

    @staticmethod
    def _split_sentences(text: str) -> list[str]:
        """Split *text* after ``.``, ``!`` or ``?`` runs, keeping the punctuation.

        Known abbreviations are masked first (period replaced by a NUL of
        the same length) so match offsets still index the original text.
        """
        masked = _ABBREVIATION_RE.sub(
            lambda m: m.group(0)[:-1] + "\x00", text
        )

        sentences: list[str] = []
        last = 0
        for match in _SENTENCE_END_RE.finditer(masked):
            sentence = text[last : match.end()].strip()
            if sentence:
                sentences.append(sentence)
            last = match.end()

        remainder = text[last:].strip()
        if remainder:
            sentences.append(remainder)

        return sentences if sentences else [text.strip()]

    # ------------------------------------------------------------------
    # Chunk accumulation
    # ------------------------------------------------------------------

    def _pack(self, units: list[str], separator: str) -> list[str]:
        """Greedily join *units* with *separator* without exceeding the limit.

        Every unit must already fit within ``max_chunk_size`` on its own.
        """
        chunks: list[str] = []
        current: list[str] = []
        current_len = 0

        for unit in units:
            added = len(unit) + (len(separator) if current else 0)
            if current and current_len + added > self._max_size:
                chunks.append(separator.join(current))
                current = [unit]
                current_len = len(unit)
            else:
                current.append(unit)
                current_len += added

        if current:
            chunks.append(separator.join(current))
        return chunks

    def _pack_paragraphs(self, paragraphs: list[str]) -> list[str]:
        chunks: list[str] = []
        pending: list[str] = []

        for para in paragraphs:
            if len(para) <= self._max_size:
                pending.append(para)
                continue
            # Flush what fits before switching to sentence granularity.
            chunks.extend(self._pack(pending, _PARAGRAPH_SEPARATOR))
            pending = []
            chunks.extend(self._chunk_long_paragraph(para))

        chunks.extend(self._pack(pending, _PARAGRAPH_SEPARATOR))
        return chunks

    def _chunk_long_paragraph(self, paragraph: str) -> list[str]:
        """Split a paragraph exceeding the limit at sentence boundaries."""
        chunks: list[str] = []
        pending: list[str] = []

        for sentence in self._split_sentences(paragraph):
            if len(sentence) <= self._max_size:
                pending.append(sentence)
                continue
            chunks.extend(self._pack(pending, _SENTENCE_SEPARATOR))
            pending = []
            chunks.extend(self._hard_split(sentence))

        chunks.extend(self._pack(pending, _SENTENCE_SEPARATOR))
        return chunks

    def _hard_split(self, sentence: str) -> list[str]:
        """Split an over-long sentence on whitespace, slicing over-long tokens."""
        pieces: list[str] = []
        for word in sentence.split():
            if len(word) <= self._max_size:
                pieces.append(word)
            else:
                pieces.extend(
                    word[i : i + self._max_size]
                    for i in range(0, len(word), self._max_size)
                )

        logger.debug("sentence_hard_split", sentence_chars=len(sentence), pieces=len(pieces))
        return self._pack(pieces, _SENTENCE_SEPARATOR)


def chunk_text(text: str, max_size: int) -> list[str]:
    """Functional shorthand for ``TextChunker(max_size).chunk(text)``."""
    return TextChunker(max_size).chunk(text)
