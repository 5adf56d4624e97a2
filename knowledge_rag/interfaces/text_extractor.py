"""Abstract base class for upload text extraction."""

from __future__ import annotations

from abc import ABC, abstractmethod


class ITextExtractor(ABC):
    """Turns raw uploaded bytes into plain text."""

    @abstractmethod
    def extract(self, data: bytes, extension: str) -> str:
        """Return the plain text contained in *data*.

        Parameters
        ----------
        data:
            Raw uploaded bytes.
        extension:
            Lower-case file extension without the dot, e.g. ``"pdf"``.

        Raises
        ------
        knowledge_rag.utils.errors.ExtractionError
            If the format is unsupported or the content cannot be decoded.
        """

    @abstractmethod
    def supported_extensions(self) -> list[str]:
        """Return the extensions this extractor can handle."""
