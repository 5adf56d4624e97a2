"""Dispatching extractor that routes uploads by file extension."""

from __future__ import annotations

from knowledge_rag.interfaces.text_extractor import ITextExtractor
from knowledge_rag.utils.errors import ExtractionError


class CompositeTextExtractor(ITextExtractor):
    """Delegates to the first registered extractor supporting the extension."""

    def __init__(self, extractors: list[ITextExtractor]) -> None:
        self._by_extension: dict[str, ITextExtractor] = {}
        for extractor in extractors:
            for ext in extractor.supported_extensions():
                self._by_extension.setdefault(ext, extractor)

    def extract(self, data: bytes, extension: str) -> str:
        extractor = self._by_extension.get(extension.lower().lstrip("."))
        if extractor is None:
            raise ExtractionError(message=f"No extractor registered for {extension!r}")
        return extractor.extract(data, extension.lower().lstrip("."))

    def supported_extensions(self) -> list[str]:
        return sorted(self._by_extension)
