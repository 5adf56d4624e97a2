"""Extractor for text-like uploads (txt, md, csv, json)."""

from __future__ import annotations

import structlog

from knowledge_rag.interfaces.text_extractor import ITextExtractor
from knowledge_rag.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

_TEXT_EXTENSIONS = ["txt", "md", "csv", "json"]


class PlainTextExtractor(ITextExtractor):
    """Decodes UTF-8 text uploads, tolerating a leading byte-order mark."""

    def extract(self, data: bytes, extension: str) -> str:
        if extension not in _TEXT_EXTENSIONS:
            raise ExtractionError(
                message=f"Unsupported text extension: {extension!r}",
                provider_name="plain_text",
            )
        try:
            text = data.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise ExtractionError(
                message=f"File is not valid UTF-8: {exc}",
                provider_name="plain_text",
            ) from exc

        logger.debug("plain_text_extracted", extension=extension, chars=len(text))
        return text

    def supported_extensions(self) -> list[str]:
        return list(_TEXT_EXTENSIONS)
