"""PDF text extractor backed by PyMuPDF (fitz).

Reads the PDF from memory, extracts the text layer page by page and joins
pages with blank lines so the chunker sees page breaks as paragraph
boundaries.  Scanned PDFs without a text layer produce an extraction error.
"""

from __future__ import annotations

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from knowledge_rag.interfaces.text_extractor import ITextExtractor
from knowledge_rag.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)


class PDFTextExtractor(ITextExtractor):
    """Extracts the embedded text layer of a PDF upload."""

    def extract(self, data: bytes, extension: str) -> str:
        if extension != "pdf":
            raise ExtractionError(
                message=f"PDF extractor cannot handle {extension!r}",
                provider_name="pymupdf",
            )

        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as exc:
            raise ExtractionError(
                message=f"Could not open PDF: {exc}",
                provider_name="pymupdf",
            ) from exc

        pages: list[str] = []
        try:
            for page in doc:
                text = page.get_text("text").strip()
                if text:
                    pages.append(text)
        finally:
            doc.close()

        if not pages:
            raise ExtractionError(
                message="PDF contains no extractable text layer",
                provider_name="pymupdf",
            )

        logger.info("pdf_text_extracted", pages=len(pages))
        return "\n\n".join(pages)

    def supported_extensions(self) -> list[str]:
        return ["pdf"]
