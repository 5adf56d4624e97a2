"""Text extraction implementations for uploaded files."""

from knowledge_rag.providers.extraction.composite_text_extractor import CompositeTextExtractor
from knowledge_rag.providers.extraction.pdf_text_extractor import PDFTextExtractor
from knowledge_rag.providers.extraction.plain_text_extractor import PlainTextExtractor

__all__ = ["CompositeTextExtractor", "PDFTextExtractor", "PlainTextExtractor"]
