"""
Document-text source: PDF bytes in, whole-document text out.

Combines the PDF text layer with the vision transcription fallback for
scanned documents.
"""

import logging
from dataclasses import dataclass

from .ai import AIService
from .pdf_service import PDFConversionError, PDFService

logger = logging.getLogger(__name__)


@dataclass
class LoadedDocument:
    """Text of one PDF and how it was obtained."""

    filename: str
    text: str
    page_count: int
    transcribed: bool = False


async def load_document_text(
    pdf_bytes: bytes,
    filename: str,
    pdf_service: PDFService,
    ai_service: AIService,
    ocr_fallback: bool = True,
) -> LoadedDocument:
    """
    Extract the full text of a PDF.

    Args:
        pdf_bytes: Raw PDF content.
        filename: Original filename, for logging and results.
        pdf_service: Service reading the text layer and rendering pages.
        ai_service: Service transcribing rendered pages.
        ocr_fallback: Transcribe rendered pages when the text layer is empty.

    Returns:
        LoadedDocument with the concatenated text of all pages.

    Raises:
        PDFConversionError: If the PDF is unreadable or no text was found.
    """
    page_count = pdf_service.get_page_count(pdf_bytes)
    text = pdf_service.extract_text(pdf_bytes)
    transcribed = False

    if not text.strip() and ocr_fallback:
        logger.info("No text layer in %s, transcribing rendered pages", filename)
        images = pdf_service.render_for_transcription(pdf_bytes)
        text = await ai_service.transcribe_pages(images)
        transcribed = True

    if not text.strip():
        raise PDFConversionError(
            "No text could be extracted from the PDF",
            detail=f"{filename}: extracted text is empty",
        )

    return LoadedDocument(
        filename=filename,
        text=text,
        page_count=page_count,
        transcribed=transcribed,
    )
