"""
PDF processing service.

Reads the text layer of PDF documents with pypdf and renders pages to
PIL Images with pdf2image (poppler) for scanned documents.
"""

import io
import logging
from typing import BinaryIO

from PIL import Image

from ..exceptions import ExtractionFailure

logger = logging.getLogger(__name__)


class PDFConversionError(ExtractionFailure):
    """Raised when a PDF cannot be read or converted."""

    pass


def _read_bytes(file_bytes: bytes | BinaryIO) -> bytes:
    if hasattr(file_bytes, "read"):
        return file_bytes.read()
    return file_bytes


def _check_pdf_bytes(pdf_bytes: bytes) -> None:
    if not pdf_bytes:
        raise PDFConversionError("Empty PDF file provided")

    # Validate PDF magic bytes
    if not pdf_bytes[:4] == b"%PDF":
        raise PDFConversionError(
            "Invalid PDF file: does not start with PDF header"
        )


class PDFService:
    """
    Service for PDF processing operations.

    Text comes from the embedded text layer; page rendering is only needed
    when that layer is empty.
    """

    def __init__(self, dpi: int = 200, image_format: str = "PNG", max_ocr_pages: int = 10):
        """
        Initialize the PDF service.

        Args:
            dpi: Resolution for PDF to image conversion. Higher = better quality but slower.
            image_format: Output image format (PNG recommended for quality).
            max_ocr_pages: Maximum number of pages rendered for transcription.
        """
        self.dpi = dpi
        self.image_format = image_format
        self.max_ocr_pages = max_ocr_pages

    def extract_text(self, file_bytes: bytes | BinaryIO) -> str:
        """
        Extract the text layer of every page.

        Args:
            file_bytes: PDF file as bytes or file-like object.

        Returns:
            Page texts joined by blank lines (empty string for scanned PDFs).

        Raises:
            PDFConversionError: If the file is not a readable PDF.
        """
        from pypdf import PdfReader
        from pypdf.errors import PdfReadError

        pdf_bytes = _read_bytes(file_bytes)
        _check_pdf_bytes(pdf_bytes)

        try:
            reader = PdfReader(io.BytesIO(pdf_bytes))
            page_texts = [(page.extract_text() or "").strip() for page in reader.pages]
        except PdfReadError as e:
            logger.error("PDF read error: %s", e)
            raise PDFConversionError(f"Invalid or corrupted PDF file: {e}") from e
        except Exception as e:
            logger.exception("Unexpected error while reading PDF text")
            raise PDFConversionError(f"Failed to parse PDF: {e}") from e

        text = "\n\n".join(t for t in page_texts if t)
        logger.info(
            "Extracted %d characters of text from %d page(s)",
            len(text),
            len(page_texts),
        )
        return text

    def get_page_count(self, file_bytes: bytes | BinaryIO) -> int:
        """
        Get the total number of pages in a PDF.

        Args:
            file_bytes: PDF file as bytes or file-like object.

        Returns:
            Number of pages in the PDF.

        Raises:
            PDFConversionError: If page count cannot be determined.
        """
        from pypdf import PdfReader

        pdf_bytes = _read_bytes(file_bytes)
        _check_pdf_bytes(pdf_bytes)

        try:
            return len(PdfReader(io.BytesIO(pdf_bytes)).pages)
        except Exception as e:
            logger.error("Could not get page count: %s", e)
            raise PDFConversionError(f"Could not get page count: {e}") from e

    def convert_pdf_to_images(
        self,
        file_bytes: bytes | BinaryIO,
        first_page: int | None = None,
        last_page: int | None = None,
    ) -> list[Image.Image]:
        """
        Convert PDF pages to PIL Images.

        Args:
            file_bytes: PDF file as bytes or file-like object.
            first_page: First page to convert (1-indexed, inclusive). None for first page.
            last_page: Last page to convert (1-indexed, inclusive). None for last page.

        Returns:
            List of PIL Image objects, one per page.

        Raises:
            PDFConversionError: If conversion fails for any reason.
        """
        from pdf2image import convert_from_bytes
        from pdf2image.exceptions import (
            PDFInfoNotInstalledError,
            PDFPageCountError,
            PDFSyntaxError,
        )

        pdf_bytes = _read_bytes(file_bytes)
        _check_pdf_bytes(pdf_bytes)

        try:
            logger.info(
                "Converting PDF to images (dpi=%d, pages=%s-%s)",
                self.dpi,
                first_page or "first",
                last_page or "last",
            )

            images = convert_from_bytes(
                pdf_bytes,
                dpi=self.dpi,
                fmt=self.image_format.lower(),
                first_page=first_page,
                last_page=last_page,
                thread_count=2,
            )

            logger.info("Successfully converted %d page(s)", len(images))
            return images

        except PDFInfoNotInstalledError as e:
            logger.error("Poppler not installed: %s", e)
            raise PDFConversionError(
                "Poppler not installed. Install poppler-utils: "
                "brew install poppler (macOS) or apt-get install poppler-utils (Linux)"
            ) from e

        except PDFPageCountError as e:
            logger.error("Could not get PDF page count: %s", e)
            raise PDFConversionError(
                f"Could not determine PDF page count: {e}"
            ) from e

        except PDFSyntaxError as e:
            logger.error("PDF syntax error: %s", e)
            raise PDFConversionError(f"Invalid or corrupted PDF file: {e}") from e

        except Exception as e:
            logger.exception("Unexpected error during PDF conversion")
            raise PDFConversionError(f"PDF conversion failed: {e}") from e

    def render_for_transcription(self, file_bytes: bytes | BinaryIO) -> list[Image.Image]:
        """Render at most ``max_ocr_pages`` leading pages for transcription."""
        return self.convert_pdf_to_images(file_bytes, first_page=1, last_page=self.max_ocr_pages)


# Singleton instance for convenience
_pdf_service: PDFService | None = None


def get_pdf_service() -> PDFService:
    """Get or create the PDF service singleton."""
    global _pdf_service
    if _pdf_service is None:
        _pdf_service = PDFService()
    return _pdf_service
