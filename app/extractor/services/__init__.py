"""
Services package for the extraction pipeline.

Contains:
- ai: Schema compilation and OpenAI structured extraction
- pdf_service: PDF text layer and page rendering
- documents: PDF bytes to document text, with transcription fallback
- rows: Projection of structured results into row records
- table: Filtering, sorting and pagination of rows
- spreadsheet: XLSX export
- batch: Bounded concurrent processing of document batches
"""

from .ai import AIService
from .pdf_service import PDFService

__all__ = ["PDFService", "AIService"]
