"""
Router for text extraction and structured processing endpoints.

Handles:
- PDF upload to plain text
- Structured extraction of one document text
- Structured extraction of several document texts at once
"""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, File, HTTPException, UploadFile, status

from ..config import get_settings
from ..exceptions import InputError, PipelineError
from ..models import (
    ExtractTextResponse,
    ProcessBatchRequest,
    ProcessBatchResponse,
    ProcessDataRequest,
)
from ..services.ai import get_ai_service
from ..services.batch import run_batch
from ..services.documents import load_document_text
from ..services.pdf_service import get_pdf_service
from ..services.rows import project_rows

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["extraction"])


@router.post("/extract-text", response_model=ExtractTextResponse)
async def extract_text(
    file: Annotated[UploadFile | None, File(description="PDF file to read")] = None,
) -> ExtractTextResponse:
    """
    Extract the full text of an uploaded PDF.

    Scanned PDFs without a text layer are transcribed page by page when
    the transcription fallback is enabled.
    """
    if file is None or not file.filename:
        raise InputError("No file provided")

    try:
        file_bytes = await file.read()
        if not file_bytes:
            raise InputError("No file provided", detail=f"{file.filename} is empty")

        logger.info("Extracting text from %s (%d bytes)", file.filename, len(file_bytes))

        loaded = await load_document_text(
            file_bytes,
            file.filename,
            get_pdf_service(),
            get_ai_service(),
            ocr_fallback=get_settings().ocr_fallback,
        )
        return ExtractTextResponse(
            filename=loaded.filename,
            text=loaded.text,
            page_count=loaded.page_count,
        )

    except (HTTPException, PipelineError):
        raise
    except Exception as e:
        logger.exception("Unexpected error processing PDF")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error processing PDF: {e}",
        )
    finally:
        await file.close()


@router.post("/process-data")
async def process_data(request: ProcessDataRequest) -> dict[str, Any]:
    """
    Extract structured data from document text.

    Returns the structured result: top-level text and number fields as
    arrays of values, group fields as arrays of item objects.
    """
    try:
        return await get_ai_service().extract_data(request.text, request.fields)
    except (HTTPException, PipelineError):
        raise
    except Exception as e:
        logger.exception("Unexpected error processing data")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error processing data: {e}",
        )


@router.post("/process-batch", response_model=ProcessBatchResponse)
async def process_batch(request: ProcessBatchRequest) -> ProcessBatchResponse:
    """
    Extract several document texts concurrently and project them to rows.

    A failing document is reported in ``failures`` and does not affect the
    others. Rows keep the order of the submitted documents.
    """
    if not request.fields:
        raise InputError("No text or schema provided", detail="The schema must define at least one field")
    if not request.documents:
        raise InputError("No documents provided")

    ai_service = get_ai_service()
    fields = request.fields

    async def process_document(source_file: str, text: str) -> list[dict[str, Any]]:
        result = await ai_service.extract_data(text, fields)
        return project_rows(result, source_file, fields)

    outcome = await run_batch(
        [(doc.filename, doc.text) for doc in request.documents],
        process_document,
        max_workers=get_settings().max_concurrent_jobs,
    )

    return ProcessBatchResponse(
        rows=outcome.rows,
        failures=outcome.failures,
        total_documents=len(request.documents),
        successful_documents=outcome.successful,
        cancelled_documents=outcome.cancelled,
    )
