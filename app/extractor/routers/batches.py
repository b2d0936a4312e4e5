"""
Router for batch processing endpoints.

Handles:
- Starting batch extractions of uploaded PDFs
- Monitoring batch status
- Retrieving batch rows and spreadsheet exports
- Cancelling pending documents
"""

import hashlib
import json
import logging
import uuid
from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.responses import Response
from pydantic import TypeAdapter, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import database
from ..config import get_settings
from ..database import get_db
from ..models import (
    SOURCE_FILE_KEY,
    BatchFailure,
    BatchRowsResponse,
    BatchStatusResponse,
    CancelBatchResponse,
    DocumentStatusResponse,
    FieldDefinition,
    SchemaDefinition,
    StartBatchResponse,
    validate_top_level_fields,
)
from ..models_db import Document, DocumentBatch, DocumentStatus, Extraction, SavedSchema
from ..services.ai import get_ai_service
from ..services.batch import (
    STATUS_CANCELLED,
    STATUS_FAILED,
    CancellationToken,
    DocumentOutcome,
    iter_batch,
)
from ..services.documents import load_document_text
from ..services.pdf_service import get_pdf_service
from ..services.rows import project_results, project_rows
from ..services.spreadsheet import build_workbook
from .export import xlsx_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/batches", tags=["batches"])
# Root-level router for extract-batch endpoints (no prefix)
extract_router = APIRouter(tags=["batches"])

_field_list = TypeAdapter(list[FieldDefinition])

# Cancellation tokens of batches still running in this process
_cancel_tokens: dict[uuid.UUID, CancellationToken] = {}


# =============================================================================
# Helpers
# =============================================================================


def get_batch_or_404(db: Session, batch_id: str) -> DocumentBatch:
    """Look up a batch by its string ID."""
    try:
        batch_uuid = uuid.UUID(batch_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid batch ID format",
        )

    batch = db.query(DocumentBatch).filter(DocumentBatch.id == batch_uuid).first()
    if not batch:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Batch {batch_id} not found",
        )
    return batch


def is_batch_running(batch_id: uuid.UUID) -> bool:
    """True while a background task of this process owns the batch."""
    return batch_id in _cancel_tokens


def snapshot_fields(batch: DocumentBatch) -> list[FieldDefinition]:
    """Fields the batch was extracted with."""
    return _field_list.validate_python(batch.schema_snapshot)


def batch_status(batch: DocumentBatch) -> str:
    """Overall status derived from the batch and its documents."""
    if batch.completed_at:
        if batch.cancelled_documents and not batch.successful_documents and not batch.failed_documents:
            return "cancelled"
        return "completed"
    if any(d.status == DocumentStatus.PROCESSING for d in batch.documents):
        return "processing"
    if all(d.status == DocumentStatus.PENDING for d in batch.documents):
        return "pending"
    return "processing"


def document_rows(doc: Document, fields: list[FieldDefinition]) -> list[dict[str, Any]]:
    """Projected rows of one document, empty unless it completed."""
    if doc.status != DocumentStatus.COMPLETED or doc.extraction is None:
        return []
    return project_rows(doc.extraction.data, doc.filename, fields)


def batch_rows(batch: DocumentBatch, fields: list[FieldDefinition]) -> list[dict[str, Any]]:
    """Projected rows of the completed documents, in upload order."""
    return project_results(
        (
            (doc.filename, doc.extraction.data)
            for doc in batch.documents
            if doc.status == DocumentStatus.COMPLETED and doc.extraction is not None
        ),
        fields,
    )


def _parse_confirmed_schema(raw: str) -> list[FieldDefinition]:
    """
    Parse an inline schema sent as a form string.

    Accepts either a full SchemaDefinition object or a bare list of fields.
    """
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid JSON in confirmed_schema: {e}",
        )

    try:
        if isinstance(payload, list):
            fields = validate_top_level_fields(_field_list.validate_python(payload))
        else:
            fields = SchemaDefinition.model_validate(payload).fields
    except (ValidationError, ValueError) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid schema: {e}",
        )

    if not fields:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No text or schema provided",
        )
    return fields


# =============================================================================
# Background Task
# =============================================================================


def _mark_processing(doc_id: uuid.UUID) -> None:
    db = database.SessionLocal()
    try:
        doc = db.get(Document, doc_id)
        if doc is not None:
            doc.status = DocumentStatus.PROCESSING
            db.commit()
    finally:
        db.close()


def _apply_outcome(db: Session, batch: DocumentBatch, doc: Document, outcome: DocumentOutcome) -> None:
    if outcome.ok:
        page_count, result = outcome.result
        doc.page_count = page_count
        doc.extraction = Extraction(data=result)
        doc.status = DocumentStatus.COMPLETED
        batch.successful_documents += 1
    elif outcome.status == STATUS_CANCELLED:
        doc.status = DocumentStatus.CANCELLED
        batch.cancelled_documents += 1
    else:
        doc.status = DocumentStatus.FAILED
        doc.error_message = outcome.error
        doc.error_detail = outcome.detail
        batch.failed_documents += 1
    doc.processed_at = datetime.utcnow()
    db.commit()


def record_outcome(batch_id: uuid.UUID, doc_id: uuid.UUID, outcome: DocumentOutcome) -> None:
    """
    Store one document outcome and update the batch counters.

    Runs in its own session. A result the database rejects is stored as a
    failed document instead.
    """
    db = database.SessionLocal()
    try:
        batch = db.get(DocumentBatch, batch_id)
        doc = db.get(Document, doc_id)
        if batch is None or doc is None:
            logger.warning("Document %s of batch %s not found", outcome.source_file, batch_id)
            return

        try:
            _apply_outcome(db, batch, doc, outcome)
        except SQLAlchemyError as e:
            logger.exception("Could not store outcome of %s", outcome.source_file)
            db.rollback()
            failed = DocumentOutcome(
                index=outcome.index,
                source_file=outcome.source_file,
                status=STATUS_FAILED,
                error="Failed to store extraction result",
                detail=str(e),
            )
            _apply_outcome(db, batch, doc, failed)
    finally:
        db.close()


def finish_batch(batch_id: uuid.UUID) -> None:
    """Stamp the batch as completed."""
    db = database.SessionLocal()
    try:
        batch = db.get(DocumentBatch, batch_id)
        if batch is None:
            logger.error("Batch %s not found", batch_id)
            return
        batch.completed_at = datetime.utcnow()
        db.commit()

        logger.info(
            "Batch %s completed: %d successful, %d failed, %d cancelled",
            batch_id,
            batch.successful_documents,
            batch.failed_documents,
            batch.cancelled_documents,
        )
    finally:
        db.close()


async def process_batch_documents(
    batch_id: uuid.UUID,
    file_data: list[tuple[uuid.UUID, str, bytes]],  # (document id, filename, content)
    fields: list[FieldDefinition],
    cancel_token: CancellationToken,
) -> None:
    """
    Background task extracting every document of a batch.

    Documents run concurrently, bounded by ``max_concurrent_jobs``. Each
    outcome is written as soon as its document finishes so status polling
    reports progress. Every write uses its own session.
    """
    settings = get_settings()
    pdf_service = get_pdf_service()
    ai_service = get_ai_service()

    async def process_single_document(filename: str, payload: tuple[uuid.UUID, bytes]):
        doc_id, content = payload
        _mark_processing(doc_id)

        loaded = await load_document_text(
            content,
            filename,
            pdf_service,
            ai_service,
            ocr_fallback=settings.ocr_fallback,
        )
        result = await ai_service.extract_data(loaded.text, fields)
        return loaded.page_count, result

    logger.info(
        "Starting batch %s: %d documents, max %d concurrent",
        batch_id,
        len(file_data),
        settings.max_concurrent_jobs,
    )

    try:
        async for outcome in iter_batch(
            [(filename, (doc_id, content)) for doc_id, filename, content in file_data],
            process_single_document,
            max_workers=settings.max_concurrent_jobs,
            cancel_token=cancel_token,
        ):
            record_outcome(batch_id, file_data[outcome.index][0], outcome)

        finish_batch(batch_id)

    except Exception:
        logger.exception("Fatal error in batch processing")
    finally:
        _cancel_tokens.pop(batch_id, None)


# =============================================================================
# Batch Endpoints
# =============================================================================


@extract_router.post("/extract-batch", response_model=StartBatchResponse)
async def extract_batch(
    background_tasks: BackgroundTasks,
    files: Annotated[list[UploadFile], File(description="PDF files to extract")],
    schema_id: Annotated[str | None, Form(description="ID of saved schema")] = None,
    confirmed_schema: Annotated[
        str | None,
        Form(description="JSON schema or field list (if not using schema_id)"),
    ] = None,
    name: Annotated[str | None, Form(description="Optional batch name")] = None,
    db: Session = Depends(get_db),
) -> StartBatchResponse:
    """
    Start batch extraction of multiple PDFs.

    Creates a batch record and processes documents in the background.
    Use GET /batches/{id}/status to monitor progress.

    An inline ``confirmed_schema`` takes priority over ``schema_id``; when
    both are given the saved schema is only recorded for tracking.
    """
    fields: list[FieldDefinition] | None = None
    resolved_schema_id: uuid.UUID | None = None

    if confirmed_schema:
        fields = _parse_confirmed_schema(confirmed_schema)
        if schema_id:
            try:
                resolved_schema_id = uuid.UUID(schema_id)
            except ValueError:
                resolved_schema_id = None
            if resolved_schema_id and not db.get(SavedSchema, resolved_schema_id):
                resolved_schema_id = None
    elif schema_id:
        try:
            schema_uuid = uuid.UUID(schema_id)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid schema_id format",
            )

        db_schema = db.query(SavedSchema).filter(SavedSchema.id == schema_uuid).first()
        if not db_schema:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Schema {schema_id} not found",
            )
        fields = SchemaDefinition.model_validate(db_schema.structure).fields
        resolved_schema_id = schema_uuid
    else:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Either schema_id or confirmed_schema must be provided",
        )

    if not files:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="At least one file is required",
        )

    uploads: list[tuple[str, bytes]] = []
    for file in files:
        if not file.filename:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="All files must have filenames",
            )
        if not file.filename.lower().endswith(".pdf"):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Only PDF files accepted: {file.filename}",
            )

        content = await file.read()
        await file.close()
        if not content:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Empty file: {file.filename}",
            )
        uploads.append((file.filename, content))

    batch = DocumentBatch(
        schema_id=resolved_schema_id,
        name=name,
        schema_snapshot=_field_list.dump_python(fields, mode="json"),
        total_documents=len(uploads),
        successful_documents=0,
        failed_documents=0,
        cancelled_documents=0,
    )
    db.add(batch)
    db.flush()

    file_data: list[tuple[uuid.UUID, str, bytes]] = []
    for position, (filename, content) in enumerate(uploads):
        doc = Document(
            batch_id=batch.id,
            position=position,
            filename=filename,
            file_hash=hashlib.sha256(content).hexdigest(),
            file_size_bytes=len(content),
            status=DocumentStatus.PENDING,
        )
        db.add(doc)
        db.flush()
        file_data.append((doc.id, filename, content))
    db.commit()

    logger.info("Created batch %s with %d documents", batch.id, len(file_data))

    cancel_token = CancellationToken()
    _cancel_tokens[batch.id] = cancel_token
    background_tasks.add_task(
        process_batch_documents,
        batch.id,
        file_data,
        fields,
        cancel_token,
    )

    return StartBatchResponse(
        batch_id=str(batch.id),
        message=f"Batch started with {len(file_data)} documents",
        total_documents=len(file_data),
        status="processing",
    )


@router.get("/{batch_id}/status", response_model=BatchStatusResponse)
async def get_batch_status(
    batch_id: str,
    db: Session = Depends(get_db),
) -> BatchStatusResponse:
    """Progress of a batch and the status of each of its documents."""
    batch = get_batch_or_404(db, batch_id)
    fields = snapshot_fields(batch)
    documents = batch.documents

    finished = sum(
        1
        for d in documents
        if d.status in (DocumentStatus.COMPLETED, DocumentStatus.FAILED, DocumentStatus.CANCELLED)
    )
    progress = (finished / batch.total_documents * 100) if batch.total_documents > 0 else 0

    doc_statuses = [
        DocumentStatusResponse(
            id=str(doc.id),
            filename=doc.filename,
            status=doc.status.value,
            page_count=doc.page_count,
            error_message=doc.error_message,
            extraction_id=str(doc.extraction.id) if doc.extraction else None,
            row_count=len(document_rows(doc, fields)),
        )
        for doc in documents
    ]

    return BatchStatusResponse(
        id=str(batch.id),
        status=batch_status(batch),
        created_at=batch.created_at.isoformat(),
        completed_at=batch.completed_at.isoformat() if batch.completed_at else None,
        total_documents=batch.total_documents,
        completed_documents=batch.successful_documents,
        failed_documents=batch.failed_documents,
        cancelled_documents=batch.cancelled_documents,
        progress_percent=round(progress, 1),
        documents=doc_statuses,
        schema_id=str(batch.schema_id) if batch.schema_id else None,
        schema_name=batch.schema.name if batch.schema else None,
    )


@router.get("/{batch_id}/rows", response_model=BatchRowsResponse)
async def get_batch_rows(
    batch_id: str,
    db: Session = Depends(get_db),
) -> BatchRowsResponse:
    """Projected rows of every completed document, in upload order."""
    batch = get_batch_or_404(db, batch_id)
    fields = snapshot_fields(batch)

    failures: list[BatchFailure] = []
    for doc in batch.documents:
        if doc.status in (DocumentStatus.FAILED, DocumentStatus.CANCELLED):
            failures.append(
                BatchFailure(
                    source_file=doc.filename,
                    message=doc.error_message or doc.status.value,
                    detail=doc.error_detail,
                )
            )

    return BatchRowsResponse(
        batch_id=str(batch.id),
        columns=[SOURCE_FILE_KEY] + [f.name for f in fields],
        rows=batch_rows(batch, fields),
        failures=failures,
    )


@router.get("/{batch_id}/export")
async def export_batch(
    batch_id: str,
    db: Session = Depends(get_db),
) -> Response:
    """Spreadsheet of the batch's projected rows."""
    batch = get_batch_or_404(db, batch_id)
    fields = snapshot_fields(batch)

    rows = batch_rows(batch, fields)
    if not rows:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No data provided",
        )

    return xlsx_response(build_workbook(rows, fields))


@router.post("/{batch_id}/cancel", response_model=CancelBatchResponse)
async def cancel_batch(
    batch_id: str,
    db: Session = Depends(get_db),
) -> CancelBatchResponse:
    """
    Cancel the documents of a batch that have not started yet.

    Documents already being processed run to completion.
    """
    batch = get_batch_or_404(db, batch_id)

    if batch.completed_at:
        return CancelBatchResponse(
            batch_id=str(batch.id),
            message="Batch already finished",
            cancelled=False,
        )

    token = _cancel_tokens.get(batch.id)
    if token is not None:
        token.cancel()
        logger.info("Cancellation requested for batch %s", batch.id)
        return CancelBatchResponse(
            batch_id=str(batch.id),
            message="Pending documents will be cancelled",
            cancelled=True,
        )

    # No worker owns this batch anymore (e.g. after a restart)
    now = datetime.utcnow()
    for doc in batch.documents:
        if doc.status in (DocumentStatus.PENDING, DocumentStatus.PROCESSING):
            doc.status = DocumentStatus.CANCELLED
            doc.processed_at = now
            batch.cancelled_documents += 1
    batch.completed_at = now
    db.commit()

    logger.info("Cancelled orphaned batch %s", batch.id)
    return CancelBatchResponse(
        batch_id=str(batch.id),
        message="Batch cancelled",
        cancelled=True,
    )
