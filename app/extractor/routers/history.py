"""
Router for history and stored result endpoints.

Handles:
- Batch history listing
- Extraction detail retrieval
- Batch deletion
"""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..models import BatchHistoryResponse, BatchSummary, ExtractionDetailResponse
from ..models_db import DocumentBatch, Extraction
from ..services.rows import project_rows
from .batches import batch_status, get_batch_or_404, is_batch_running, snapshot_fields

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["history"])


@router.get("/batches", response_model=BatchHistoryResponse)
async def get_batch_history(
    db: Session = Depends(get_db),
    limit: int = 50,
    offset: int = 0,
) -> BatchHistoryResponse:
    """
    Get history of all batch processing jobs.

    Args:
        db: Database session.
        limit: Maximum number of batches to return.
        offset: Number of batches to skip.

    Returns:
        Batch summaries, newest first.
    """
    batches = (
        db.query(DocumentBatch)
        .order_by(DocumentBatch.created_at.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    total = db.query(DocumentBatch).count()

    return BatchHistoryResponse(
        batches=[
            BatchSummary(
                id=str(batch.id),
                name=batch.name,
                status=batch_status(batch),
                created_at=batch.created_at.isoformat(),
                completed_at=batch.completed_at.isoformat() if batch.completed_at else None,
                total_documents=batch.total_documents,
                successful_documents=batch.successful_documents,
                failed_documents=batch.failed_documents,
                schema_name=batch.schema.name if batch.schema else None,
            )
            for batch in batches
        ],
        total=total,
    )


@router.get("/extractions/{extraction_id}", response_model=ExtractionDetailResponse)
async def get_extraction(
    extraction_id: str,
    db: Session = Depends(get_db),
) -> ExtractionDetailResponse:
    """Stored structured result of one document, with its projected rows."""
    try:
        extraction_uuid = uuid.UUID(extraction_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid extraction ID format",
        )

    extraction = db.query(Extraction).filter(Extraction.id == extraction_uuid).first()
    if not extraction:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Extraction {extraction_id} not found",
        )

    doc = extraction.document
    fields = snapshot_fields(doc.batch)
    return ExtractionDetailResponse(
        id=str(extraction.id),
        document_id=str(doc.id),
        filename=doc.filename,
        data=extraction.data,
        rows=project_rows(extraction.data, doc.filename, fields),
        created_at=extraction.created_at.isoformat(),
    )


@router.delete("/batches/{batch_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_batch(
    batch_id: str,
    db: Session = Depends(get_db),
):
    """Delete a finished batch with its documents and results."""
    batch = get_batch_or_404(db, batch_id)
    if is_batch_running(batch.id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Batch is still processing; cancel it first",
        )

    db.delete(batch)
    db.commit()

    logger.info("Deleted batch %s", batch_id)
