"""
Router for schema template management endpoints.

Handles:
- Saving schema templates
- Listing saved schemas and built-in templates
- Getting schema details
- Deleting schemas
"""

import logging
import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..models import (
    SaveSchemaRequest,
    SavedSchemaResponse,
    SchemaDefinition,
    SchemaListResponse,
    TemplateListResponse,
)
from ..models_db import SavedSchema
from ..services.schema_templates import get_templates

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/schemas", tags=["schemas"])


def _to_response(schema: SavedSchema) -> SavedSchemaResponse:
    return SavedSchemaResponse(
        id=str(schema.id),
        name=schema.name,
        description=schema.description or "",
        version=schema.version,
        structure=SchemaDefinition.model_validate(schema.structure),
        created_at=schema.created_at.isoformat(),
        is_active=schema.is_active,
    )


def get_schema_or_404(db: Session, schema_id: str) -> SavedSchema:
    """Look up a saved schema by its string ID."""
    try:
        schema_uuid = uuid.UUID(schema_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid schema ID format",
        )

    schema = db.query(SavedSchema).filter(SavedSchema.id == schema_uuid).first()
    if not schema:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Schema {schema_id} not found",
        )
    return schema


@router.post("", response_model=SavedSchemaResponse, status_code=status.HTTP_201_CREATED)
async def create_schema(
    request: SaveSchemaRequest,
    db: Session = Depends(get_db),
) -> SavedSchemaResponse:
    """
    Save a schema as a reusable template.

    Saving a name and version that was previously deleted restores it with
    the new field list.
    """
    schema_def = request.schema_definition

    existing = (
        db.query(SavedSchema)
        .filter(
            SavedSchema.name == schema_def.name,
            SavedSchema.version == schema_def.version,
        )
        .first()
    )
    if existing and existing.is_active:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Schema '{schema_def.name}' version '{schema_def.version}' already exists",
        )

    structure = schema_def.model_dump(mode="json")
    if existing:
        existing.description = schema_def.description
        existing.structure = structure
        existing.is_active = True
        existing.updated_at = datetime.utcnow()
        db_schema = existing
    else:
        db_schema = SavedSchema(
            name=schema_def.name,
            description=schema_def.description,
            version=schema_def.version,
            structure=structure,
        )
        db.add(db_schema)
    db.commit()
    db.refresh(db_schema)

    logger.info("Saved schema: %s (id=%s)", schema_def.name, db_schema.id)
    return _to_response(db_schema)


@router.get("", response_model=SchemaListResponse)
async def list_schemas(
    db: Session = Depends(get_db),
    active_only: bool = True,
) -> SchemaListResponse:
    """List saved schema templates, newest first."""
    query = db.query(SavedSchema)
    if active_only:
        query = query.filter(SavedSchema.is_active == True)  # noqa: E712

    schemas = query.order_by(SavedSchema.created_at.desc()).all()
    return SchemaListResponse(
        schemas=[_to_response(s) for s in schemas],
        total=len(schemas),
    )


@router.get("/templates", response_model=TemplateListResponse)
async def list_templates() -> TemplateListResponse:
    """Built-in starter schemas (purchase, invoice, receipt)."""
    return TemplateListResponse(templates=get_templates())


@router.get("/{schema_id}", response_model=SavedSchemaResponse)
async def get_schema(
    schema_id: str,
    db: Session = Depends(get_db),
) -> SavedSchemaResponse:
    """Get a specific schema by ID."""
    return _to_response(get_schema_or_404(db, schema_id))


@router.delete("/{schema_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_schema(
    schema_id: str,
    db: Session = Depends(get_db),
):
    """
    Soft-delete a schema (mark as inactive).

    Batches that used the schema keep their own snapshot of its fields.
    """
    schema = get_schema_or_404(db, schema_id)

    # Soft delete (mark as inactive)
    schema.is_active = False
    db.commit()

    logger.info("Deleted schema: %s (id=%s)", schema.name, schema_id)
