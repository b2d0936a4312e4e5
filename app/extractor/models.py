"""
Pydantic models for the schema-driven extraction pipeline.

Defines the recursive field-definition union that users author, named
schema templates, and the request/response bodies of the HTTP API.
"""

import uuid
from typing import Annotated, Any, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

# Top-level key that holds the originating filename in every row record
SOURCE_FILE_KEY = "source_file"


def _new_field_id() -> str:
    """Field ids are scoped to the owning schema instance, never a global counter."""
    return uuid.uuid4().hex


def _check_unique_names(fields: list[Any]) -> list[Any]:
    names = [f.name for f in fields]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ValueError(
            f"Field names must be unique within the same level: {', '.join(duplicates)}"
        )
    return fields


def validate_top_level_fields(fields: list[Any]) -> list[Any]:
    """Validate a top-level field list (sibling uniqueness, reserved names)."""
    _check_unique_names(fields)
    if any(f.name == SOURCE_FILE_KEY for f in fields):
        raise ValueError(f"'{SOURCE_FILE_KEY}' is reserved for the row source filename")
    return fields


class _FieldBase(BaseModel):
    """Attributes shared by every field variant."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(
        default_factory=_new_field_id,
        description="Identifier used by editors to address this field",
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display label and structured-output key",
        examples=["invoice_number", "total_amount"],
    )
    description: str = Field(
        default="",
        max_length=1000,
        description="Instruction for the extraction model",
        examples=["Invoice number or reference"],
    )

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        """Reject names that are only whitespace."""
        v = v.strip()
        if not v:
            raise ValueError("Field name must not be blank")
        return v


class TextField(_FieldBase):
    """A free-text value, extracted verbatim."""

    type: Literal["text"] = "text"


class NumberField(_FieldBase):
    """A numeric value, normalised by the model to a plain number."""

    type: Literal["number"] = "number"


class GroupField(_FieldBase):
    """
    A collection of items, each shaped by ``sub_fields``.

    Accepts ``sub_fields``, ``subFields`` or ``fields`` on input so editors
    built against either naming can post schemas unchanged.
    """

    type: Literal["group"] = "group"
    sub_fields: list["FieldDefinition"] = Field(
        default_factory=list,
        validation_alias=AliasChoices("sub_fields", "subFields", "fields"),
        description="Ordered item fields",
    )

    @field_validator("sub_fields")
    @classmethod
    def validate_unique_sub_fields(cls, v: list["FieldDefinition"]) -> list["FieldDefinition"]:
        """Ensure sibling names are unique."""
        return _check_unique_names(v)


FieldDefinition = Annotated[
    Union[TextField, NumberField, GroupField],
    Field(discriminator="type"),
]

GroupField.model_rebuild()


class SchemaDefinition(BaseModel):
    """
    A named, reusable extraction schema.

    Attributes:
        name: Human-readable name for this schema.
        description: What kind of document this schema targets.
        fields: Ordered top-level fields; order defines column order.
        version: Schema version for tracking changes.
    """

    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Schema name",
        examples=["Invoice", "Receipt"],
    )
    description: str = Field(
        default="",
        max_length=1000,
        description="Description of the document type",
    )
    fields: list[FieldDefinition] = Field(
        ...,
        min_length=1,
        description="List of fields to extract",
    )
    version: str = Field(
        default="1.0",
        description="Schema version",
    )

    @field_validator("fields")
    @classmethod
    def validate_fields(cls, v: list[FieldDefinition]) -> list[FieldDefinition]:
        return validate_top_level_fields(v)


class _SchemaBoundRequest(BaseModel):
    """Request bodies that carry a bare field list under the ``schema`` key."""

    model_config = ConfigDict(populate_by_name=True)

    fields: list[FieldDefinition] = Field(
        default_factory=list,
        alias="schema",
        description="Top-level fields to extract",
    )

    @field_validator("fields")
    @classmethod
    def validate_fields(cls, v: list[FieldDefinition]) -> list[FieldDefinition]:
        return validate_top_level_fields(v)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(default="healthy")
    message: str = Field(default="")
    version: str = Field(default="1.0.0")


# =============================================================================
# Extraction Models
# =============================================================================


class ExtractTextResponse(BaseModel):
    """Text extracted from an uploaded PDF."""

    filename: str = Field(..., description="Original filename")
    text: str = Field(..., description="Full document text, pages joined by blank lines")
    page_count: int = Field(..., ge=0, description="Total number of pages in the PDF")


class ProcessDataRequest(_SchemaBoundRequest):
    """Request model for structured extraction from already-extracted text."""

    text: str = Field(default="", description="Document text")


class DocumentText(BaseModel):
    """One document of a text batch."""

    filename: str = Field(..., min_length=1, description="Source filename")
    text: str = Field(default="", description="Document text")


class ProcessBatchRequest(_SchemaBoundRequest):
    """Request model for extracting several documents in one call."""

    documents: list[DocumentText] = Field(
        default_factory=list,
        description="Documents in display order",
    )


class BatchFailure(BaseModel):
    """Failure notice for one document of a batch."""

    source_file: str = Field(..., description="Document that failed")
    message: str = Field(..., description="Human-readable failure")
    detail: str | None = Field(default=None, description="Upstream error detail")


class ProcessBatchResponse(BaseModel):
    """Rows and failures of a text batch."""

    rows: list[dict[str, Any]] = Field(default_factory=list, description="Projected rows")
    failures: list[BatchFailure] = Field(default_factory=list)
    total_documents: int = Field(..., ge=0)
    successful_documents: int = Field(..., ge=0)
    cancelled_documents: int = Field(default=0, ge=0)


class GenerateExcelRequest(_SchemaBoundRequest):
    """Request model for spreadsheet export."""

    data: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Projected rows or raw per-document results",
    )


# =============================================================================
# Table Models
# =============================================================================


class SortConfig(BaseModel):
    """Sort by one column."""

    field: str
    direction: Literal["asc", "desc"] = "asc"


class FilterConfig(BaseModel):
    """Case-insensitive substring filter on one column."""

    field: str
    value: str = ""


class PaginationConfig(BaseModel):
    """Zero-based page navigation."""

    current_page: int = Field(default=0, ge=0)
    page_size: int = Field(default=10, ge=1, le=500)


class TableQueryRequest(_SchemaBoundRequest):
    """Rows plus the view state to apply to them."""

    rows: list[dict[str, Any]] = Field(default_factory=list)
    sort: SortConfig | None = None
    filter: FilterConfig | None = None
    pagination: PaginationConfig = Field(default_factory=PaginationConfig)


class TablePage(BaseModel):
    """One page of rows after filtering and sorting."""

    rows: list[dict[str, Any]] = Field(default_factory=list)
    display: list[dict[str, str]] = Field(
        default_factory=list,
        description="Display strings for each row on the page",
    )
    total_items: int = Field(..., ge=0)
    total_pages: int = Field(..., ge=0)
    current_page: int = Field(..., ge=0)
    page_size: int = Field(..., ge=1)


class ExpandGroupRequest(_SchemaBoundRequest):
    """Request to expand a group cell of a row."""

    row: dict[str, Any]
    field: str = Field(..., description="Name of the group column")


class NestedTable(BaseModel):
    """Materialised items of a group cell."""

    columns: list[str] = Field(default_factory=list)
    rows: list[dict[str, Any]] = Field(default_factory=list)


# =============================================================================
# Schema Registry Models
# =============================================================================


class SaveSchemaRequest(BaseModel):
    """Request model for saving a schema template."""

    schema_definition: SchemaDefinition = Field(
        ...,
        description="The schema definition to save",
        alias="schema",
    )


class SavedSchemaResponse(BaseModel):
    """Response model for a saved schema."""

    id: str = Field(..., description="Unique schema ID (UUID)")
    name: str = Field(..., description="Schema name")
    description: str = Field(default="", description="Schema description")
    version: str = Field(default="1.0", description="Schema version")
    structure: SchemaDefinition = Field(..., description="Full schema definition")
    created_at: str = Field(..., description="Creation timestamp (ISO format)")
    is_active: bool = Field(default=True, description="Whether schema is active")


class SchemaListResponse(BaseModel):
    """Response model for listing schemas."""

    schemas: list[SavedSchemaResponse] = Field(
        default_factory=list,
        description="List of saved schemas",
    )
    total: int = Field(..., ge=0, description="Total number of schemas")


class TemplateListResponse(BaseModel):
    """Built-in starter schemas."""

    templates: dict[str, SchemaDefinition] = Field(default_factory=dict)


# =============================================================================
# Batch Processing Models
# =============================================================================


class StartBatchResponse(BaseModel):
    """Response model for starting a batch."""

    batch_id: str = Field(..., description="Batch ID (UUID)")
    message: str = Field(..., description="Status message")
    total_documents: int = Field(..., ge=0, description="Number of documents queued")
    status: str = Field(default="processing", description="Initial status")


class DocumentStatusResponse(BaseModel):
    """Status of a single document in a batch."""

    id: str = Field(..., description="Document ID (UUID)")
    filename: str = Field(..., description="Original filename")
    status: str = Field(..., description="Processing status")
    page_count: int | None = Field(default=None)
    error_message: str | None = Field(
        default=None,
        description="Error message (if failed)",
    )
    extraction_id: str | None = Field(default=None)
    row_count: int = Field(default=0, ge=0, description="Rows projected from this document")


class BatchStatusResponse(BaseModel):
    """Response model for batch status."""

    id: str = Field(..., description="Batch ID (UUID)")
    status: str = Field(..., description="Overall batch status")
    created_at: str = Field(..., description="Creation timestamp")
    completed_at: str | None = Field(default=None, description="Completion timestamp")
    total_documents: int = Field(..., ge=0, description="Total documents in batch")
    completed_documents: int = Field(..., ge=0, description="Finished documents")
    failed_documents: int = Field(..., ge=0, description="Failed documents")
    cancelled_documents: int = Field(default=0, ge=0, description="Cancelled documents")
    progress_percent: float = Field(
        ...,
        ge=0.0,
        le=100.0,
        description="Progress percentage",
    )
    documents: list[DocumentStatusResponse] = Field(
        default_factory=list,
        description="Status of each document",
    )
    schema_id: str | None = Field(default=None, description="Saved schema used for batch")
    schema_name: str | None = Field(default=None, description="Schema name")


class BatchRowsResponse(BaseModel):
    """Projected rows of every completed document in a batch."""

    batch_id: str
    columns: list[str] = Field(default_factory=list)
    rows: list[dict[str, Any]] = Field(default_factory=list)
    failures: list[BatchFailure] = Field(default_factory=list)


class CancelBatchResponse(BaseModel):
    """Response model for a cancellation request."""

    batch_id: str
    message: str
    cancelled: bool


class BatchSummary(BaseModel):
    """One entry of the batch history."""

    id: str
    name: str | None = None
    status: str
    created_at: str
    completed_at: str | None = None
    total_documents: int = Field(..., ge=0)
    successful_documents: int = Field(..., ge=0)
    failed_documents: int = Field(..., ge=0)
    schema_name: str | None = None


class BatchHistoryResponse(BaseModel):
    """Paged batch history."""

    batches: list[BatchSummary] = Field(default_factory=list)
    total: int = Field(..., ge=0)


class ExtractionDetailResponse(BaseModel):
    """Stored structured result of one document."""

    id: str = Field(..., description="Extraction ID (UUID)")
    document_id: str = Field(..., description="Parent document ID")
    filename: str = Field(..., description="Source filename")
    data: dict[str, Any] = Field(..., description="Structured result")
    rows: list[dict[str, Any]] = Field(default_factory=list, description="Projected rows")
    created_at: str = Field(..., description="Creation timestamp")
