"""
SQLAlchemy database models for the extraction application.

This module defines the ORM models for persisting schema templates,
document batches, and structured extraction results.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base


class DocumentStatus(enum.Enum):
    """Status of a document in the extraction pipeline."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class SavedSchema(Base):
    """
    Persisted extraction schema.

    Stores the field tree that can be reused across multiple
    extraction batches.
    """

    __tablename__ = "saved_schemas"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )
    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    version: Mapped[str] = mapped_column(
        String(50),
        default="1.0",
    )
    structure: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        comment="Full SchemaDefinition as JSON",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    batches: Mapped[list["DocumentBatch"]] = relationship(
        "DocumentBatch",
        back_populates="schema",
    )

    __table_args__ = (
        UniqueConstraint("name", "version", name="uq_schema_name_version"),
    )

    def __repr__(self) -> str:
        return f"<SavedSchema(id={self.id}, name='{self.name}', version='{self.version}')>"


class DocumentBatch(Base):
    """
    A batch of documents processed together.

    Keeps a snapshot of the field list used, so rows and exports can be
    rebuilt even when the batch ran against an inline schema.
    """

    __tablename__ = "document_batches"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    schema_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("saved_schemas.id", ondelete="SET NULL"),
        nullable=True,
    )
    name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    schema_snapshot: Mapped[list] = mapped_column(
        JSON,
        nullable=False,
        comment="Top-level field list used for extraction",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        nullable=True,
    )
    total_documents: Mapped[int] = mapped_column(
        Integer,
        default=0,
    )
    successful_documents: Mapped[int] = mapped_column(
        Integer,
        default=0,
    )
    failed_documents: Mapped[int] = mapped_column(
        Integer,
        default=0,
    )
    cancelled_documents: Mapped[int] = mapped_column(
        Integer,
        default=0,
    )

    schema: Mapped[SavedSchema | None] = relationship(
        "SavedSchema",
        back_populates="batches",
    )
    documents: Mapped[list["Document"]] = relationship(
        "Document",
        back_populates="batch",
        cascade="all, delete-orphan",
        order_by="Document.position",
    )

    def __repr__(self) -> str:
        return f"<DocumentBatch(id={self.id}, total={self.total_documents})>"


class Document(Base):
    """A single PDF within a batch."""

    __tablename__ = "documents"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    batch_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("document_batches.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Display order within the batch",
    )
    filename: Mapped[str] = mapped_column(
        String(512),
        nullable=False,
    )
    file_hash: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        comment="SHA-256 hash for deduplication",
    )
    file_size_bytes: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    page_count: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    status: Mapped[DocumentStatus] = mapped_column(
        Enum(DocumentStatus),
        default=DocumentStatus.PENDING,
        nullable=False,
        index=True,
    )
    error_message: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    error_detail: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    upload_date: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        nullable=True,
    )

    batch: Mapped[DocumentBatch] = relationship(
        "DocumentBatch",
        back_populates="documents",
    )
    extraction: Mapped[Optional["Extraction"]] = relationship(
        "Extraction",
        back_populates="document",
        cascade="all, delete-orphan",
        uselist=False,
    )

    def __repr__(self) -> str:
        return f"<Document(id={self.id}, filename='{self.filename}', status={self.status.value})>"


class Extraction(Base):
    """Structured result returned by the completion step for one document."""

    __tablename__ = "extractions"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    data: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        comment="Structured result as JSON",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )

    document: Mapped[Document] = relationship(
        "Document",
        back_populates="extraction",
    )

    def __repr__(self) -> str:
        return f"<Extraction(id={self.id}, document_id={self.document_id})>"
