"""
Optical-Assist SQLAlchemy Models

Database models for the practice-assistant RAG service.
All models use SQLAlchemy 2.0 patterns with async support.
"""

import uuid
from datetime import datetime, timezone

from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    BigInteger,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from optiassist.config import get_settings

# ============================================
# Configuration
# ============================================

# Embedding vector dimension, shared with the store and embedding client
EMBEDDING_DIMENSION = get_settings().embedding_dimension


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================
# Base Model
# ============================================


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""


# ============================================
# Document Model
# ============================================


class Document(Base):
    """Uploaded reference document metadata."""

    __tablename__ = "documents"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    file_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        nullable=False,
    )

    # Chunk rows are removed by the database (ON DELETE CASCADE)
    chunks: Mapped[list["DocumentChunk"]] = relationship(
        "DocumentChunk",
        back_populates="document",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="DocumentChunk.chunk_index",
    )

    __table_args__ = (Index("idx_documents_created_at", "created_at"),)

    def __repr__(self) -> str:
        return f"<Document(id={self.id}, filename='{self.filename}')>"


# ============================================
# Document Chunk Model
# ============================================


class DocumentChunk(Base):
    """Fixed-size text chunk of a document with its embedding."""

    __tablename__ = "document_chunks"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    document_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
    )
    chunk_index: Mapped[int] = mapped_column(Integer, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    embedding: Mapped[list[float]] = mapped_column(
        Vector(EMBEDDING_DIMENSION),
        nullable=False,
    )

    document: Mapped["Document"] = relationship("Document", back_populates="chunks")

    __table_args__ = (
        UniqueConstraint("document_id", "chunk_index", name="uq_chunk_document_index"),
        Index("idx_document_chunks_document_id", "document_id"),
        # Note: HNSW vector index created via migration (requires specific syntax)
    )

    def __repr__(self) -> str:
        return f"<DocumentChunk(document_id={self.document_id}, index={self.chunk_index})>"


# ============================================
# Seed Document Model
# ============================================


class SeedDocument(Base):
    """Flat, unchunked reference sentence used by the bulk-seed corpus."""

    __tablename__ = "seed_documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    embedding: Mapped[list[float]] = mapped_column(
        Vector(EMBEDDING_DIMENSION),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<SeedDocument(id={self.id}, content='{self.content[:30]}...')>"


# ============================================
# Query Log Model
# ============================================


class QueryLog(Base):
    """Best-effort record of answered questions and their latency."""

    __tablename__ = "logging"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    latency_ms: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        nullable=False,
    )

    __table_args__ = (Index("idx_logging_created_at", "created_at"),)

    def __repr__(self) -> str:
        return f"<QueryLog(id={self.id}, latency_ms={self.latency_ms})>"
