"""Initial schema with all tables

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

Initial database schema for the Optical-Assist RAG service:
documents, document_chunks, seed_documents and the query log.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from pgvector.sqlalchemy import Vector

from optiassist.config import get_settings

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

EMBEDDING_DIMENSION = get_settings().embedding_dimension

# HNSW operator class per DISTANCE_METRIC; the index only serves its own operator
VECTOR_INDEX_OPS = {
    "l2": "vector_l2_ops",
    "cosine": "vector_cosine_ops",
}


def upgrade() -> None:
    """Create all tables and indexes."""

    # Enable extensions
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    # ========================================
    # Documents table
    # ========================================
    op.create_table(
        "documents",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text("gen_random_uuid()")),
        sa.Column("filename", sa.String(255), nullable=False),
        sa.Column("file_hash", sa.String(64), unique=True, nullable=False),
        sa.Column("file_size", sa.BigInteger(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True),
                  server_default=sa.text("NOW()"), nullable=False),
    )
    op.create_index("idx_documents_created_at", "documents", ["created_at"])

    # ========================================
    # Document chunks table
    # ========================================
    op.create_table(
        "document_chunks",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text("gen_random_uuid()")),
        sa.Column("document_id", postgresql.UUID(as_uuid=True),
                  sa.ForeignKey("documents.id", ondelete="CASCADE"), nullable=False),
        sa.Column("chunk_index", sa.Integer(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("embedding", Vector(EMBEDDING_DIMENSION), nullable=False),
        sa.UniqueConstraint("document_id", "chunk_index", name="uq_chunk_document_index"),
    )
    op.create_index("idx_document_chunks_document_id", "document_chunks", ["document_id"])

    # HNSW vector index matching the configured distance metric
    index_ops = VECTOR_INDEX_OPS[get_settings().distance_metric]
    op.execute(f"""
        CREATE INDEX idx_document_chunks_embedding ON document_chunks
        USING hnsw (embedding {index_ops})
    """)

    # ========================================
    # Seed documents table
    # ========================================
    op.create_table(
        "seed_documents",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("embedding", Vector(EMBEDDING_DIMENSION), nullable=False),
    )

    # ========================================
    # Query log table
    # ========================================
    op.create_table(
        "logging",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("question", sa.Text(), nullable=False),
        sa.Column("latency_ms", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True),
                  server_default=sa.text("NOW()"), nullable=False),
    )
    op.create_index("idx_logging_created_at", "logging", ["created_at"])


def downgrade() -> None:
    """Drop all tables."""

    # Drop tables (reverse order due to foreign keys)
    op.drop_table("logging")
    op.drop_table("seed_documents")
    op.drop_table("document_chunks")
    op.drop_table("documents")

    # Note: Extensions are not dropped to avoid affecting other databases
