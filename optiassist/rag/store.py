"""
pgvector-backed Vector Store

Persists documents, their chunks and embeddings, and answers
nearest-neighbour queries. Similarity search is delegated entirely to
pgvector: results are ordered by the distance operator of the configured
metric (``<->`` for L2, ``<=>`` for cosine), nearest first, ties broken by id.

Every operation acquires a pooled session for its own duration.
"""

import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete, exists, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from optiassist.db.models import EMBEDDING_DIMENSION, Document, QueryLog
from optiassist.errors import DuplicateDocumentError, StorageError
from optiassist.rag.embedding import to_vector_literal

logger = logging.getLogger(__name__)

# The migration builds the HNSW index for DISTANCE_METRIC only; switching the
# metric afterwards needs the index rebuilt with the matching operator class.
DISTANCE_OPERATORS = {
    "l2": "<->",
    "cosine": "<=>",
}


# ============================================
# Data Transfer Objects
# ============================================


@dataclass
class RetrievedChunk:
    """A stored passage returned by similarity search."""

    content: str
    distance: float
    chunk_id: uuid.UUID | int | None = None
    document_id: uuid.UUID | None = None
    chunk_index: int | None = None


@dataclass
class DocumentInfo:
    """Document metadata as listed to administrators."""

    id: uuid.UUID
    filename: str
    file_size: int
    created_at: datetime


# ============================================
# SQL
# ============================================


def similar_chunks_sql(metric: str = "l2"):
    """Nearest-neighbour query over document chunks."""
    op = DISTANCE_OPERATORS[metric]
    return text(
        "SELECT id, document_id, chunk_index, content, "
        f"embedding {op} CAST(:query_vector AS vector) AS distance "
        "FROM document_chunks "
        f"ORDER BY embedding {op} CAST(:query_vector AS vector), id "
        "LIMIT :k"
    )


def similar_seed_sql(metric: str = "l2"):
    """Nearest-neighbour query over the flat seed corpus."""
    op = DISTANCE_OPERATORS[metric]
    return text(
        "SELECT id, content, "
        f"embedding {op} CAST(:query_vector AS vector) AS distance "
        "FROM seed_documents "
        f"ORDER BY embedding {op} CAST(:query_vector AS vector), id "
        "LIMIT :k"
    )


INSERT_CHUNK_SQL = text(
    "INSERT INTO document_chunks (id, document_id, chunk_index, content, embedding) "
    "VALUES (:id, :document_id, :chunk_index, :content, CAST(:embedding AS vector))"
)

INSERT_SEED_SQL = text(
    "INSERT INTO seed_documents (content, embedding) "
    "VALUES (:content, CAST(:embedding AS vector))"
)


# ============================================
# Vector Store
# ============================================


class PgVectorStore:
    """Document and chunk persistence with pgvector similarity search."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        dimension: int = EMBEDDING_DIMENSION,
        metric: str = "l2",
    ) -> None:
        if metric not in DISTANCE_OPERATORS:
            raise ValueError(f"Unknown distance metric: {metric}")
        self._session_factory = session_factory
        self.dimension = dimension
        self.metric = metric

    def _check_dimension(self, vector: Sequence[float]) -> None:
        if len(vector) != self.dimension:
            raise StorageError(
                f"Refusing to store a {len(vector)}-dimension vector "
                f"(expected {self.dimension})"
            )

    # --- Reads ---

    async def find_similar(self, query_vector: Sequence[float], k: int) -> list[RetrievedChunk]:
        """Return up to k chunks ordered nearest-first."""
        self._check_dimension(query_vector)
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    similar_chunks_sql(self.metric),
                    {"query_vector": to_vector_literal(query_vector), "k": k},
                )
                rows = result.fetchall()
        except SQLAlchemyError as e:
            raise StorageError(f"Similarity search failed: {e}") from e

        return [
            RetrievedChunk(
                content=row.content,
                distance=float(row.distance),
                chunk_id=row.id,
                document_id=row.document_id,
                chunk_index=row.chunk_index,
            )
            for row in rows
        ]

    async def find_similar_seed(
        self, query_vector: Sequence[float], k: int
    ) -> list[RetrievedChunk]:
        """Return up to k seed sentences ordered nearest-first."""
        self._check_dimension(query_vector)
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    similar_seed_sql(self.metric),
                    {"query_vector": to_vector_literal(query_vector), "k": k},
                )
                rows = result.fetchall()
        except SQLAlchemyError as e:
            raise StorageError(f"Seed similarity search failed: {e}") from e

        return [
            RetrievedChunk(content=row.content, distance=float(row.distance), chunk_id=row.id)
            for row in rows
        ]

    async def exists_by_hash(self, file_hash: str) -> bool:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(exists().where(Document.file_hash == file_hash))
                )
                return bool(result.scalar())
        except SQLAlchemyError as e:
            raise StorageError(f"Hash lookup failed: {e}") from e

    async def list_documents(self) -> list[DocumentInfo]:
        """Return all documents, newest first."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Document).order_by(Document.created_at.desc(), Document.id)
                )
                docs = result.scalars().all()
        except SQLAlchemyError as e:
            raise StorageError(f"Listing documents failed: {e}") from e

        return [
            DocumentInfo(
                id=d.id,
                filename=d.filename,
                file_size=d.file_size,
                created_at=d.created_at,
            )
            for d in docs
        ]

    # --- Writes ---

    async def insert_document(self, filename: str, file_hash: str, file_size: int) -> uuid.UUID:
        """Insert a document row on its own and return its id."""
        return await self.add_document_with_chunks(filename, file_hash, file_size, [])

    async def insert_chunk(
        self,
        document_id: uuid.UUID,
        index: int,
        content: str,
        vector: Sequence[float],
    ) -> None:
        """Insert a single chunk row for an existing document."""
        self._check_dimension(vector)
        try:
            async with self._session_factory() as session, session.begin():
                await session.execute(
                    INSERT_CHUNK_SQL,
                    {
                        "id": uuid.uuid4(),
                        "document_id": document_id,
                        "chunk_index": index,
                        "content": content,
                        "embedding": to_vector_literal(vector),
                    },
                )
        except SQLAlchemyError as e:
            raise StorageError(f"Chunk insert failed: {e}") from e

    async def add_document_with_chunks(
        self,
        filename: str,
        file_hash: str,
        file_size: int,
        chunks: Sequence[tuple[str, Sequence[float]]],
    ) -> uuid.UUID:
        """
        Insert a document and all of its chunks in one transaction.

        Chunks are given in order as ``(content, vector)`` pairs and stored
        with indices 0..n-1. Either everything becomes visible or nothing does.

        Raises:
            DuplicateDocumentError: If another document with this hash exists.
            StorageError: On any other database failure or a bad vector.
        """
        for _, vector in chunks:
            self._check_dimension(vector)

        document_id = uuid.uuid4()
        rows = [
            {
                "id": uuid.uuid4(),
                "document_id": document_id,
                "chunk_index": index,
                "content": content,
                "embedding": to_vector_literal(vector),
            }
            for index, (content, vector) in enumerate(chunks)
        ]

        try:
            async with self._session_factory() as session, session.begin():
                session.add(
                    Document(
                        id=document_id,
                        filename=filename,
                        file_hash=file_hash,
                        file_size=file_size,
                    )
                )
                await session.flush()
                if rows:
                    await session.execute(INSERT_CHUNK_SQL, rows)
        except IntegrityError as e:
            if "file_hash" in str(e.orig):
                raise DuplicateDocumentError(f"Hash {file_hash[:12]} already stored") from e
            raise StorageError(f"Document insert failed: {e}") from e
        except SQLAlchemyError as e:
            raise StorageError(f"Document insert failed: {e}") from e

        logger.info(
            "Stored document %s (%s) with %d chunks", document_id, filename, len(rows)
        )
        return document_id

    async def delete_document(self, document_id: uuid.UUID) -> bool:
        """Delete a document; its chunks go with it. Returns False if unknown."""
        try:
            async with self._session_factory() as session, session.begin():
                result = await session.execute(
                    delete(Document).where(Document.id == document_id)
                )
                deleted = result.rowcount > 0
        except SQLAlchemyError as e:
            raise StorageError(f"Document delete failed: {e}") from e

        if deleted:
            logger.info("Deleted document %s", document_id)
        return deleted

    async def insert_seed_document(self, content: str, vector: Sequence[float]) -> None:
        self._check_dimension(vector)
        try:
            async with self._session_factory() as session, session.begin():
                await session.execute(
                    INSERT_SEED_SQL,
                    {"content": content, "embedding": to_vector_literal(vector)},
                )
        except SQLAlchemyError as e:
            raise StorageError(f"Seed insert failed: {e}") from e

    async def log_query(self, question: str, latency_ms: int) -> None:
        try:
            async with self._session_factory() as session, session.begin():
                session.add(QueryLog(question=question, latency_ms=latency_ms))
        except SQLAlchemyError as e:
            raise StorageError(f"Query log insert failed: {e}") from e
