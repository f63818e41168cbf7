"""
Document Ingestion Pipeline for Optical-Assist

Turns raw uploaded PDF bytes into searchable chunks:

    validate -> hash -> dedupe -> extract -> chunk -> embed -> store

Chunk embeddings are produced with bounded concurrency and staged in memory;
the document row and every chunk row are written in one transaction at the
end, so a failure anywhere leaves nothing behind.
"""

import asyncio
import hashlib
import logging
import time
import uuid
from dataclasses import dataclass

from optiassist.errors import (
    DuplicateDocumentError,
    EmptyDocumentError,
    FileTooLargeError,
    UnsupportedFileError,
    ValidationError,
)
from optiassist.rag.chunker import DEFAULT_CHUNK_SIZE, PDFParseError, PDFParser, WordChunker, looks_like_pdf

logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_BYTES = 5 * 1024 * 1024  # 5MB
DEFAULT_EMBED_CONCURRENCY = 4


def compute_file_hash(data: bytes) -> str:
    """SHA-256 hex digest of raw file bytes."""
    return hashlib.sha256(data).hexdigest()


@dataclass
class IngestResult:
    """Outcome of a successful ingestion."""

    document_id: uuid.UUID
    filename: str
    file_hash: str
    file_size: int
    chunks_created: int
    processing_time_ms: float


class IngestionPipeline:
    """Deduplicating PDF ingestion into the vector store."""

    def __init__(
        self,
        store,
        embedder,
        parser: PDFParser | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        concurrency: int = DEFAULT_EMBED_CONCURRENCY,
        max_file_size: int = DEFAULT_MAX_UPLOAD_BYTES,
    ):
        self.store = store
        self.embedder = embedder
        self.parser = parser or PDFParser()
        self.chunker = WordChunker(chunk_size)
        self.concurrency = concurrency
        self.max_file_size = max_file_size

    def _validate(self, filename: str, data: bytes) -> None:
        if not data:
            raise ValidationError("No file uploaded")
        if len(data) > self.max_file_size:
            raise FileTooLargeError(
                f"{filename} is {len(data)} bytes (limit {self.max_file_size})"
            )
        if not looks_like_pdf(data):
            raise UnsupportedFileError(f"{filename} is not a PDF")

    async def ingest(self, filename: str, data: bytes) -> IngestResult:
        """
        Ingest one uploaded file.

        Raises:
            ValidationError: Empty upload.
            FileTooLargeError: Upload over the size limit.
            UnsupportedFileError: Not a readable PDF.
            DuplicateDocumentError: Identical bytes were ingested before.
            EmptyDocumentError: The PDF has no extractable text.
            EmbeddingError / StorageError: Upstream or database failure.
        """
        start_time = time.perf_counter()
        self._validate(filename, data)

        file_hash = compute_file_hash(data)
        if await self.store.exists_by_hash(file_hash):
            logger.info("Rejected duplicate upload %s (hash %s)", filename, file_hash[:12])
            raise DuplicateDocumentError(f"Hash {file_hash[:12]} already stored")

        # PDF parsing is CPU-bound; keep it off the event loop
        try:
            text = await asyncio.to_thread(self.parser.parse, data)
        except PDFParseError as e:
            raise UnsupportedFileError(f"{filename}: {e}") from e

        chunks = self.chunker.chunk(text)
        if not chunks:
            raise EmptyDocumentError(f"{filename} has no extractable text")

        vectors = await self.embedder.embed_many(
            [c.text for c in chunks], concurrency=self.concurrency
        )

        document_id = await self.store.add_document_with_chunks(
            filename=filename,
            file_hash=file_hash,
            file_size=len(data),
            chunks=[(c.text, v) for c, v in zip(chunks, vectors, strict=True)],
        )

        elapsed = (time.perf_counter() - start_time) * 1000
        logger.info(
            "Ingested %s: %d chunks in %.1fms", filename, len(chunks), elapsed
        )
        return IngestResult(
            document_id=document_id,
            filename=filename,
            file_hash=file_hash,
            file_size=len(data),
            chunks_created=len(chunks),
            processing_time_ms=round(elapsed, 1),
        )
