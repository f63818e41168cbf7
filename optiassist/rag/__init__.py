"""
Optical-Assist RAG Module

Ingestion and retrieval building blocks: PDF parsing, word chunking,
embedding generation and the pgvector store.
"""

from optiassist.rag.chunker import (
    DEFAULT_CHUNK_SIZE,
    PDFParseError,
    PDFParser,
    TextChunk,
    WordChunker,
    chunk_text,
    looks_like_pdf,
)
from optiassist.rag.embedding import EmbeddingClient, to_vector_literal
from optiassist.rag.store import DocumentInfo, PgVectorStore, RetrievedChunk

__all__ = [
    # Chunker
    "DEFAULT_CHUNK_SIZE",
    "PDFParser",
    "PDFParseError",
    "TextChunk",
    "WordChunker",
    "chunk_text",
    "looks_like_pdf",
    # Embedding
    "EmbeddingClient",
    "to_vector_literal",
    # Store
    "DocumentInfo",
    "PgVectorStore",
    "RetrievedChunk",
]
