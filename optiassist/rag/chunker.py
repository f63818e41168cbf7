"""
Optical-Assist Document Chunker Module

PDF text extraction and fixed-size word chunking for the ingestion pipeline.
Supports PyPDF2 with pdfplumber fallback for complex layouts.
"""

import io
import logging

import pdfplumber
from pydantic import BaseModel, Field
from PyPDF2 import PdfReader

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 400

PDF_MAGIC = b"%PDF"

# ============================================
# Exceptions
# ============================================


class PDFParseError(Exception):
    """Raised when PDF parsing fails."""

    pass


# ============================================
# Data Models
# ============================================


class TextChunk(BaseModel):
    """A contiguous slice of document words.

    Attributes:
        index: Zero-based position of the chunk in its document.
        text: Words of the chunk joined by single spaces.
    """

    index: int = Field(..., ge=0, description="Zero-based chunk index")
    text: str = Field(..., description="The text content of the chunk")


# ============================================
# Word Chunking
# ============================================


def chunk_text(text: str, size: int = DEFAULT_CHUNK_SIZE) -> list[str]:
    """Split text into consecutive groups of ``size`` words.

    Words are separated on any whitespace and re-joined with single spaces.
    Every segment but the last holds exactly ``size`` words; there is no
    overlap and no awareness of sentence boundaries.

    Args:
        text: Extracted document text.
        size: Words per segment.

    Returns:
        Ordered list of segments; empty when the text has no words.
    """
    if size < 1:
        raise ValueError("chunk size must be at least 1")

    words = text.split() if text else []
    return [" ".join(words[i : i + size]) for i in range(0, len(words), size)]


class WordChunker:
    """Fixed-size, order-preserving word chunker."""

    def __init__(self, size: int = DEFAULT_CHUNK_SIZE) -> None:
        if size < 1:
            raise ValueError("chunk size must be at least 1")
        self.size = size

    def chunk(self, text: str) -> list[TextChunk]:
        """Chunk text into indexed segments starting at 0."""
        return [
            TextChunk(index=i, text=segment)
            for i, segment in enumerate(chunk_text(text, self.size))
        ]


# ============================================
# PDF Parser
# ============================================


def looks_like_pdf(data: bytes) -> bool:
    """Return True if the bytes start with the PDF magic header."""
    return data[:1024].lstrip().startswith(PDF_MAGIC)


class PDFParser:
    """Parses PDF documents to extract text content.

    Uses PyPDF2 as the primary parser with pdfplumber as fallback
    for complex layouts (tables, multi-column pages, etc.).
    """

    def parse(self, pdf_bytes: bytes) -> str:
        """Parse PDF from bytes and extract text.

        Args:
            pdf_bytes: Raw PDF file content as bytes.

        Returns:
            Extracted text content; empty string for a valid PDF
            without a text layer.

        Raises:
            PDFParseError: If the data is not a PDF or no parser can read it.
        """
        if not pdf_bytes:
            raise PDFParseError("Empty PDF data provided")
        if not looks_like_pdf(pdf_bytes):
            raise PDFParseError("Data is not a PDF document")

        try:
            text = self._extract_with_pypdf2(pdf_bytes)
            if text.strip():
                return text
        except Exception as e:
            logger.debug("PyPDF2 extraction failed, trying pdfplumber: %s", e)

        try:
            text = self._extract_with_pdfplumber(pdf_bytes)
            if text.strip():
                return text
        except Exception as e:
            raise PDFParseError(f"Failed to parse PDF: {e}") from e

        # Readable PDF, but no text layer (e.g. scanned pages)
        return ""

    def _extract_with_pypdf2(self, pdf_bytes: bytes) -> str:
        reader = PdfReader(io.BytesIO(pdf_bytes))
        text_parts = []

        for page in reader.pages:
            page_text = page.extract_text()
            if page_text:
                text_parts.append(page_text)

        return "\n\n".join(text_parts)

    def _extract_with_pdfplumber(self, pdf_bytes: bytes) -> str:
        text_parts = []

        with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
            for page in pdf.pages:
                page_text = page.extract_text()
                if page_text:
                    text_parts.append(page_text)

        return "\n\n".join(text_parts)
