"""
Optical-Assist Test Configuration

Pytest fixtures and in-memory collaborators for the test suite.
"""

import math
import uuid
from collections.abc import Generator, Sequence
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from optiassist.errors import DuplicateDocumentError
from optiassist.rag.store import DocumentInfo, RetrievedChunk

TEST_ADMIN_KEY = "test-admin-key"

# Keyword features used by the fake embedder; one vector component each
KEYWORDS = (
    "cancel",
    "insurance",
    "contact lens",
    "dilation",
    "warranty",
    "billing",
    "exam",
    "portal",
)
FAKE_DIMENSION = len(KEYWORDS) + 1


# ============================================
# Fake Collaborators
# ============================================


def keyword_vector(text: str) -> list[float]:
    """Deterministic embedding: one component per keyword plus a bias term."""
    lowered = text.lower()
    return [1.0 if k in lowered else 0.0 for k in KEYWORDS] + [0.1]


class FakeEmbedder:
    """Records every text it is asked to embed."""

    def __init__(self, dimension: int = FAKE_DIMENSION, fail_on: str | None = None):
        self.dimension = dimension
        self.fail_on = fail_on
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")
        self.calls.append(text)
        if self.fail_on is not None and self.fail_on in text:
            from optiassist.errors import EmbeddingError

            raise EmbeddingError(f"refused to embed {text[:20]}")
        return keyword_vector(text)

    async def embed_many(self, texts: Sequence[str], concurrency: int = 4) -> list[list[float]]:
        return [await self.embed(t) for t in texts]

    async def health_check(self) -> bool:
        return True


class FakeCompletionClient:
    """Returns a fixed answer and keeps the messages it was sent."""

    def __init__(self, answer: str = "Appointments can be cancelled 24 hours in advance."):
        self.answer = answer
        self.calls: list[list[dict[str, str]]] = []

    async def complete(self, messages: list[dict[str, str]]) -> str:
        self.calls.append(messages)
        return self.answer

    async def health_check(self) -> bool:
        return True


def _l2(a: Sequence[float], b: Sequence[float]) -> float:
    return math.sqrt(sum((x - y) ** 2 for x, y in zip(a, b, strict=True)))


class InMemoryVectorStore:
    """Dictionary-backed stand-in for PgVectorStore with L2 ranking."""

    def __init__(self) -> None:
        self.documents: dict[uuid.UUID, dict] = {}
        self.chunks: list[dict] = []
        self.seed: list[dict] = []
        self.query_logs: list[tuple[str, int]] = []
        self._clock = datetime(2026, 1, 1, tzinfo=timezone.utc)

    async def exists_by_hash(self, file_hash: str) -> bool:
        return any(d["file_hash"] == file_hash for d in self.documents.values())

    async def add_document_with_chunks(self, filename, file_hash, file_size, chunks):
        if await self.exists_by_hash(file_hash):
            raise DuplicateDocumentError("duplicate hash")
        document_id = uuid.uuid4()
        self._clock += timedelta(seconds=1)
        self.documents[document_id] = {
            "filename": filename,
            "file_hash": file_hash,
            "file_size": file_size,
            "created_at": self._clock,
        }
        for index, (content, vector) in enumerate(chunks):
            self.chunks.append(
                {
                    "id": len(self.chunks),
                    "document_id": document_id,
                    "chunk_index": index,
                    "content": content,
                    "embedding": list(vector),
                }
            )
        return document_id

    async def find_similar(self, query_vector, k):
        ranked = sorted(self.chunks, key=lambda c: (_l2(c["embedding"], query_vector), c["id"]))
        return [
            RetrievedChunk(
                content=c["content"],
                distance=_l2(c["embedding"], query_vector),
                chunk_id=c["id"],
                document_id=c["document_id"],
                chunk_index=c["chunk_index"],
            )
            for c in ranked[:k]
        ]

    async def find_similar_seed(self, query_vector, k):
        ranked = sorted(self.seed, key=lambda s: (_l2(s["embedding"], query_vector), s["id"]))
        return [
            RetrievedChunk(
                content=s["content"],
                distance=_l2(s["embedding"], query_vector),
                chunk_id=s["id"],
            )
            for s in ranked[:k]
        ]

    async def list_documents(self):
        docs = [
            DocumentInfo(
                id=doc_id,
                filename=d["filename"],
                file_size=d["file_size"],
                created_at=d["created_at"],
            )
            for doc_id, d in self.documents.items()
        ]
        return sorted(docs, key=lambda d: d.created_at, reverse=True)

    async def delete_document(self, document_id) -> bool:
        if document_id not in self.documents:
            return False
        del self.documents[document_id]
        self.chunks = [c for c in self.chunks if c["document_id"] != document_id]
        return True

    async def insert_seed_document(self, content, vector) -> None:
        self.seed.append({"id": len(self.seed) + 1, "content": content, "embedding": list(vector)})

    async def log_query(self, question: str, latency_ms: int) -> None:
        self.query_logs.append((question, latency_ms))


class StaticParser:
    """PDF parser stand-in returning fixed text."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.calls = 0

    def parse(self, pdf_bytes: bytes) -> str:
        self.calls += 1
        return self.text


# ============================================
# PDF Fixtures
# ============================================


def build_pdf(text: str) -> bytes:
    """Build a one-page PDF whose text layer is ``text``."""
    escaped = text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")
    stream = f"BT /F1 12 Tf 72 720 Td ({escaped}) Tj ET".encode("latin-1")
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
        b"/Resources << /Font << /F1 5 0 R >> >> /Contents 4 0 R >>",
        b"<< /Length " + str(len(stream)).encode() + b" >>\nstream\n" + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, 1):
        offsets.append(len(out))
        out += f"{number} 0 obj\n".encode() + body + b"\nendobj\n"

    xref_at = len(out)
    out += f"xref\n0 {len(objects) + 1}\n".encode()
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += f"{offset:010d} 00000 n \n".encode()
    out += (
        f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\n"
        f"startxref\n{xref_at}\n%%EOF\n"
    ).encode()
    return bytes(out)


@pytest.fixture
def sample_pdf() -> bytes:
    return build_pdf("Frame adjustments are complimentary within 30 days of purchase.")


# ============================================
# Collaborator Fixtures
# ============================================


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def completion_client() -> FakeCompletionClient:
    return FakeCompletionClient()


@pytest.fixture
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture(autouse=True)
def reset_metrics() -> Generator[None, None, None]:
    """Clear in-process metrics before each test."""
    from optiassist.observability.metrics import reset_metrics

    reset_metrics()
    yield


# ============================================
# Client Fixtures
# ============================================


@pytest.fixture
def settings():
    from optiassist.config import Settings

    return Settings(
        admin_passcode=TEST_ADMIN_KEY,
        openai_api_key="sk-test",
        embedding_dimension=FAKE_DIMENSION,
        max_upload_bytes=1024 * 1024,
    )


@pytest.fixture
def services(settings, vector_store, embedder, completion_client):
    """Pipelines wired to in-memory collaborators."""
    from optiassist.main import Services
    from optiassist.pipelines.answering import AnsweringPipeline, DatabaseQueryLogger
    from optiassist.pipelines.ingestion import IngestionPipeline
    from optiassist.security.pii import build_pii_policy

    return Services(
        settings=settings,
        store=vector_store,
        embedder=embedder,
        completion_client=completion_client,
        ingestion=IngestionPipeline(
            vector_store,
            embedder,
            parser=StaticParser("Contact lens fitting is required before purchase."),
            chunk_size=settings.chunk_size,
            max_file_size=settings.max_upload_bytes,
        ),
        answering=AnsweringPipeline(
            vector_store,
            embedder,
            completion_client,
            pii_policy=build_pii_policy(settings.pii_mode),
            query_logger=DatabaseQueryLogger(vector_store),
            top_k=settings.top_k,
        ),
    )


@pytest.fixture
def client(services, settings) -> Generator[TestClient, None, None]:
    """Synchronous test client with the database-backed services swapped out."""
    from optiassist.config import get_settings
    from optiassist.main import app, get_services

    app.dependency_overrides[get_services] = lambda: services
    app.dependency_overrides[get_settings] = lambda: settings
    # No lifespan: nothing here should touch a real database
    c = TestClient(app, raise_server_exceptions=False)
    yield c
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"x-admin-key": TEST_ADMIN_KEY}


# ============================================
# Marker Configuration
# ============================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "requires_db: test requires database connection")
