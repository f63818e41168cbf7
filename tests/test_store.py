"""
Unit tests for the pgvector store: SQL construction, dimension guard and
error translation, with the database session mocked out.
"""

import uuid
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from optiassist.db.models import Document
from optiassist.errors import DuplicateDocumentError, StorageError
from optiassist.rag.store import (
    INSERT_CHUNK_SQL,
    PgVectorStore,
    similar_chunks_sql,
    similar_seed_sql,
)

DIM = 4


class _Transaction:
    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    """Just enough of AsyncSession for the store."""

    def __init__(self, result=None, execute_error=None, flush_error=None):
        self.execute = AsyncMock(return_value=result, side_effect=execute_error)
        self.flush = AsyncMock(side_effect=flush_error)
        self.add = Mock()

    def begin(self):
        return _Transaction()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


def _store(session: FakeSession, metric: str = "l2") -> tuple[PgVectorStore, Mock]:
    factory = Mock(return_value=session)
    return PgVectorStore(factory, dimension=DIM, metric=metric), factory


class TestSimilaritySQL:
    @pytest.mark.unit
    def test_l2_ordering(self):
        sql = str(similar_chunks_sql("l2"))
        assert "FROM document_chunks" in sql
        assert "ORDER BY embedding <-> CAST(:query_vector AS vector), id" in sql
        assert "LIMIT :k" in sql

    @pytest.mark.unit
    def test_cosine_ordering(self):
        assert "embedding <=> CAST(:query_vector AS vector)" in str(similar_chunks_sql("cosine"))

    @pytest.mark.unit
    def test_seed_table(self):
        sql = str(similar_seed_sql())
        assert "FROM seed_documents" in sql
        assert "<->" in sql

    @pytest.mark.unit
    def test_unknown_metric_rejected(self):
        with pytest.raises(ValueError):
            PgVectorStore(Mock(), dimension=DIM, metric="manhattan")


class TestFindSimilar:
    @pytest.mark.unit
    async def test_returns_rows_in_database_order(self):
        doc_id = uuid.uuid4()
        rows = [
            SimpleNamespace(id=uuid.uuid4(), document_id=doc_id, chunk_index=2, content="near", distance=0.1),
            SimpleNamespace(id=uuid.uuid4(), document_id=doc_id, chunk_index=0, content="far", distance=0.9),
        ]
        result = Mock()
        result.fetchall.return_value = rows
        session = FakeSession(result=result)
        store, _ = _store(session)

        found = await store.find_similar([0.5, 0.0, 0.0, 1.0], k=3)

        assert [c.content for c in found] == ["near", "far"]
        assert found[0].chunk_index == 2
        params = session.execute.call_args.args[1]
        assert params == {"query_vector": "[0.5,0.0,0.0,1.0]", "k": 3}

    @pytest.mark.unit
    async def test_wrong_dimension_refused_before_query(self):
        store, factory = _store(FakeSession())

        with pytest.raises(StorageError):
            await store.find_similar([0.1, 0.2], k=5)
        factory.assert_not_called()

    @pytest.mark.unit
    async def test_database_error_wrapped(self):
        session = FakeSession(execute_error=OperationalError("SELECT", {}, Exception("down")))
        store, _ = _store(session)

        with pytest.raises(StorageError):
            await store.find_similar([0.0] * DIM, k=5)


class TestWrites:
    @pytest.mark.unit
    async def test_document_and_chunks_in_one_transaction(self):
        session = FakeSession()
        store, factory = _store(session)

        document_id = await store.add_document_with_chunks(
            "guide.pdf",
            "a" * 64,
            2048,
            [("first", [1.0, 0.0, 0.0, 0.0]), ("second", [0.0, 1.0, 0.0, 0.0])],
        )

        factory.assert_called_once()
        document = session.add.call_args.args[0]
        assert isinstance(document, Document)
        assert document.id == document_id
        assert document.file_size == 2048

        sql, rows = session.execute.call_args.args
        assert sql is INSERT_CHUNK_SQL
        assert [r["chunk_index"] for r in rows] == [0, 1]
        assert [r["content"] for r in rows] == ["first", "second"]
        assert rows[0]["embedding"] == "[1.0,0.0,0.0,0.0]"
        assert all(r["document_id"] == document_id for r in rows)

    @pytest.mark.unit
    async def test_unique_hash_violation_is_duplicate(self):
        error = IntegrityError(
            "INSERT INTO documents",
            {},
            Exception('duplicate key value violates unique constraint "documents_file_hash_key"'),
        )
        store, _ = _store(FakeSession(flush_error=error))

        with pytest.raises(DuplicateDocumentError):
            await store.add_document_with_chunks("guide.pdf", "a" * 64, 1, [])

    @pytest.mark.unit
    async def test_bad_chunk_vector_refused_before_write(self):
        store, factory = _store(FakeSession())

        with pytest.raises(StorageError):
            await store.add_document_with_chunks("g.pdf", "b" * 64, 1, [("x", [1.0])])
        factory.assert_not_called()

    @pytest.mark.unit
    async def test_insert_document_has_no_chunks(self):
        session = FakeSession()
        store, _ = _store(session)

        await store.insert_document("empty.pdf", "c" * 64, 10)

        session.add.assert_called_once()
        session.execute.assert_not_called()

    @pytest.mark.unit
    async def test_insert_chunk(self):
        session = FakeSession()
        store, factory = _store(session)
        document_id = uuid.uuid4()

        await store.insert_chunk(
            document_id, 3, "Frames carry a one-year warranty.", [0.5, 0, 0, 1]
        )

        factory.assert_called_once()
        sql, params = session.execute.call_args.args
        assert sql is INSERT_CHUNK_SQL
        assert "CAST(:embedding AS vector)" in str(sql)
        assert isinstance(params["id"], uuid.UUID)
        assert params["document_id"] == document_id
        assert params["chunk_index"] == 3
        assert params["content"] == "Frames carry a one-year warranty."
        assert params["embedding"] == "[0.5,0.0,0.0,1.0]"

    @pytest.mark.unit
    async def test_insert_chunk_wrong_dimension(self):
        store, factory = _store(FakeSession())

        with pytest.raises(StorageError):
            await store.insert_chunk(uuid.uuid4(), 0, "x", [1.0, 2.0])
        factory.assert_not_called()

    @pytest.mark.unit
    async def test_insert_chunk_database_error(self):
        error = OperationalError("INSERT INTO document_chunks", {}, Exception("connection reset"))
        store, _ = _store(FakeSession(execute_error=error))

        with pytest.raises(StorageError):
            await store.insert_chunk(uuid.uuid4(), 0, "x", [0.0] * DIM)

    @pytest.mark.unit
    @pytest.mark.parametrize("rowcount,expected", [(1, True), (0, False)])
    async def test_delete_reports_whether_found(self, rowcount, expected):
        store, _ = _store(FakeSession(result=SimpleNamespace(rowcount=rowcount)))

        assert await store.delete_document(uuid.uuid4()) is expected

    @pytest.mark.unit
    async def test_log_query_adds_row(self):
        session = FakeSession()
        store, _ = _store(session)

        await store.log_query("What is OHIP?", 42)

        row = session.add.call_args.args[0]
        assert (row.question, row.latency_ms) == ("What is OHIP?", 42)


class TestReads:
    @pytest.mark.unit
    async def test_exists_by_hash(self):
        result = Mock()
        result.scalar.return_value = True
        store, _ = _store(FakeSession(result=result))

        assert await store.exists_by_hash("d" * 64) is True

    @pytest.mark.unit
    async def test_list_documents(self):
        created = datetime(2026, 3, 1, tzinfo=timezone.utc)
        doc = Document(id=uuid.uuid4(), filename="a.pdf", file_hash="e" * 64, file_size=7, created_at=created)
        result = Mock()
        result.scalars.return_value.all.return_value = [doc]
        store, _ = _store(FakeSession(result=result))

        docs = await store.list_documents()

        assert [(d.id, d.filename, d.file_size, d.created_at) for d in docs] == [
            (doc.id, "a.pdf", 7, created)
        ]
