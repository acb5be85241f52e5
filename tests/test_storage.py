"""
Tests for the SQLAlchemy store on in-memory SQLite (aiosqlite), plus the in-memory store.
"""

from __future__ import annotations

import numpy as np
import pytest
from conftest import WORKING_CAPITAL_PAGE, make_chunk, make_vector
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from textbook_rag.db.session import build_sessionmaker, create_all
from textbook_rag.rag import Book
from textbook_rag.service import RetrievalService
from textbook_rag.storage import InMemoryStore, SQLAlchemyStore


@pytest.fixture
async def sql_store():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await create_all(engine)
    store = SQLAlchemyStore(build_sessionmaker(engine), engine=engine)
    yield store
    await store.close()


@pytest.fixture(params=["memory", "sql"])
async def store(request, sql_store):
    if request.param == "memory":
        return InMemoryStore()
    return sql_store


async def _seed(store):
    await store.add_book(Book(id="b1", title="Financial Accounting", subject="finance", pages=2))
    await store.add_book(Book(id="b2", title="Organic Chemistry", subject="chemistry", pages=1))
    chunks = [
        make_chunk("b1_chunk_0", "Working capital is current assets minus current liabilities.", page=1),
        make_chunk("b1_chunk_1", "Depreciation spreads cost over useful life.", page=2, section="Chapter 2"),
        make_chunk("b2_chunk_0", "Alkanes are saturated hydrocarbons.", book_id="b2", subject="chemistry"),
    ]
    await store.add_chunks(chunks)
    await store.add_embeddings(
        [
            make_vector("b1_chunk_0", [1.0, 0.0, 0.0]),
            make_vector("b1_chunk_1", [0.0, 1.0, 0.0]),
            make_vector("b2_chunk_0", [0.0, 0.0, 1.0]),
        ]
    )
    return chunks


@pytest.mark.anyio
async def test_chunks_and_embeddings_by_subject(store):
    chunks = await _seed(store)

    finance = await store.list_chunks("finance")
    assert finance == chunks[:2]
    assert finance[1].section == "Chapter 2"

    vectors = await store.list_embeddings("finance")
    assert set(vectors) == {"b1_chunk_0", "b1_chunk_1"}
    vec = vectors["b1_chunk_1"]
    assert vec.values.dtype == np.float32
    np.testing.assert_allclose(vec.values, [0.0, 1.0, 0.0])
    assert vec.embed_version == "test-model"


@pytest.mark.anyio
async def test_books_titles_and_subjects(store):
    await _seed(store)
    assert [b.id for b in await store.list_books()] == ["b1", "b2"]
    assert [b.id for b in await store.list_books("chemistry")] == ["b2"]
    assert await store.book_titles("finance") == {"b1": "Financial Accounting"}
    assert await store.list_subjects() == ["chemistry", "finance"]


@pytest.mark.anyio
async def test_update_book_status(store):
    await _seed(store)
    updated = await store.update_book("b1", status="error", error_message="bad pdf")
    assert updated.status == "error"
    assert updated.error_message == "bad pdf"
    assert (await store.get_book("b1")).status == "error"
    assert await store.update_book("missing", status="completed") is None


@pytest.mark.anyio
async def test_delete_all_for_book(store):
    await _seed(store)
    assert await store.delete_all_for("b1") == 2
    assert await store.list_chunks("finance") == []
    assert await store.list_embeddings("finance") == {}
    assert await store.get_book("b1") is None
    assert len(await store.list_chunks("chemistry")) == 1

    stats = await store.stats()
    assert (stats.books, stats.chunks, stats.embeddings, stats.subjects) == (1, 1, 1, ["chemistry"])


@pytest.mark.anyio
async def test_embedding_for_unknown_chunk_rejected(sql_store):
    with pytest.raises(KeyError):
        await sql_store.add_embeddings([make_vector("nope", [1.0, 0.0, 0.0])])


@pytest.mark.anyio
async def test_service_round_trip_on_sqlite(sql_store, bow_embedder):
    service = RetrievalService(sql_store, embedder=bow_embedder)
    result = await service.process_textbook("Financial Accounting", "finance", [WORKING_CAPITAL_PAGE])

    assert result.book.status == "completed"
    answer = await service.query("What is working capital?", "finance")
    assert answer.sources[0].book_title == "Financial Accounting"
    assert answer.text.startswith("Working capital is the difference")
