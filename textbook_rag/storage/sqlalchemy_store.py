"""
Async SQLAlchemy store. Vectors are persisted as float32 bytes.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

import numpy as np
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from textbook_rag.db.models import BookRecord, ChunkRecord, EmbeddingRecord
from textbook_rag.db.session import build_engine, build_sessionmaker, create_all
from textbook_rag.rag.index import Book, Chunk, EmbeddingVector

from .base import StoreStats

logger = logging.getLogger(__name__)


def _to_book(row: BookRecord) -> Book:
    return Book(
        id=row.id,
        title=row.title,
        subject=row.subject,
        pages=row.pages,
        status=row.status,
        error_message=row.error_message,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _to_chunk(row: ChunkRecord) -> Chunk:
    return Chunk(
        id=row.id,
        book_id=row.book_id,
        subject=row.subject,
        page_start=row.page_start,
        page_end=row.page_end,
        section=row.section,
        text=row.text,
        word_count=row.word_count,
        token_count=row.token_count,
        embed_version=row.embed_version,
    )


def _to_embedding(row: EmbeddingRecord) -> EmbeddingVector:
    values = np.frombuffer(row.vector, dtype=np.float32).copy()
    return EmbeddingVector(
        id=row.chunk_id,
        values=values,
        embed_version=row.embed_version,
        strategy=row.strategy,
    )


class SQLAlchemyStore:
    """ChunkStore backed by an async SQLAlchemy engine (SQLite via aiosqlite, PostgreSQL via asyncpg)."""

    def __init__(
        self,
        sessionmaker: async_sessionmaker[AsyncSession],
        engine: Optional[AsyncEngine] = None,
    ):
        self._sessionmaker = sessionmaker
        self._engine = engine

    @classmethod
    def from_url(cls, url: Optional[str] = None) -> "SQLAlchemyStore":
        engine = build_engine(url)
        return cls(build_sessionmaker(engine), engine=engine)

    async def create_all(self) -> None:
        if self._engine is None:
            raise RuntimeError("store was built without an engine")
        await create_all(self._engine)

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()

    # --- books ---

    async def add_book(self, book: Book) -> Book:
        async with self._sessionmaker() as db:
            db.add(
                BookRecord(
                    id=book.id,
                    title=book.title,
                    subject=book.subject,
                    pages=book.pages,
                    status=book.status,
                    error_message=book.error_message,
                    created_at=book.created_at,
                    updated_at=book.updated_at,
                )
            )
            await db.commit()
        return book

    async def update_book(self, book_id: str, **fields) -> Optional[Book]:
        async with self._sessionmaker() as db:
            row = await db.get(BookRecord, book_id)
            if row is None:
                return None
            for name, value in fields.items():
                setattr(row, name, value)
            await db.commit()
            await db.refresh(row)
            return _to_book(row)

    async def get_book(self, book_id: str) -> Optional[Book]:
        async with self._sessionmaker() as db:
            row = await db.get(BookRecord, book_id)
            return _to_book(row) if row is not None else None

    async def list_books(self, subject: Optional[str] = None) -> List[Book]:
        query = select(BookRecord).order_by(BookRecord.created_at, BookRecord.id)
        if subject is not None:
            query = query.where(BookRecord.subject == subject)
        async with self._sessionmaker() as db:
            result = await db.execute(query)
            return [_to_book(row) for row in result.scalars().all()]

    # --- chunks and embeddings ---

    async def add_chunks(self, chunks: Iterable[Chunk]) -> int:
        rows = [
            ChunkRecord(
                id=c.id,
                book_id=c.book_id,
                subject=c.subject,
                page_start=c.page_start,
                page_end=c.page_end,
                section=c.section,
                text=c.text,
                word_count=c.word_count,
                token_count=c.token_count,
                embed_version=c.embed_version,
            )
            for c in chunks
        ]
        async with self._sessionmaker() as db:
            db.add_all(rows)
            await db.commit()
        return len(rows)

    async def add_embeddings(self, embeddings: Iterable[EmbeddingVector]) -> int:
        embeddings = list(embeddings)
        if not embeddings:
            return 0
        async with self._sessionmaker() as db:
            result = await db.execute(
                select(ChunkRecord.id, ChunkRecord.book_id, ChunkRecord.subject).where(
                    ChunkRecord.id.in_([e.id for e in embeddings])
                )
            )
            owners = {cid: (book_id, subject) for cid, book_id, subject in result.all()}
            rows = []
            for e in embeddings:
                if e.id not in owners:
                    raise KeyError(f"no chunk stored for embedding {e.id}")
                book_id, subject = owners[e.id]
                rows.append(
                    EmbeddingRecord(
                        chunk_id=e.id,
                        book_id=book_id,
                        subject=subject,
                        embed_version=e.embed_version,
                        strategy=e.strategy,
                        dimension=e.dimension,
                        vector=np.asarray(e.values, dtype=np.float32).tobytes(),
                    )
                )
            db.add_all(rows)
            await db.commit()
        return len(rows)

    async def list_chunks(self, subject: str) -> List[Chunk]:
        async with self._sessionmaker() as db:
            result = await db.execute(
                select(ChunkRecord).where(ChunkRecord.subject == subject).order_by(ChunkRecord.pk)
            )
            return [_to_chunk(row) for row in result.scalars().all()]

    async def list_embeddings(self, subject: str) -> Dict[str, EmbeddingVector]:
        async with self._sessionmaker() as db:
            result = await db.execute(select(EmbeddingRecord).where(EmbeddingRecord.subject == subject))
            return {row.chunk_id: _to_embedding(row) for row in result.scalars().all()}

    async def delete_all_for(self, book_id: str) -> int:
        async with self._sessionmaker() as db:
            await db.execute(delete(EmbeddingRecord).where(EmbeddingRecord.book_id == book_id))
            result = await db.execute(delete(ChunkRecord).where(ChunkRecord.book_id == book_id))
            await db.execute(delete(BookRecord).where(BookRecord.id == book_id))
            await db.commit()
        n_chunks = result.rowcount or 0
        logger.info("Deleted book %s with %s chunks", book_id, n_chunks)
        return n_chunks

    # --- lookups ---

    async def book_titles(self, subject: str) -> Dict[str, str]:
        async with self._sessionmaker() as db:
            result = await db.execute(
                select(BookRecord.id, BookRecord.title).where(BookRecord.subject == subject)
            )
            return {book_id: title for book_id, title in result.all()}

    async def list_subjects(self) -> List[str]:
        async with self._sessionmaker() as db:
            result = await db.execute(
                select(BookRecord.subject).distinct().order_by(BookRecord.subject)
            )
            return list(result.scalars().all())

    async def stats(self) -> StoreStats:
        async with self._sessionmaker() as db:
            books = await db.scalar(select(func.count()).select_from(BookRecord))
            chunks = await db.scalar(select(func.count()).select_from(ChunkRecord))
            embeddings = await db.scalar(select(func.count()).select_from(EmbeddingRecord))
        return StoreStats(
            books=books or 0,
            chunks=chunks or 0,
            embeddings=embeddings or 0,
            subjects=await self.list_subjects(),
        )
