"""
Dict-backed store, used by tests and the fallback-only demo setup.
"""

from __future__ import annotations

import dataclasses
import datetime as dt
import logging
from typing import Dict, Iterable, List, Optional

from textbook_rag.rag.index import Book, Chunk, EmbeddingVector

from .base import StoreStats

logger = logging.getLogger(__name__)


class InMemoryStore:
    """Keeps everything in insertion-ordered dicts. Safe within a single event loop."""

    def __init__(self):
        self._books: Dict[str, Book] = {}
        self._chunks: Dict[str, Chunk] = {}
        self._embeddings: Dict[str, EmbeddingVector] = {}

    async def add_book(self, book: Book) -> Book:
        self._books[book.id] = book
        return book

    async def update_book(self, book_id: str, **fields) -> Optional[Book]:
        book = self._books.get(book_id)
        if book is None:
            return None
        fields.setdefault("updated_at", dt.datetime.now(dt.timezone.utc))
        book = dataclasses.replace(book, **fields)
        self._books[book_id] = book
        return book

    async def get_book(self, book_id: str) -> Optional[Book]:
        return self._books.get(book_id)

    async def list_books(self, subject: Optional[str] = None) -> List[Book]:
        return [b for b in self._books.values() if subject is None or b.subject == subject]

    async def add_chunks(self, chunks: Iterable[Chunk]) -> int:
        n = 0
        for chunk in chunks:
            self._chunks[chunk.id] = chunk
            n += 1
        return n

    async def add_embeddings(self, embeddings: Iterable[EmbeddingVector]) -> int:
        n = 0
        for emb in embeddings:
            self._embeddings[emb.id] = emb
            n += 1
        return n

    async def list_chunks(self, subject: str) -> List[Chunk]:
        return [c for c in self._chunks.values() if c.subject == subject]

    async def list_embeddings(self, subject: str) -> Dict[str, EmbeddingVector]:
        return {
            c.id: self._embeddings[c.id]
            for c in self._chunks.values()
            if c.subject == subject and c.id in self._embeddings
        }

    async def delete_all_for(self, book_id: str) -> int:
        chunk_ids = [cid for cid, c in self._chunks.items() if c.book_id == book_id]
        for cid in chunk_ids:
            del self._chunks[cid]
            self._embeddings.pop(cid, None)
        self._books.pop(book_id, None)
        logger.info("Deleted book %s with %s chunks", book_id, len(chunk_ids))
        return len(chunk_ids)

    async def book_titles(self, subject: str) -> Dict[str, str]:
        return {b.id: b.title for b in self._books.values() if b.subject == subject}

    async def list_subjects(self) -> List[str]:
        return sorted({b.subject for b in self._books.values()})

    async def stats(self) -> StoreStats:
        return StoreStats(
            books=len(self._books),
            chunks=len(self._chunks),
            embeddings=len(self._embeddings),
            subjects=await self.list_subjects(),
        )
