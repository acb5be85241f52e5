"""
Storage contract for books, chunks and embeddings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Protocol

from textbook_rag.rag.index import Book, Chunk, EmbeddingVector


@dataclass
class StoreStats:
    books: int = 0
    chunks: int = 0
    embeddings: int = 0
    subjects: List[str] = field(default_factory=list)


class ChunkStore(Protocol):
    """CRUD-by-subject store. Deleting a book removes its chunks and embeddings."""

    async def add_book(self, book: Book) -> Book:
        ...

    async def update_book(self, book_id: str, **fields) -> Optional[Book]:
        ...

    async def get_book(self, book_id: str) -> Optional[Book]:
        ...

    async def list_books(self, subject: Optional[str] = None) -> List[Book]:
        ...

    async def add_chunks(self, chunks: Iterable[Chunk]) -> int:
        ...

    async def add_embeddings(self, embeddings: Iterable[EmbeddingVector]) -> int:
        ...

    async def list_chunks(self, subject: str) -> List[Chunk]:
        ...

    async def list_embeddings(self, subject: str) -> Dict[str, EmbeddingVector]:
        ...

    async def delete_all_for(self, book_id: str) -> int:
        ...

    async def book_titles(self, subject: str) -> Dict[str, str]:
        ...

    async def list_subjects(self) -> List[str]:
        ...

    async def stats(self) -> StoreStats:
        ...
