"""
Storage adapters for books, chunks and embeddings.
"""

from .base import ChunkStore, StoreStats
from .memory import InMemoryStore
from .sqlalchemy_store import SQLAlchemyStore

__all__ = [
    "ChunkStore",
    "InMemoryStore",
    "SQLAlchemyStore",
    "StoreStats",
]
