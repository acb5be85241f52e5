"""
Core records for RAG over textbook chunks.
"""

from __future__ import annotations

import dataclasses
import datetime as dt
import json
from pathlib import Path
from typing import Iterable, List, Optional

import numpy as np


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


@dataclasses.dataclass
class Book:
    """An uploaded textbook. Chunks and embeddings are owned through `id`."""

    id: str
    title: str
    subject: str
    pages: int = 0
    status: str = "processing"
    error_message: Optional[str] = None
    created_at: dt.datetime = dataclasses.field(default_factory=_utcnow)
    updated_at: dt.datetime = dataclasses.field(default_factory=_utcnow)


@dataclasses.dataclass(frozen=True)
class Chunk:
    """A bounded text segment from a single textbook page."""

    id: str
    book_id: str
    subject: str
    page_start: int
    page_end: int
    text: str
    word_count: int
    token_count: int
    embed_version: str
    section: Optional[str] = None

    @property
    def page_label(self) -> str:
        if self.page_start == self.page_end:
            return f"p. {self.page_start}"
        return f"pp. {self.page_start}-{self.page_end}"


@dataclasses.dataclass(frozen=True, eq=False)
class EmbeddingVector:
    """Unit-normalised vector for one chunk (or a query); `id` equals the chunk id."""

    id: str
    values: np.ndarray
    embed_version: str
    strategy: str = "primary"

    @property
    def dimension(self) -> int:
        return int(self.values.shape[0])


def load_chunks(path: Path, subject: Optional[str] = None) -> List[Chunk]:
    """Load chunks from a JSONL file. If subject is set, only chunks with that subject are loaded."""
    if not path.exists():
        raise FileNotFoundError(f"chunks file not found at {path}")

    chunks: List[Chunk] = []
    with path.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            obj = json.loads(line)
            if subject and obj.get("subject") != subject:
                continue
            chunks.append(
                Chunk(
                    id=obj["id"],
                    book_id=obj["book_id"],
                    subject=obj.get("subject", ""),
                    page_start=int(obj["page_start"]),
                    page_end=int(obj["page_end"]),
                    text=obj["text"],
                    word_count=int(obj["word_count"]),
                    token_count=int(obj["token_count"]),
                    embed_version=obj["embed_version"],
                    section=obj.get("section"),
                )
            )
    return chunks


def dump_chunks(chunks: Iterable[Chunk], path: Path) -> int:
    """Write chunks as JSONL. Returns the number of records written."""
    path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with path.open("w", encoding="utf-8") as f:
        for ch in chunks:
            f.write(json.dumps(dataclasses.asdict(ch), ensure_ascii=False) + "\n")
            count += 1
    return count
