"""
Page-bounded word-window chunking for textbook pages.

A chunk never crosses a page boundary. Within a page, words accumulate until
`target_words` is reached; the next window starts with the last `overlap`
words of the previous one. A trailing fragment shorter than `min_chunk_size`
is dropped.
"""

from __future__ import annotations

import logging
import math
import re
from typing import List, Optional, Sequence

from .config import ChunkingConfig
from .index import Chunk

logger = logging.getLogger(__name__)

# Tokens per 10 words.
TOKENS_PER_WORD_X10 = 13
MAX_SECTION_LABEL_CHARS = 80

_SECTION_PATTERNS = [
    re.compile(r"^(chapter|section|unit|part)\s*\d+[\w.]*", re.I),
    re.compile(r"^\d+\.\d+(\.\d+)*\s+\S"),
    re.compile(r"^[IVX]+\.\s+\S"),
    re.compile(r"^[A-Z][A-Z\s]{3,}$"),
]


def estimate_token_count(text_or_word_count: str | int) -> int:
    """Rough token estimate: 1.3 tokens per whitespace word."""
    if isinstance(text_or_word_count, int):
        words = text_or_word_count
    else:
        words = len(text_or_word_count.split())
    return math.ceil(words * TOKENS_PER_WORD_X10 / 10)


def detect_section(page_text: str) -> Optional[str]:
    """Return a heading label if one of the first lines of the page looks like a section start."""
    for line in page_text.splitlines()[:3]:
        line = line.strip()
        if not line:
            continue
        for pat in _SECTION_PATTERNS:
            m = pat.match(line)
            if not m:
                continue
            if len(line) <= MAX_SECTION_LABEL_CHARS:
                return line
            return m.group(0).strip()
    return None


def chunk_pages(
    pages: Sequence[str],
    config: Optional[ChunkingConfig] = None,
    *,
    book_id: str,
    subject: str,
    embed_version: str,
) -> List[Chunk]:
    """
    Split ordered page texts into chunks.

    Args:
        pages: Page texts, first page is page 1.
        config: Chunking settings (validated on construction).
        book_id: Owning book; chunk ids are `{book_id}_chunk_{n}`.
        subject: Subject tag copied onto every chunk.
        embed_version: Embedding format version the chunks will be embedded with.

    Returns:
        Chunks in page order.
    """
    config = config or ChunkingConfig()
    chunks: List[Chunk] = []
    section: Optional[str] = None

    def emit(words: List[str], page_num: int) -> None:
        chunks.append(
            Chunk(
                id=f"{book_id}_chunk_{len(chunks)}",
                book_id=book_id,
                subject=subject,
                page_start=page_num,
                page_end=page_num,
                text=" ".join(words),
                word_count=len(words),
                token_count=estimate_token_count(len(words)),
                embed_version=embed_version,
                section=section,
            )
        )

    for page_num, page_text in enumerate(pages, 1):
        words = page_text.split()
        if not words:
            logger.debug("[chunker] Page %s is empty, skipping", page_num)
            continue

        heading = detect_section(page_text)
        if heading:
            section = heading

        buffer: List[str] = []
        for word in words:
            buffer.append(word)
            if len(buffer) >= config.target_words:
                emit(buffer, page_num)
                buffer = buffer[-config.overlap:] if config.overlap > 0 else []

        if len(buffer) >= config.min_chunk_size:
            emit(buffer, page_num)
        elif buffer:
            logger.debug(
                "[chunker] Final fragment on page %s too small (%s words), discarding",
                page_num,
                len(buffer),
            )

    logger.info("[chunker] Created %s chunks from %s pages for book %s", len(chunks), len(pages), book_id)
    return chunks
