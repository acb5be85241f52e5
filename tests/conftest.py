"""
Shared fixtures: small corpora, a fallback-only embedder, in-memory stores.
"""

from __future__ import annotations

import zlib
from typing import List

import numpy as np
import pytest

from textbook_rag.rag import (
    Chunk,
    EmbeddingConfig,
    EmbeddingMode,
    EmbeddingVector,
    Embedder,
    PrimaryStrategy,
    ScoredCandidate,
)
from textbook_rag.rag.utils import iter_tokens
from textbook_rag.storage import InMemoryStore

EMBED_VERSION = "test-model"


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def make_chunk(
    id: str,
    text: str,
    *,
    book_id: str = "book1",
    subject: str = "finance",
    page: int = 1,
    section: str | None = None,
) -> Chunk:
    words = len(text.split())
    return Chunk(
        id=id,
        book_id=book_id,
        subject=subject,
        page_start=page,
        page_end=page,
        text=text,
        word_count=words,
        token_count=int(np.ceil(words * 1.3)),
        embed_version=EMBED_VERSION,
        section=section,
    )


def unit(values: List[float]) -> np.ndarray:
    v = np.asarray(values, dtype=np.float32)
    return v / np.linalg.norm(v)


def make_vector(id: str, values: List[float]) -> EmbeddingVector:
    return EmbeddingVector(id=id, values=unit(values), embed_version=EMBED_VERSION)


def make_candidate(chunk: Chunk, score: float, values: List[float] | None = None) -> ScoredCandidate:
    vec = make_vector(chunk.id, values or [1.0, 0.0, 0.0])
    return ScoredCandidate(chunk=chunk, embedding=vec, score=score)


@pytest.fixture
def fallback_embedder() -> Embedder:
    return Embedder(EmbeddingConfig(model_identifier=EMBED_VERSION, mode=EmbeddingMode.FALLBACK))


@pytest.fixture
def memory_store() -> InMemoryStore:
    return InMemoryStore()


class BagOfWordsModel:
    """Fake sentence model: hashed token counts, L2-normalised. Shared words give positive cosine."""

    dimension = 384

    def get_sentence_embedding_dimension(self) -> int:
        return self.dimension

    def encode(self, texts, **kwargs):
        out = np.zeros((len(texts), self.dimension), dtype=np.float32)
        for i, text in enumerate(texts):
            for tok in iter_tokens(text):
                out[i, zlib.crc32(tok.encode("utf-8")) % self.dimension] += 1.0
            norm = np.linalg.norm(out[i])
            if norm > 0:
                out[i] /= norm
        return out


@pytest.fixture
def bow_embedder() -> Embedder:
    config = EmbeddingConfig(model_identifier=EMBED_VERSION)
    return Embedder(config, strategy=PrimaryStrategy(loader=lambda cfg: BagOfWordsModel()))


WORKING_CAPITAL_PAGE = (
    "Working capital is the difference between current assets and current liabilities. "
    "Managers monitor working capital to make sure the business can pay its short-term obligations. "
    "Positive working capital means current assets exceed current liabilities. "
) * 2

DEPRECIATION_PAGE = (
    "Depreciation allocates the cost of a fixed asset over its useful life. "
    "The straight-line method charges the same expense every year. "
) * 3
