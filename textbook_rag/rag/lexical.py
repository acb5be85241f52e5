"""
Lexical signal for hybrid ranking.

The default scorer counts how many distinct query tokens appear in a chunk
(no document-frequency weighting or length normalisation). `bm25` scoring uses
Okapi BM25 over the same tokens. Either way scores are divided by the batch
maximum before they are combined with the dense signal.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Set

import numpy as np
from rank_bm25 import BM25Okapi

from .index import Chunk
from .utils import iter_tokens


@dataclass
class LexicalIndex:
    """Token sets per chunk, plus a BM25 model when requested."""

    chunks: List[Chunk]
    token_sets: List[Set[str]]
    bm25: Optional[BM25Okapi] = None

    @classmethod
    def from_chunks(cls, chunks: Sequence[Chunk], *, scoring: str = "overlap") -> "LexicalIndex":
        """Build the index from chunks."""
        tokenized = [list(iter_tokens(c.text)) for c in chunks]
        bm25 = BM25Okapi(tokenized) if scoring == "bm25" and any(tokenized) else None
        return cls(chunks=list(chunks), token_sets=[set(t) for t in tokenized], bm25=bm25)

    def raw_scores(self, query: str) -> np.ndarray:
        """Unnormalised lexical scores, one per chunk in index order."""
        query_tokens = list(dict.fromkeys(iter_tokens(query)))
        if not query_tokens or not self.chunks:
            return np.zeros(len(self.chunks), dtype=np.float64)
        if self.bm25 is not None:
            return np.asarray(self.bm25.get_scores(query_tokens), dtype=np.float64)
        return np.array(
            [sum(1 for tok in query_tokens if tok in tokens) for tokens in self.token_sets],
            dtype=np.float64,
        )

    def scores(self, query: str) -> np.ndarray:
        """Lexical scores divided by the batch maximum (all zeros if nothing matched)."""
        return normalize_by_max(self.raw_scores(query))


def normalize_by_max(scores: np.ndarray) -> np.ndarray:
    if scores.size == 0:
        return scores
    max_score = float(scores.max())
    if max_score <= 0:
        return np.zeros_like(scores)
    return np.clip(scores, 0.0, None) / max_score
