"""
Scored retrieval candidates passed between ranking, diversification and composition.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .index import Chunk, EmbeddingVector


class ScoreStage(str, Enum):
    """Which signal `ScoredCandidate.score` currently holds."""

    COSINE = "cosine"
    LEXICAL = "lexical"
    COMBINED = "combined"


@dataclass
class ScoredCandidate:
    """A chunk, its embedding and its relevance score for one query."""

    chunk: Chunk
    embedding: EmbeddingVector
    score: float
    stage: ScoreStage = ScoreStage.COMBINED
    cosine_score: float = 0.0
    lexical_score: float = 0.0

    @property
    def chunk_id(self) -> str:
        return self.chunk.id
