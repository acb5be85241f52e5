"""
RAG (Retrieval-Augmented Generation) module.

Provides retrieval components over textbook chunks:
- Page-bounded chunking
- Embedding with a sentence-transformers model or a deterministic fallback
- Hybrid dense + lexical ranking
- MMR diversity selection
- Query intent detection
"""

from .chunker import chunk_pages, detect_section, estimate_token_count
from .config import (
    AnswerConfig,
    ChunkingConfig,
    EmbeddingConfig,
    EmbeddingMode,
    MMRConfig,
    RAGConfig,
    RankingConfig,
)
from .dense import cosine_similarity
from .embedder import (
    Embedder,
    FallbackStrategy,
    PrimaryStrategy,
    fallback_embed,
    validate_embedding,
)
from .hybrid import HybridRanker
from .index import Book, Chunk, EmbeddingVector, dump_chunks, load_chunks
from .lexical import LexicalIndex
from .mmr import diversity_score, mmr_select
from .query_understanding import INTENT_RULES, AnswerIntent, classify_intent
from .retriever import ScoredCandidate, ScoreStage

__all__ = [
    "AnswerConfig",
    "AnswerIntent",
    "Book",
    "Chunk",
    "ChunkingConfig",
    "EmbeddingConfig",
    "EmbeddingMode",
    "EmbeddingVector",
    "Embedder",
    "FallbackStrategy",
    "HybridRanker",
    "INTENT_RULES",
    "LexicalIndex",
    "MMRConfig",
    "PrimaryStrategy",
    "RAGConfig",
    "RankingConfig",
    "ScoreStage",
    "ScoredCandidate",
    "chunk_pages",
    "classify_intent",
    "cosine_similarity",
    "detect_section",
    "diversity_score",
    "dump_chunks",
    "estimate_token_count",
    "fallback_embed",
    "load_chunks",
    "mmr_select",
    "validate_embedding",
]
