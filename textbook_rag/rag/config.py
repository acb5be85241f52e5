"""
Configuration for the retrieval pipeline.

Each stage takes its own immutable config value; `RAGConfig` bundles them for
callers that want one object to pass around.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from textbook_rag.errors import ConfigurationError

DEFAULT_EMBEDDING_MODEL = "sentence-transformers/all-MiniLM-L6-v2"
DEFAULT_EMBEDDING_DIMENSION = 384


class EmbeddingMode(str, Enum):
    """Which embedding strategy an Embedder runs."""

    PRIMARY = "primary"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class ChunkingConfig:
    """Word-window chunking settings."""

    target_words: int = 900
    overlap: int = 150
    min_chunk_size: int = 50
    max_chunk_size: int = 1200

    def __post_init__(self) -> None:
        if self.target_words < 1:
            raise ConfigurationError("target_words must be at least 1")
        if self.overlap < 0:
            raise ConfigurationError("overlap cannot be negative")
        if self.overlap >= self.target_words:
            raise ConfigurationError(
                f"overlap ({self.overlap}) must be smaller than target_words ({self.target_words})"
            )
        if self.min_chunk_size < 1:
            raise ConfigurationError("min_chunk_size must be at least 1")
        if self.target_words > self.max_chunk_size:
            raise ConfigurationError(
                f"target_words ({self.target_words}) exceeds max_chunk_size ({self.max_chunk_size})"
            )


@dataclass(frozen=True)
class EmbeddingConfig:
    """Embedding model settings. `model_identifier` doubles as the format version tag."""

    model_identifier: str = DEFAULT_EMBEDDING_MODEL
    pooling: str = "mean"
    normalize: bool = True
    batch_size: int = 8
    dimension: int = DEFAULT_EMBEDDING_DIMENSION
    mode: EmbeddingMode = EmbeddingMode.PRIMARY

    def __post_init__(self) -> None:
        if self.pooling not in ("mean", "cls"):
            raise ConfigurationError(f"Unsupported pooling strategy: {self.pooling!r}")
        if self.batch_size < 1:
            raise ConfigurationError("batch_size must be at least 1")
        if self.dimension < 1:
            raise ConfigurationError("dimension must be at least 1")
        if not isinstance(self.mode, EmbeddingMode):
            object.__setattr__(self, "mode", EmbeddingMode(self.mode))

    @property
    def embed_version(self) -> str:
        return self.model_identifier


@dataclass(frozen=True)
class RankingConfig:
    """Hybrid ranking settings. Weights are independent and need not sum to 1."""

    use_cosine: bool = True
    use_bm25: bool = True
    cosine_weight: float = 0.7
    bm25_weight: float = 0.3
    top_k: int = 50
    min_score: float = 0.1
    # "overlap" counts shared query tokens; "bm25" uses Okapi BM25 term weighting.
    lexical_scoring: str = "overlap"

    def __post_init__(self) -> None:
        if not (self.use_cosine or self.use_bm25):
            raise ConfigurationError("At least one of use_cosine / use_bm25 must be enabled")
        if self.cosine_weight < 0 or self.bm25_weight < 0:
            raise ConfigurationError("Ranking weights cannot be negative")
        if self.top_k < 1:
            raise ConfigurationError("top_k must be at least 1")
        if self.lexical_scoring not in ("overlap", "bm25"):
            raise ConfigurationError(f"Unknown lexical scoring: {self.lexical_scoring!r}")


@dataclass(frozen=True)
class MMRConfig:
    """Maximal Marginal Relevance settings."""

    lambda_: float = 0.5
    k: int = 6

    def __post_init__(self) -> None:
        if not 0.0 <= self.lambda_ <= 1.0:
            raise ConfigurationError(f"lambda_ must be within [0, 1], got {self.lambda_}")
        if self.k < 1:
            raise ConfigurationError("k must be at least 1")


@dataclass(frozen=True)
class AnswerConfig:
    """Answer composition settings."""

    max_answer_length: int = 2000
    confidence_threshold: float = 0.3
    max_sources: int = 6
    low_relevance_floor: float = 0.1
    min_fragment_chars: int = 20

    def __post_init__(self) -> None:
        if self.max_answer_length < 1:
            raise ConfigurationError("max_answer_length must be at least 1")
        if self.max_sources < 1:
            raise ConfigurationError("max_sources must be at least 1")


@dataclass(frozen=True)
class RAGConfig:
    """All stage configs for one pipeline."""

    chunking: ChunkingConfig = field(default_factory=ChunkingConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    ranking: RankingConfig = field(default_factory=RankingConfig)
    mmr: MMRConfig = field(default_factory=MMRConfig)
    answer: AnswerConfig = field(default_factory=AnswerConfig)
