"""
Embedding generation for chunks and queries.

An `Embedder` runs exactly one strategy, chosen when it is constructed:

- `PrimaryStrategy` wraps a sentence-transformers model. The model is loaded
  lazily in a worker thread the first time it is needed; concurrent first
  callers share one in-flight load. If loading or encoding fails, the affected
  texts are embedded with the deterministic fallback instead, so callers only
  ever receive vectors.
- `FallbackStrategy` computes a hash-based vector from the characters of the
  text. It has no dependencies and cannot fail.

Both strategies produce vectors of `EmbeddingConfig.dimension` components so
corpora embedded with either remain comparable.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import numpy as np

from textbook_rag.errors import EmptyTextError

from .config import DEFAULT_EMBEDDING_DIMENSION, EmbeddingConfig, EmbeddingMode
from .index import Chunk, EmbeddingVector

logger = logging.getLogger(__name__)

FALLBACK_STRATEGY_NAME = "fallback"
PRIMARY_STRATEGY_NAME = "primary"


def load_sentence_transformer(config: EmbeddingConfig) -> Any:
    """Load a sentence-transformers model with the configured pooling."""
    from sentence_transformers import SentenceTransformer, models

    if config.pooling == "mean":
        return SentenceTransformer(config.model_identifier)
    word_model = models.Transformer(config.model_identifier)
    pooling = models.Pooling(
        word_model.get_word_embedding_dimension(),
        pooling_mode=config.pooling,
    )
    return SentenceTransformer(modules=[word_model, pooling])


ModelLoader = Callable[[EmbeddingConfig], Any]


@dataclass(frozen=True)
class PrimaryStrategy:
    """Embed with a feature-extraction model produced by `loader`."""

    loader: ModelLoader = load_sentence_transformer


@dataclass(frozen=True)
class FallbackStrategy:
    """Embed with the deterministic character hash."""


EmbeddingStrategy = Union[PrimaryStrategy, FallbackStrategy]


def fallback_embed(text: str, dimension: int = DEFAULT_EMBEDDING_DIMENSION) -> np.ndarray:
    """
    Deterministic hash embedding.

    For dimension i, every token longer than 2 characters contributes
    `ord(token[i % len(token)]) * (i + 1)`; the sum is folded into [-1, 1)
    and the vector is L2-normalised.
    """
    tokens = [w for w in text.lower().strip().split() if len(w) > 2]
    positions = np.arange(dimension, dtype=np.int64)
    sums = np.zeros(dimension, dtype=np.int64)
    for tok in tokens:
        codes = np.fromiter((ord(c) for c in tok), dtype=np.int64, count=len(tok))
        sums += codes[positions % len(tok)]
    hashes = sums * (positions + 1)
    values = ((hashes % 2000) - 1000) / 1000.0
    norm = np.linalg.norm(values)
    if norm > 0:
        values = values / norm
    return values.astype(np.float32)


def validate_embedding(values: Optional[np.ndarray], expected_dimension: int = DEFAULT_EMBEDDING_DIMENSION) -> bool:
    """True if the vector is non-empty, has the expected size and only finite components."""
    if values is None or len(values) == 0:
        return False
    if len(values) != expected_dimension:
        logger.warning("Expected embedding dimension %s, got %s", expected_dimension, len(values))
        return False
    return bool(np.all(np.isfinite(values)))


def _check_text(text: str) -> str:
    if text is None or not text.strip():
        raise EmptyTextError("Text cannot be empty")
    return text.strip()


class Embedder:
    """
    Owned embedding service. Construct once and share by reference; the loaded
    model is read-only after initialisation and safe for concurrent queries.
    """

    def __init__(
        self,
        config: Optional[EmbeddingConfig] = None,
        strategy: Optional[EmbeddingStrategy] = None,
    ):
        self.config = config or EmbeddingConfig()
        if strategy is None:
            strategy = PrimaryStrategy() if self.config.mode == EmbeddingMode.PRIMARY else FallbackStrategy()
        self.strategy = strategy
        self._model: Any = None
        self._load_task: Optional[asyncio.Task] = None
        self._load_failed = False

    @property
    def mode(self) -> EmbeddingMode:
        if isinstance(self.strategy, PrimaryStrategy):
            return EmbeddingMode.PRIMARY
        return EmbeddingMode.FALLBACK

    @property
    def embed_version(self) -> str:
        return self.config.embed_version

    async def embed(self, text: str, *, id: str = "query") -> EmbeddingVector:
        """Embed a single text."""
        vectors = await self.embed_many([text], ids=[id])
        return vectors[0]

    async def embed_many(
        self,
        texts: Sequence[str],
        ids: Optional[Sequence[str]] = None,
    ) -> List[EmbeddingVector]:
        """
        Embed texts in batches of `batch_size`, preserving input order.

        Args:
            texts: Non-empty texts.
            ids: Vector ids, one per text (defaults to the text position).

        Returns:
            One vector per text, same order as `texts`.
        """
        cleaned = [_check_text(t) for t in texts]
        if ids is None:
            ids = [str(i) for i in range(len(cleaned))]
        if len(ids) != len(cleaned):
            raise ValueError(f"Got {len(ids)} ids for {len(cleaned)} texts")
        if not cleaned:
            return []

        start = time.perf_counter()
        results: List[EmbeddingVector] = []
        batch_size = self.config.batch_size
        for i in range(0, len(cleaned), batch_size):
            batch_texts = cleaned[i : i + batch_size]
            batch_ids = ids[i : i + batch_size]
            values, strategy_name = await self._embed_batch(batch_texts)
            for vid, vec in zip(batch_ids, values):
                results.append(
                    EmbeddingVector(
                        id=vid,
                        values=vec,
                        embed_version=self.embed_version,
                        strategy=strategy_name,
                    )
                )

        logger.debug(
            "Generated %s embeddings in %.1f ms (%s mode)",
            len(results),
            (time.perf_counter() - start) * 1000,
            self.mode.value,
        )
        return results

    async def embed_chunks(self, chunks: Sequence[Chunk]) -> Dict[str, EmbeddingVector]:
        """Embed chunk texts; returns a mapping chunk id -> vector."""
        vectors = await self.embed_many([c.text for c in chunks], ids=[c.id for c in chunks])
        logger.info("Embedded %s chunks (%s mode)", len(vectors), self.mode.value)
        return {v.id: v for v in vectors}

    async def preload(self) -> None:
        """Load the model ahead of the first request. Failures are logged, not raised."""
        if not isinstance(self.strategy, PrimaryStrategy):
            return
        try:
            await self._get_model()
        except Exception as e:
            logger.error("Failed to preload embedding model: %s", e)

    def model_info(self) -> Dict[str, Any]:
        return {
            "name": self.config.model_identifier,
            "dimension": self.config.dimension,
            "pooling": self.config.pooling,
            "normalize": self.config.normalize,
            "mode": self.mode.value,
            "loaded": self._model is not None,
        }

    async def _embed_batch(self, texts: List[str]) -> tuple[List[np.ndarray], str]:
        if isinstance(self.strategy, FallbackStrategy):
            return self._fallback_batch(texts), FALLBACK_STRATEGY_NAME
        try:
            model = await self._get_model()
            matrix = await asyncio.to_thread(self._encode, model, texts)
        except Exception as e:
            logger.warning("Primary embedding failed, using fallback for %s texts: %s", len(texts), e)
            return self._fallback_batch(texts), FALLBACK_STRATEGY_NAME
        return [row for row in matrix], PRIMARY_STRATEGY_NAME

    def _fallback_batch(self, texts: List[str]) -> List[np.ndarray]:
        return [fallback_embed(t, self.config.dimension) for t in texts]

    def _encode(self, model: Any, texts: List[str]) -> np.ndarray:
        matrix = model.encode(
            texts,
            batch_size=len(texts),
            convert_to_numpy=True,
            show_progress_bar=False,
            normalize_embeddings=self.config.normalize,
        )
        matrix = np.asarray(matrix, dtype=np.float32)
        if matrix.ndim != 2 or matrix.shape != (len(texts), self.config.dimension):
            raise ValueError(
                f"Model returned shape {matrix.shape}, expected ({len(texts)}, {self.config.dimension})"
            )
        return matrix

    async def _get_model(self) -> Any:
        if self._model is not None:
            return self._model
        if self._load_failed:
            raise RuntimeError(f"Embedding model {self.config.model_identifier} is unavailable")

        if self._load_task is None:
            self._load_task = asyncio.ensure_future(asyncio.to_thread(self._load_model))
        task = self._load_task
        try:
            model = await asyncio.shield(task)
        except Exception:
            self._load_failed = True
            raise
        finally:
            if self._load_task is task and task.done():
                self._load_task = None
        self._model = model
        return model

    def _load_model(self) -> Any:
        if not isinstance(self.strategy, PrimaryStrategy):
            raise RuntimeError(f"{type(self.strategy).__name__} does not load a model")
        logger.info("Loading embedding model: %s", self.config.model_identifier)
        model = self.strategy.loader(self.config)
        get_dim = getattr(model, "get_sentence_embedding_dimension", None)
        dimension = get_dim() if callable(get_dim) else None
        if dimension is not None and dimension != self.config.dimension:
            raise ValueError(
                f"Model {self.config.model_identifier} has dimension {dimension}, "
                f"expected {self.config.dimension}"
            )
        logger.info("Embedding model loaded, dimension: %s", dimension or self.config.dimension)
        return model
