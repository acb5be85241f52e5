"""
Dense similarity over unit-normalised vectors (exact linear scan).
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from textbook_rag.errors import DimensionMismatchError

from .index import EmbeddingVector


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Dot product of two vectors; equals cosine similarity because both are normalised."""
    if a.shape[0] != b.shape[0]:
        raise DimensionMismatchError(a.shape[0], b.shape[0])
    return float(np.dot(a, b))


def stack_embeddings(embeddings: Sequence[EmbeddingVector], dimension: int) -> np.ndarray:
    """Build an (n, dim) matrix, rejecting any vector whose dimension differs."""
    if not embeddings:
        return np.zeros((0, dimension), dtype=np.float32)
    for emb in embeddings:
        if emb.dimension != dimension:
            raise DimensionMismatchError(dimension, emb.dimension, context=f"chunk {emb.id}")
    return np.vstack([emb.values for emb in embeddings]).astype(np.float32, copy=False)


def dense_scores(query_vector: np.ndarray, embeddings: Sequence[EmbeddingVector]) -> np.ndarray:
    """Cosine score of the query against every embedding, in input order."""
    matrix = stack_embeddings(embeddings, int(query_vector.shape[0]))
    return matrix @ query_vector.astype(np.float32, copy=False)
