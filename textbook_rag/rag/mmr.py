"""
Maximal Marginal Relevance (MMR) for diversity selection.

Selects diverse candidates based on relevance and dissimilarity to already selected ones.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

import numpy as np

from textbook_rag.errors import ConfigurationError, DimensionMismatchError

from .dense import cosine_similarity
from .retriever import ScoredCandidate

logger = logging.getLogger(__name__)


def diversity_score(candidate: ScoredCandidate, selected: Sequence[ScoredCandidate]) -> float:
    """1 - max cosine similarity to any selected candidate (1.0 if nothing is selected)."""
    if not selected:
        return 1.0
    sims = [cosine_similarity(candidate.embedding.values, s.embedding.values) for s in selected]
    return 1.0 - max(sims)


def mmr_select(
    candidates: Sequence[ScoredCandidate],
    query_vector: Optional[np.ndarray],
    lambda_: float = 0.5,
    k: int = 6,
) -> List[ScoredCandidate]:
    """
    Select k diverse candidates using MMR.

    MMR = λ * relevance + (1-λ) * (1 - max_similarity_to_selected)

    Args:
        candidates: Ranked candidates with combined `score`
        query_vector: Query embedding; candidate vectors must share its dimension
        lambda_: Trade-off between relevance and diversity (0=max diversity, 1=max relevance)
        k: Number of candidates to select

    Returns:
        Selected candidates in order of selection
    """
    if not 0.0 <= lambda_ <= 1.0:
        raise ConfigurationError(f"lambda_ must be within [0, 1], got {lambda_}")
    if k < 1:
        raise ConfigurationError("k must be at least 1")

    if query_vector is not None:
        dim = int(query_vector.shape[0])
        for c in candidates:
            if c.embedding.dimension != dim:
                raise DimensionMismatchError(dim, c.embedding.dimension, context=f"chunk {c.chunk_id}")

    if len(candidates) <= k:
        return list(candidates)

    logger.info("[mmr] Selecting %s diverse chunks from %s using MMR (λ=%s)", k, len(candidates), lambda_)

    remaining = list(candidates)
    first_idx = int(np.argmax([c.score for c in remaining]))
    selected = [remaining.pop(first_idx)]

    while len(selected) < k and remaining:
        best_idx = None
        best_score = -float("inf")
        for idx, cand in enumerate(remaining):
            mmr_score = lambda_ * cand.score + (1 - lambda_) * diversity_score(cand, selected)
            if mmr_score > best_score:
                best_score = mmr_score
                best_idx = idx
        if best_idx is None:
            break
        selected.append(remaining.pop(best_idx))

    logger.info("[mmr] Selected %s diverse chunks", len(selected))
    return selected
