"""
Hybrid ranker combining dense cosine similarity and lexical term overlap.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

import numpy as np

from .config import RankingConfig
from .dense import dense_scores
from .index import Chunk, EmbeddingVector
from .lexical import LexicalIndex
from .retriever import ScoredCandidate, ScoreStage

logger = logging.getLogger(__name__)


def pair_with_embeddings(
    chunks: Sequence[Chunk],
    embeddings: Sequence[EmbeddingVector],
) -> List[Tuple[Chunk, EmbeddingVector]]:
    """Match chunks to embeddings by id, keeping chunk order. Chunks without a vector are skipped."""
    by_id: Dict[str, EmbeddingVector] = {e.id: e for e in embeddings}
    pairs: List[Tuple[Chunk, EmbeddingVector]] = []
    missing = 0
    for ch in chunks:
        emb = by_id.get(ch.id)
        if emb is None:
            missing += 1
            logger.warning("No embedding for chunk %s, skipping", ch.id)
            continue
        pairs.append((ch, emb))
    if missing:
        logger.info("Skipped %s of %s chunks without embeddings", missing, len(chunks))
    return pairs


@dataclass
class HybridRanker:
    """Weighted sum of dense and lexical signals over one subject's corpus."""

    config: RankingConfig = field(default_factory=RankingConfig)

    def rank(
        self,
        query: str,
        query_vector: np.ndarray,
        chunks: Sequence[Chunk],
        embeddings: Sequence[EmbeddingVector],
    ) -> List[ScoredCandidate]:
        """
        Score every chunk against the query.

        Combined score is `cosine_weight * cosine + bm25_weight * lexical`. With
        only one signal enabled, or when no chunk shares a token with the query,
        the remaining signal is used on its own.

        Returns:
            Up to `top_k` candidates with score >= `min_score`, sorted by score
            descending (ties keep corpus order).
        """
        cfg = self.config
        pairs = pair_with_embeddings(chunks, embeddings)
        if not pairs:
            return []

        corpus_chunks = [c for c, _ in pairs]
        corpus_embs = [e for _, e in pairs]
        n = len(pairs)

        cosine = np.zeros(n, dtype=np.float64)
        if cfg.use_cosine:
            cosine = dense_scores(query_vector, corpus_embs).astype(np.float64)

        lexical = np.zeros(n, dtype=np.float64)
        if cfg.use_bm25:
            index = LexicalIndex.from_chunks(corpus_chunks, scoring=cfg.lexical_scoring)
            lexical = index.scores(query)
        lexical_matched = bool(lexical.max() > 0)

        if cfg.use_cosine and cfg.use_bm25 and lexical_matched:
            stage = ScoreStage.COMBINED
            final = cfg.cosine_weight * cosine + cfg.bm25_weight * lexical
        elif cfg.use_cosine:
            stage = ScoreStage.COSINE
            final = cosine
        else:
            stage = ScoreStage.LEXICAL
            final = lexical

        candidates: List[ScoredCandidate] = []
        for i, (chunk, emb) in enumerate(pairs):
            score = float(final[i])
            if stage == ScoreStage.LEXICAL and lexical[i] <= 0:
                continue
            if score < cfg.min_score:
                continue
            candidates.append(
                ScoredCandidate(
                    chunk=chunk,
                    embedding=emb,
                    score=score,
                    stage=stage,
                    cosine_score=float(cosine[i]),
                    lexical_score=float(lexical[i]),
                )
            )

        candidates.sort(key=lambda c: c.score, reverse=True)
        candidates = candidates[: cfg.top_k]
        logger.info(
            "Ranked %s chunks for query, %s candidates kept (%s scoring)",
            n,
            len(candidates),
            stage.value,
        )
        return candidates
