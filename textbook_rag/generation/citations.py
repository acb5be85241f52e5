"""
Source citations for composed answers.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Mapping, Sequence

from textbook_rag.rag.retriever import ScoredCandidate

UNKNOWN_BOOK_TITLE = "Unknown Book"

_MARKER_RE = re.compile(r"\[(\d+)\]")


@dataclass
class Citation:
    """One source backing an answer."""

    chunk_id: str
    book_id: str
    book_title: str
    page_start: int
    page_end: int
    relevance: float

    @property
    def page_label(self) -> str:
        if self.page_start == self.page_end:
            return f"p. {self.page_start}"
        return f"pp. {self.page_start}-{self.page_end}"


def book_title_for(candidate: ScoredCandidate, book_titles: Mapping[str, str]) -> str:
    return book_titles.get(candidate.chunk.book_id) or UNKNOWN_BOOK_TITLE


def build_citations(
    candidates: Sequence[ScoredCandidate],
    book_titles: Mapping[str, str],
) -> List[Citation]:
    """One citation per candidate, in candidate order."""
    return [
        Citation(
            chunk_id=c.chunk.id,
            book_id=c.chunk.book_id,
            book_title=book_title_for(c, book_titles),
            page_start=c.chunk.page_start,
            page_end=c.chunk.page_end,
            relevance=c.score,
        )
        for c in candidates
    ]


def cited_indices(answer: str, n_sources: int) -> List[int]:
    """
    Parse [n] references in generated text.
    Returns the distinct 1-based indices that point at one of `n_sources` blocks, sorted.
    """
    indices = set()
    for m in _MARKER_RE.finditer(answer):
        n = int(m.group(1))
        if 1 <= n <= n_sources:
            indices.add(n)
    return sorted(indices)
