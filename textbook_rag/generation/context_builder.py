"""
Context builder for LLM answer synthesis.

Formats candidate chunks into numbered blocks [1], [2], ... with book and page
references so the model can cite sources.
"""

from __future__ import annotations

from typing import List, Mapping, Sequence

from textbook_rag.rag.retriever import ScoredCandidate

from .citations import book_title_for


def _approx_tokens(text: str) -> int:
    """Rough token count (~4 chars per token for English)."""
    return max(1, len(text) // 4)


def build_context(
    candidates: Sequence[ScoredCandidate],
    book_titles: Mapping[str, str],
    max_tokens: int = 2000,
) -> str:
    """
    Format candidates into a single context string with citation markers.

    Args:
        candidates: Order preserved; index + 1 = citation number.
        book_titles: book id -> title.
        max_tokens: Approximate token budget; chunks are truncated or dropped to fit.

    Returns:
        Blocks like "[1] Title, p. 4: text" separated by blank lines.
    """
    if not candidates:
        return ""

    parts: List[str] = []
    used = 0

    for i, c in enumerate(candidates, 1):
        chunk = c.chunk
        header = f"{book_title_for(c, book_titles)}, {chunk.page_label}"
        if chunk.section:
            header += f" ({chunk.section})"
        text = chunk.text.strip()
        segment = f"[{i}] {header}: {text}"
        seg_tokens = _approx_tokens(segment)

        if used + seg_tokens > max_tokens and parts:
            remaining = max_tokens - used - 80
            if remaining > 100 and text:
                parts.append(f"[{i}] {header}: {text[: remaining * 4]}...")
            break

        parts.append(segment)
        used += seg_tokens

    return "\n\n".join(parts)
