"""
Template-based answer composition from retrieved chunks.

The composer gates candidates on a confidence threshold, picks a template from
the query intent, stitches sentence fragments from the top chunks with inline
source attributions and scores its own confidence. An optional LLM generator
replaces the templates; the gate, confidence and citations stay the same.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from textbook_rag.llm.client import TokenUsage
from textbook_rag.rag.config import AnswerConfig
from textbook_rag.rag.query_understanding import AnswerIntent, classify_intent
from textbook_rag.rag.retriever import ScoredCandidate
from textbook_rag.rag.utils import split_sentences

from .citations import Citation, book_title_for, build_citations
from .generator import AnswerGenerator

logger = logging.getLogger(__name__)

NOTHING_FOUND_MESSAGE = (
    "I couldn't find any relevant information in the uploaded textbooks to answer your question. "
    "Please try rephrasing your question or check if the relevant subject material has been uploaded."
)
LOW_RELEVANCE_MESSAGE = (
    "I found some information but it doesn't seem very relevant to your question. "
    "The best matches have very low relevance scores. "
    "Please try rephrasing your question or ask about a different topic."
)
PIPELINE_ERROR_MESSAGE = (
    "I encountered an error while processing your question. "
    "Please try rephrasing or ask a different question."
)
COMPARISON_NEEDS_TWO_MESSAGE = "I need at least two sources to provide a meaningful comparison."
TRUNCATION_NOTICE = "...\n\n[Answer truncated due to length]"

BEST_EFFORT_SNIPPET_CHARS = 200

_CONTRAST_RE = re.compile(
    r"\b(however|whereas|while|unlike|in contrast|on the other hand|compared|differs?|difference|"
    r"versus|vs\.?|rather than|but|similarly|both)\b",
    re.I,
)
_SEQUENCE_RE = re.compile(
    r"(^\s*(\d+[.)]|[a-z][.)])\s)|\b(first|firstly|second|secondly|third|thirdly|next|then|finally|"
    r"lastly|after|afterwards|before|subsequently|step|stage)\b",
    re.I,
)


@dataclass
class ComposedAnswer:
    """Answer text with its sources and a confidence score in [0, 1]."""

    text: str
    sources: List[Citation] = field(default_factory=list)
    confidence: float = 0.0
    processing_ms: float = 0.0
    intent: Optional[AnswerIntent] = None
    token_usage: Optional[TokenUsage] = None
    cited_chunk_ids: List[str] = field(default_factory=list)


def calculate_confidence(candidates: Sequence[ScoredCandidate]) -> float:
    """0.7 * mean score + 0.3 * max score, clamped to [0, 1]."""
    if not candidates:
        return 0.0
    scores = [c.score for c in candidates]
    confidence = 0.7 * (sum(scores) / len(scores)) + 0.3 * max(scores)
    return min(1.0, max(0.0, confidence))


def truncate_answer(text: str, max_length: int) -> str:
    """Cut text to at most `max_length` characters, ending with the truncation notice."""
    if len(text) <= max_length:
        return text
    keep = max_length - len(TRUNCATION_NOTICE)
    if keep <= 0:
        return text[:max_length]
    return text[:keep].rstrip() + TRUNCATION_NOTICE


def low_confidence_response(candidates: Sequence[ScoredCandidate], config: AnswerConfig) -> str:
    """Text for the case where nothing passes the confidence gate."""
    if not candidates:
        return NOTHING_FOUND_MESSAGE

    top = sorted(candidates, key=lambda c: c.score, reverse=True)[:3]
    if max(c.score for c in top) < config.low_relevance_floor:
        return LOW_RELEVANCE_MESSAGE

    listing = "\n\n".join(
        f"{i}. {c.chunk.text[:BEST_EFFORT_SNIPPET_CHARS]}..." for i, c in enumerate(top, 1)
    )
    return (
        "I found some information but I'm not very confident it directly answers your question. "
        f"Here's what I found that might be related:\n\n{listing}\n\n"
        "Please let me know if this helps or if you'd like me to search for something more specific."
    )


class AnswerComposer:
    """Builds a `ComposedAnswer` from diversified candidates."""

    def __init__(
        self,
        config: Optional[AnswerConfig] = None,
        generator: Optional[AnswerGenerator] = None,
    ):
        self.config = config or AnswerConfig()
        self.generator = generator
        self._templates: Dict[AnswerIntent, Callable[[List[ScoredCandidate], Mapping[str, str]], str]] = {
            AnswerIntent.DEFINITION: self._definition,
            AnswerIntent.EXPLANATION: self._explanation,
            AnswerIntent.COMPARISON: self._comparison,
            AnswerIntent.STEP_BY_STEP: self._step_by_step,
            AnswerIntent.GENERAL: self._explanation,
        }

    def gate(self, candidates: Sequence[ScoredCandidate]) -> List[ScoredCandidate]:
        """Candidates at or above the confidence threshold, best first."""
        kept = [c for c in candidates if c.score >= self.config.confidence_threshold]
        kept.sort(key=lambda c: c.score, reverse=True)
        return kept

    def compose(
        self,
        candidates: Sequence[ScoredCandidate],
        query: str,
        book_titles: Optional[Mapping[str, str]] = None,
    ) -> ComposedAnswer:
        """
        Compose an answer for `query`.

        Args:
            candidates: Diversified, scored candidates.
            query: Original user query.
            book_titles: book id -> title, for attributions and citations.

        Returns:
            ComposedAnswer; when nothing passes the gate, a low-confidence
            response with no sources and confidence 0.
        """
        start = time.perf_counter()
        book_titles = book_titles or {}

        survivors = self.gate(candidates)
        if not survivors:
            logger.info("No candidates above confidence threshold %s", self.config.confidence_threshold)
            return ComposedAnswer(
                text=low_confidence_response(candidates, self.config),
                processing_ms=(time.perf_counter() - start) * 1000,
            )

        survivors = survivors[: self.config.max_sources]
        intent = classify_intent(query)

        text = ""
        usage: Optional[TokenUsage] = None
        cited: List[str] = []
        if self.generator is not None:
            try:
                generated = self.generator.generate(query, survivors, book_titles)
                text, usage, cited = generated.text, generated.usage, generated.cited_chunk_ids
            except Exception as e:
                logger.warning("LLM synthesis failed, using template answer: %s", e)
        if not text:
            text = self._templates[intent](survivors, book_titles)

        return ComposedAnswer(
            text=truncate_answer(text, self.config.max_answer_length),
            sources=build_citations(survivors, book_titles),
            confidence=calculate_confidence(survivors),
            processing_ms=(time.perf_counter() - start) * 1000,
            intent=intent,
            token_usage=usage,
            cited_chunk_ids=cited,
        )

    # --- fragments ---

    def _qualifying(self, text: str) -> List[str]:
        return [s for s in split_sentences(text) if len(s) > self.config.min_fragment_chars]

    @staticmethod
    def _attribution(candidate: ScoredCandidate, book_titles: Mapping[str, str]) -> str:
        return f"({book_title_for(candidate, book_titles)}, {candidate.chunk.page_label})"

    def _lead_fragments(self, candidate: ScoredCandidate, limit: int) -> List[str]:
        frags = self._qualifying(candidate.chunk.text)[:limit]
        return frags or [candidate.chunk.text.strip()]

    # --- templates ---

    def _definition(self, results: List[ScoredCandidate], book_titles: Mapping[str, str]) -> str:
        top = results[0]
        sentences = split_sentences(top.chunk.text)
        first = sentences[0] if sentences else top.chunk.text.strip()
        parts = [f"{first} {self._attribution(top, book_titles)}"]

        related = []
        for c in results[1:3]:
            frags = self._qualifying(c.chunk.text)
            if frags:
                related.append(f"- {frags[0]} {self._attribution(c, book_titles)}")
        if related:
            parts.append("Related:\n" + "\n".join(related))
        return "\n\n".join(parts)

    def _explanation(self, results: List[ScoredCandidate], book_titles: Mapping[str, str]) -> str:
        blocks = [
            f"{' '.join(self._lead_fragments(c, 2))} {self._attribution(c, book_titles)}"
            for c in results[:3]
        ]
        return "\n\n".join(blocks)

    def _comparison(self, results: List[ScoredCandidate], book_titles: Mapping[str, str]) -> str:
        if len(results) < 2:
            return COMPARISON_NEEDS_TWO_MESSAGE
        blocks = []
        for c in results[:2]:
            contrastive = [s for s in split_sentences(c.chunk.text) if _CONTRAST_RE.search(s)]
            body = " ".join(contrastive) if contrastive else c.chunk.text.strip()
            blocks.append(f"{body} {self._attribution(c, book_titles)}")
        return "\n\n".join(blocks)

    def _step_by_step(self, results: List[ScoredCandidate], book_titles: Mapping[str, str]) -> str:
        steps: List[str] = []
        for c in results[:3]:
            attribution = self._attribution(c, book_titles)
            for s in self._qualifying(c.chunk.text):
                if _SEQUENCE_RE.search(s):
                    steps.append(f"{s} {attribution}")
        if not steps:
            for c in results[:3]:
                attribution = self._attribution(c, book_titles)
                steps.extend(f"{s} {attribution}" for s in self._lead_fragments(c, 2))
        return "\n".join(f"{i}. {s}" for i, s in enumerate(steps, 1))


def format_answer_with_citations(answer: ComposedAnswer) -> str:
    """Answer text followed by a numbered source list with relevance percentages."""
    text = answer.text
    if answer.sources:
        lines = [
            f"{i}. {s.book_title}, pages {s.page_start}-{s.page_end} (relevance: {s.relevance * 100:.1f}%)"
            for i, s in enumerate(answer.sources, 1)
        ]
        text += "\n\n**Sources:**\n" + "\n".join(lines)
    return text
