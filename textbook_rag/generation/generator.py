"""
Answer generator: builds context, calls the LLM, returns answer text.
Cited chunks are read back from the [n] markers in the model output.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Sequence

from textbook_rag.llm.client import CompletionClient, CompletionOptions, TokenUsage
from textbook_rag.rag.retriever import ScoredCandidate

from .citations import cited_indices
from .config import GenerationConfig
from .context_builder import build_context
from .prompts import ANSWER_PROMPT


@dataclass
class GeneratedAnswer:
    """Result of LLM answer synthesis."""

    text: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    cited_chunk_ids: List[str] = field(default_factory=list)


class AnswerGenerator:
    """Generate answers from a query and retrieved chunks using the LLM."""

    def __init__(self, client: CompletionClient, config: Optional[GenerationConfig] = None):
        self.client = client
        self.config = config or GenerationConfig()

    def generate(
        self,
        query: str,
        candidates: Sequence[ScoredCandidate],
        book_titles: Mapping[str, str],
    ) -> GeneratedAnswer:
        """Build context from candidates, call the LLM, return its answer and cited chunks."""
        context = build_context(candidates, book_titles, max_tokens=self.config.context_max_tokens)
        prompt = ANSWER_PROMPT.format(context=context, query=query)
        completion = self.client.complete(
            prompt,
            CompletionOptions(
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
            ),
        )
        text = completion.text or ""
        cited = [candidates[i - 1].chunk.id for i in cited_indices(text, len(candidates))]
        return GeneratedAnswer(text=text, usage=completion.usage, cited_chunk_ids=cited)
