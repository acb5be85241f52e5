"""
Answer composition for the retrieval pipeline.

- Confidence gating and intent-specific answer templates
- Source citations with book and page references
- Optional LLM synthesis over numbered context blocks ([1], [2], ...)
"""

from .citations import Citation, build_citations, cited_indices
from .composer import (
    LOW_RELEVANCE_MESSAGE,
    NOTHING_FOUND_MESSAGE,
    PIPELINE_ERROR_MESSAGE,
    TRUNCATION_NOTICE,
    AnswerComposer,
    ComposedAnswer,
    calculate_confidence,
    format_answer_with_citations,
    truncate_answer,
)
from .config import GenerationConfig
from .context_builder import build_context
from .generator import AnswerGenerator, GeneratedAnswer
from .prompts import ANSWER_PROMPT

__all__ = [
    "ANSWER_PROMPT",
    "AnswerComposer",
    "AnswerGenerator",
    "build_citations",
    "build_context",
    "calculate_confidence",
    "Citation",
    "cited_indices",
    "ComposedAnswer",
    "format_answer_with_citations",
    "GeneratedAnswer",
    "GenerationConfig",
    "LOW_RELEVANCE_MESSAGE",
    "NOTHING_FOUND_MESSAGE",
    "PIPELINE_ERROR_MESSAGE",
    "TRUNCATION_NOTICE",
    "truncate_answer",
]
