"""
Query intent detection for answer composition.

Intent is decided by an ordered rule table of `(predicate, intent)` pairs over
the lower-cased query; the first matching rule wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Tuple


class AnswerIntent(str, Enum):
    """Answer template to use for a query."""

    DEFINITION = "definition"
    EXPLANATION = "explanation"
    COMPARISON = "comparison"
    STEP_BY_STEP = "step-by-step"
    GENERAL = "general"


@dataclass(frozen=True)
class ContainsAny:
    """Predicate: true if any cue is a substring of the lower-cased query."""

    cues: Tuple[str, ...]

    def __call__(self, q_lower: str) -> bool:
        return any(cue in q_lower for cue in self.cues)


INTENT_RULES: List[Tuple[Callable[[str], bool], AnswerIntent]] = [
    (ContainsAny(("what is", "define", "meaning")), AnswerIntent.DEFINITION),
    (ContainsAny(("how", "explain", "describe")), AnswerIntent.EXPLANATION),
    (ContainsAny(("compare", "difference", "versus")), AnswerIntent.COMPARISON),
    (ContainsAny(("step", "process", "procedure")), AnswerIntent.STEP_BY_STEP),
]


def classify_intent(query: str) -> AnswerIntent:
    """Return the intent of the first rule whose cue occurs in the query."""
    q_lower = query.lower()
    for predicate, intent in INTENT_RULES:
        if predicate(q_lower):
            return intent
    return AnswerIntent.GENERAL
