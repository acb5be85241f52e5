"""
Utility functions for RAG module.
"""

from __future__ import annotations

import re
import string
from typing import Iterable, List

SENTENCE_RE = re.compile(r"(?<=[.!?])\s+")
_EDGE_PUNCTUATION = string.punctuation + "“”‘’«»"


def iter_tokens(text: str) -> Iterable[str]:
    """Extract lexical tokens: lower-cased whitespace words longer than 2 characters.

    Punctuation at either end of a word is dropped so "capital?" matches "capital".
    """
    for raw in text.lower().split():
        tok = raw.strip(_EDGE_PUNCTUATION)
        if len(tok) <= 2:
            continue
        yield tok


def split_sentences(text: str) -> List[str]:
    """Split text on sentence-ending punctuation followed by whitespace."""
    return [s.strip() for s in SENTENCE_RE.split(text.strip()) if s.strip()]
