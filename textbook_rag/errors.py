"""
Exception types raised by the retrieval pipeline.

Input-contract violations are raised to the caller. Embedding strategy failures
never leave the embedder, so they have no public type here.
"""

from __future__ import annotations


class RAGError(Exception):
    """Base class for retrieval engine errors."""


class ConfigurationError(RAGError, ValueError):
    """A stage configuration holds values the stage cannot work with."""


class EmptyQueryError(RAGError, ValueError):
    """Query text is empty or whitespace only."""


class EmptyTextError(RAGError, ValueError):
    """Text handed to the embedder is empty or whitespace only."""


class DimensionMismatchError(RAGError, ValueError):
    """Two vectors that must be compared have different dimensions."""

    def __init__(self, expected: int, actual: int, *, context: str = ""):
        self.expected = expected
        self.actual = actual
        where = f" ({context})" if context else ""
        super().__init__(f"Vector dimensions don't match{where}: {expected} vs {actual}")


class InvalidEmbeddingError(RAGError, ValueError):
    """A computed vector has the wrong size or a non-finite component."""


class LLMError(RAGError):
    """The hosted completion service failed or returned nothing usable."""
