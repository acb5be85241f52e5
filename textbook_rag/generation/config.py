"""Configuration for LLM answer synthesis."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class GenerationConfig:
    """Settings for LLM answer synthesis."""

    max_tokens: int = 1000
    temperature: float = 0.1
    context_max_tokens: int = 2000
