"""
LLM client module for OpenAI-compatible completion APIs.
"""

from .client import (
    Completion,
    CompletionClient,
    CompletionOptions,
    LLMClient,
    TokenUsage,
    create_client,
)

__all__ = [
    "Completion",
    "CompletionClient",
    "CompletionOptions",
    "LLMClient",
    "TokenUsage",
    "create_client",
]
