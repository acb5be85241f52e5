"""
LLM client for OpenAI-compatible chat APIs (Groq, OpenAI, DeepSeek, etc.).
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Optional, Protocol

import openai
from openai import OpenAI

from textbook_rag.errors import LLMError
from textbook_rag.settings import LLMSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionOptions:
    """Per-call generation options. `model=None` uses the client's model."""

    model: Optional[str] = None
    temperature: float = 0.1
    max_tokens: int = 1000
    top_p: float = 0.9


@dataclass
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class Completion:
    """Text returned by the completion service plus token accounting."""

    text: str
    model: str
    usage: TokenUsage = field(default_factory=TokenUsage)


class CompletionClient(Protocol):
    def complete(self, prompt: str, options: Optional[CompletionOptions] = None) -> Completion:
        ...


def _is_rate_limit(error: Exception) -> bool:
    if isinstance(error, openai.RateLimitError):
        return True
    return "429" in str(error)


class LLMClient:
    """OpenAI-compatible chat client."""

    def __init__(self, settings: Optional[LLMSettings] = None, *, max_retries: int = 3):
        settings = settings or LLMSettings.from_env()
        if not settings.api_key:
            raise ValueError("API key required. Set LLM_API_KEY (or GROQ_API_KEY).")
        self.model_name = settings.model
        self.base_url = settings.base_url
        self.max_retries = max_retries
        self.client = OpenAI(base_url=self.base_url, api_key=settings.api_key)

    def complete(self, prompt: str, options: Optional[CompletionOptions] = None) -> Completion:
        """Generate a completion for one prompt, retrying rate-limit errors with backoff."""
        options = options or CompletionOptions()
        model = options.model or self.model_name
        retry_count = 0
        while True:
            try:
                response = self.client.chat.completions.create(
                    model=model,
                    messages=[{"role": "user", "content": prompt}],
                    max_tokens=options.max_tokens,
                    temperature=options.temperature,
                    top_p=options.top_p,
                )
                break
            except Exception as e:
                if _is_rate_limit(e) and retry_count < self.max_retries:
                    retry_count += 1
                    backoff = (2 ** retry_count) * 1.5 + random.uniform(0, 1.0)
                    logger.warning(
                        "Rate limit hit (429). Retrying in %s s (attempt %s/%s)",
                        round(backoff, 1),
                        retry_count,
                        self.max_retries,
                    )
                    time.sleep(backoff)
                    continue
                logger.error("Error calling completion API: %s", e)
                raise LLMError(f"Failed to generate answer: {e}") from e

        text = ""
        if response.choices:
            text = (response.choices[0].message.content or "").strip()
        if not text:
            logger.warning("Empty completion from %s", model)

        usage = TokenUsage()
        if response.usage is not None:
            usage = TokenUsage(
                prompt_tokens=response.usage.prompt_tokens or 0,
                completion_tokens=response.usage.completion_tokens or 0,
                total_tokens=response.usage.total_tokens or 0,
            )
        return Completion(text=text, model=model, usage=usage)


def create_client(settings: Optional[LLMSettings] = None) -> LLMClient:
    """Create an OpenAI-compatible client from settings (environment by default)."""
    return LLMClient(settings)
