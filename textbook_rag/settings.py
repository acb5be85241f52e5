"""
Environment-backed settings for the service entry points (API, CLI).

Pipeline stages never read the environment themselves; the settings here are
turned into immutable stage configs and passed in explicitly.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from textbook_rag.db.session import DEFAULT_DATABASE_URL
from textbook_rag.rag.config import (
    DEFAULT_EMBEDDING_MODEL,
    EmbeddingConfig,
    EmbeddingMode,
    RAGConfig,
)

# Load .env file if it exists
_project_root = Path(__file__).resolve().parents[1]
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

DEFAULT_LLM_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_LLM_MODEL = "llama3-8b-8192"


@dataclass(frozen=True)
class LLMSettings:
    """Hosted completion service settings."""

    base_url: str = DEFAULT_LLM_BASE_URL
    api_key: Optional[str] = None
    model: str = DEFAULT_LLM_MODEL

    @classmethod
    def from_env(cls) -> "LLMSettings":
        return cls(
            base_url=os.getenv("LLM_BASE_URL", DEFAULT_LLM_BASE_URL),
            api_key=os.getenv("LLM_API_KEY") or os.getenv("GROQ_API_KEY"),
            model=os.getenv("LLM_MODEL", DEFAULT_LLM_MODEL),
        )


@dataclass(frozen=True)
class RAGSettings:
    """Process-level settings read once at startup."""

    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    embedding_mode: EmbeddingMode = EmbeddingMode.PRIMARY
    embedding_batch_size: int = 8
    database_url: str = DEFAULT_DATABASE_URL
    answer_synthesis: str = "template"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "RAGSettings":
        return cls(
            embedding_model=os.getenv("EMBEDDING_MODEL", DEFAULT_EMBEDDING_MODEL),
            embedding_mode=EmbeddingMode(os.getenv("EMBEDDING_MODE", EmbeddingMode.PRIMARY.value).lower()),
            embedding_batch_size=int(os.getenv("EMBEDDING_BATCH_SIZE", "8")),
            database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            answer_synthesis=os.getenv("ANSWER_SYNTHESIS", "template").lower(),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    def rag_config(self) -> RAGConfig:
        """Stage configs with the embedding settings applied, other stages at defaults."""
        return RAGConfig(
            embedding=EmbeddingConfig(
                model_identifier=self.embedding_model,
                batch_size=self.embedding_batch_size,
                mode=self.embedding_mode,
            )
        )
