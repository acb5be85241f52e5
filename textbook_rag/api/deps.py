"""
Build the retrieval service for the API (used in lifespan) and expose it to routes.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import HTTPException, Request

from textbook_rag.generation import AnswerGenerator
from textbook_rag.llm import create_client
from textbook_rag.rag import Embedder
from textbook_rag.service import RetrievalService
from textbook_rag.settings import LLMSettings, RAGSettings
from textbook_rag.storage import SQLAlchemyStore

logger = logging.getLogger(__name__)


def build_generator(settings: RAGSettings) -> Optional[AnswerGenerator]:
    """LLM answer synthesis when ANSWER_SYNTHESIS=llm, else None (template answers)."""
    if settings.answer_synthesis != "llm":
        return None
    try:
        client = create_client(LLMSettings.from_env())
    except ValueError as e:
        logger.warning("LLM synthesis disabled: %s", e)
        return None
    return AnswerGenerator(client)


async def build_service(settings: RAGSettings) -> tuple[RetrievalService, SQLAlchemyStore]:
    """
    Create tables, build the embedder and optional generator.
    Returns (service, store); the caller closes the store on shutdown.
    """
    store = SQLAlchemyStore.from_url(settings.database_url)
    await store.create_all()
    config = settings.rag_config()
    embedder = Embedder(config.embedding)
    await embedder.preload()
    service = RetrievalService(
        store,
        embedder=embedder,
        config=config,
        generator=build_generator(settings),
    )
    return service, store


def get_service(request: Request) -> RetrievalService:
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Service unavailable: not initialized.")
    return service
