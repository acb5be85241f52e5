"""
FastAPI application for the textbook retrieval API.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from textbook_rag import __version__
from textbook_rag.logging_utils import configure_logging
from textbook_rag.service import RetrievalService
from textbook_rag.settings import RAGSettings

from .deps import build_service
from .routes import router


def create_app(service: Optional[RetrievalService] = None) -> FastAPI:
    """Build the app. A prebuilt `service` skips settings, database and model setup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Build the retrieval service on startup; dispose the engine on shutdown."""
        if service is not None:
            app.state.service = service
            yield
            return
        settings = RAGSettings.from_env()
        configure_logging(settings.log_level)
        built, store = await build_service(settings)
        app.state.service = built
        yield
        await store.close()

    app = FastAPI(
        title="Textbook RAG API",
        description="Hybrid retrieval and cited answers over uploaded textbooks",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
    app.include_router(router)
    return app


app = create_app()
