from __future__ import annotations

import os
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .models import Base

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./textbook_rag.db"


def get_database_url() -> str:
    """
    Return the async database URL.

    Falls back to a local SQLite file if not set, so tests and
    local development can run with minimal configuration.
    """
    return os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)


def build_engine(url: Optional[str] = None, **kwargs) -> AsyncEngine:
    return create_async_engine(url or get_database_url(), echo=False, **kwargs)


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        expire_on_commit=False,
        class_=AsyncSession,
    )


async def create_all(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
