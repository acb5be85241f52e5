"""
Request and response models for the retrieval API.
"""

from __future__ import annotations

import datetime as dt
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class BookCreate(BaseModel):
    """Request body for POST /api/books. Pages are plain text, in order."""

    title: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    pages: List[str] = Field(..., min_length=1)


class BookOut(BaseModel):
    id: str
    title: str
    subject: str
    pages: int
    status: str
    error_message: Optional[str] = None
    created_at: dt.datetime


class IngestResponse(BaseModel):
    """Response for POST /api/books."""

    book: BookOut
    chunks: int
    embeddings: int
    processing_ms: float


class DeleteResponse(BaseModel):
    ok: bool = True
    book_id: str
    chunks_deleted: int = 0


class SearchRequest(BaseModel):
    """Request body for POST /api/search."""

    query: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    top_k: int = Field(10, ge=1, le=50)


class SearchHit(BaseModel):
    """Single search result."""

    chunk_id: str
    book_id: str
    page: int
    section: Optional[str] = None
    text: str
    score: float


class SearchResponse(BaseModel):
    """Response for POST /api/search."""

    query: str
    results: List[SearchHit] = Field(default_factory=list)


class QueryRequest(BaseModel):
    """Request body for POST /api/query."""

    query: str = Field(..., min_length=1, description="User question")
    subject: str = Field(..., min_length=1)


class SourceOut(BaseModel):
    """Citation in API response."""

    chunk_id: str
    book_id: str
    book_title: str
    page_start: int
    page_end: int
    relevance: float


class QueryResponse(BaseModel):
    """Response for POST /api/query."""

    answer: str
    sources: List[SourceOut] = Field(default_factory=list)
    confidence: float = 0.0
    processing_ms: float = 0.0
    intent: Optional[str] = None
    cited_chunk_ids: List[str] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    status: str = "ok"
    embedding_mode: str
    embedding_model: Dict[str, object] = Field(default_factory=dict)
    subjects: List[str] = Field(default_factory=list)


class StatsResponse(BaseModel):
    """Response for GET /api/stats."""

    books: int = 0
    chunks: int = 0
    embeddings: int = 0
    subjects: List[str] = Field(default_factory=list)
