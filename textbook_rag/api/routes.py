"""
API routes: books, search, query, health, stats.
"""

from __future__ import annotations

from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, HTTPException

from textbook_rag.errors import InvalidEmbeddingError
from textbook_rag.rag import Book
from textbook_rag.service import CONTRACT_ERRORS, RetrievalService

from .deps import get_service
from .models import (
    BookCreate,
    BookOut,
    DeleteResponse,
    HealthResponse,
    IngestResponse,
    QueryRequest,
    QueryResponse,
    SearchHit,
    SearchRequest,
    SearchResponse,
    SourceOut,
    StatsResponse,
)

router = APIRouter(prefix="/api", tags=["api"])

Service = Annotated[RetrievalService, Depends(get_service)]


def _book_out(book: Book) -> BookOut:
    return BookOut(
        id=book.id,
        title=book.title,
        subject=book.subject,
        pages=book.pages,
        status=book.status,
        error_message=book.error_message,
        created_at=book.created_at,
    )


@router.get("/health", response_model=HealthResponse)
async def health(service: Service) -> HealthResponse:
    """Health check."""
    return HealthResponse(
        status="ok",
        embedding_mode=service.embedder.mode.value,
        embedding_model=service.embedder.model_info(),
        subjects=await service.list_subjects(),
    )


@router.get("/stats", response_model=StatsResponse)
async def stats(service: Service) -> StatsResponse:
    """Stored books, chunks and embeddings."""
    s = await service.stats()
    return StatsResponse(books=s.books, chunks=s.chunks, embeddings=s.embeddings, subjects=s.subjects)


@router.post("/books", response_model=IngestResponse, status_code=201)
async def create_book(body: BookCreate, service: Service) -> IngestResponse:
    """Chunk, embed and store a textbook given as page texts."""
    try:
        result = await service.process_textbook(body.title, body.subject, body.pages)
    except CONTRACT_ERRORS as e:
        raise HTTPException(status_code=400, detail=str(e))
    except InvalidEmbeddingError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return IngestResponse(
        book=_book_out(result.book),
        chunks=len(result.chunks),
        embeddings=result.embeddings,
        processing_ms=result.processing_ms,
    )


@router.get("/books", response_model=List[BookOut])
async def list_books(service: Service, subject: Optional[str] = None) -> List[BookOut]:
    """List books, optionally for one subject."""
    return [_book_out(b) for b in await service.list_books(subject)]


@router.delete("/books/{book_id}", response_model=DeleteResponse)
async def delete_book(book_id: str, service: Service) -> DeleteResponse:
    """Delete a book with its chunks and embeddings."""
    if await service.get_book(book_id) is None:
        raise HTTPException(status_code=404, detail=f"Book {book_id} not found")
    n_chunks = await service.delete_book(book_id)
    return DeleteResponse(ok=True, book_id=book_id, chunks_deleted=n_chunks)


@router.post("/search", response_model=SearchResponse)
async def search_endpoint(body: SearchRequest, service: Service) -> SearchResponse:
    """Direct search (no diversification or answer)."""
    try:
        results = await service.search(body.query, body.subject)
    except CONTRACT_ERRORS as e:
        raise HTTPException(status_code=400, detail=str(e))
    hits = [
        SearchHit(
            chunk_id=r.chunk.id,
            book_id=r.chunk.book_id,
            page=r.chunk.page_start,
            section=r.chunk.section,
            text=r.chunk.text[:500] + "…" if len(r.chunk.text) > 500 else r.chunk.text,
            score=round(r.score, 4),
        )
        for r in results[: body.top_k]
    ]
    return SearchResponse(query=body.query, results=hits)


@router.post("/query", response_model=QueryResponse)
async def query_endpoint(body: QueryRequest, service: Service) -> QueryResponse:
    """Answer a question from the textbooks of one subject."""
    try:
        answer = await service.query(body.query, body.subject)
    except CONTRACT_ERRORS as e:
        raise HTTPException(status_code=400, detail=str(e))
    return QueryResponse(
        answer=answer.text,
        sources=[
            SourceOut(
                chunk_id=s.chunk_id,
                book_id=s.book_id,
                book_title=s.book_title,
                page_start=s.page_start,
                page_end=s.page_end,
                relevance=s.relevance,
            )
            for s in answer.sources
        ],
        confidence=answer.confidence,
        processing_ms=answer.processing_ms,
        intent=answer.intent.value if answer.intent else None,
        cited_chunk_ids=answer.cited_chunk_ids,
    )
