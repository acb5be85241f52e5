"""
Retrieval service: ingestion (chunk, embed, validate, persist) and querying
(embed, rank, diversify, compose) over one store.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from textbook_rag.errors import (
    ConfigurationError,
    DimensionMismatchError,
    EmptyQueryError,
    EmptyTextError,
    InvalidEmbeddingError,
)
from textbook_rag.generation import (
    NOTHING_FOUND_MESSAGE,
    PIPELINE_ERROR_MESSAGE,
    AnswerComposer,
    AnswerGenerator,
    ComposedAnswer,
)
from textbook_rag.rag import (
    AnswerConfig,
    Book,
    Chunk,
    ChunkingConfig,
    EmbeddingConfig,
    Embedder,
    EmbeddingVector,
    HybridRanker,
    MMRConfig,
    RAGConfig,
    RankingConfig,
    ScoredCandidate,
    chunk_pages,
    mmr_select,
    validate_embedding,
)
from textbook_rag.storage import ChunkStore, StoreStats

logger = logging.getLogger(__name__)

# Raised to the caller instead of being turned into an error answer.
CONTRACT_ERRORS = (EmptyQueryError, EmptyTextError, DimensionMismatchError, ConfigurationError)


@dataclass
class IngestResult:
    """Outcome of processing one textbook."""

    book: Book
    chunks: List[Chunk]
    embeddings: int
    processing_ms: float


class RetrievalService:
    """Pipeline facade. Owns the embedder; stage configs default to `config`."""

    def __init__(
        self,
        store: ChunkStore,
        embedder: Optional[Embedder] = None,
        config: Optional[RAGConfig] = None,
        generator: Optional[AnswerGenerator] = None,
    ):
        self.store = store
        self.config = config or RAGConfig()
        self.embedder = embedder or Embedder(self.config.embedding)
        self.generator = generator
        self._embedders: Dict[EmbeddingConfig, Embedder] = {self.embedder.config: self.embedder}

    def embedder_for(self, embed_config: Optional[EmbeddingConfig] = None) -> Embedder:
        """The embedder for `embed_config`, built once per distinct config and kept for reuse."""
        if embed_config is None:
            return self.embedder
        embedder = self._embedders.get(embed_config)
        if embedder is None:
            embedder = self._embedders[embed_config] = Embedder(embed_config)
        return embedder

    # --- ingestion ---

    def ingest(
        self,
        pages: Sequence[str],
        chunk_config: Optional[ChunkingConfig] = None,
        *,
        book_id: str,
        subject: str,
    ) -> List[Chunk]:
        """Split page texts into chunks tagged with the embedder's version."""
        return chunk_pages(
            pages,
            chunk_config or self.config.chunking,
            book_id=book_id,
            subject=subject,
            embed_version=self.embedder.embed_version,
        )

    async def embed_corpus(
        self,
        chunks: Sequence[Chunk],
        embed_config: Optional[EmbeddingConfig] = None,
    ) -> Dict[str, EmbeddingVector]:
        """
        Embed chunk texts and validate every vector.

        Raises:
            InvalidEmbeddingError: A vector is missing, has the wrong size or a
                non-finite component, or carries a different version tag than
                its chunk.
        """
        embedder = self.embedder_for(embed_config)
        vectors = await embedder.embed_chunks(chunks)
        for chunk in chunks:
            vec = vectors.get(chunk.id)
            if vec is None:
                raise InvalidEmbeddingError(f"Missing embedding for chunk {chunk.id}")
            if not validate_embedding(vec.values, embedder.config.dimension):
                raise InvalidEmbeddingError(f"Invalid embedding for chunk {chunk.id}")
            if vec.embed_version != chunk.embed_version:
                raise InvalidEmbeddingError(
                    f"Embedding version {vec.embed_version} does not match chunk {chunk.id} ({chunk.embed_version})"
                )
        return vectors

    async def process_textbook(
        self,
        title: str,
        subject: str,
        pages: Sequence[str],
        *,
        book_id: Optional[str] = None,
    ) -> IngestResult:
        """
        Create a book record, chunk and embed its pages, and persist everything.

        The book ends in status `completed`, or `error` with the message of the
        failure, which is re-raised. Partially stored chunks are removed on error.
        """
        start = time.perf_counter()
        book = await self.store.add_book(
            Book(id=book_id or uuid.uuid4().hex, title=title, subject=subject, pages=len(pages))
        )
        try:
            chunks = self.ingest(pages, book_id=book.id, subject=subject)
            vectors = await self.embed_corpus(chunks)
            await self.store.add_chunks(chunks)
            n_embeddings = await self.store.add_embeddings(vectors[c.id] for c in chunks)
        except Exception as e:
            logger.error("Error processing textbook %s: %s", book.id, e)
            await self.store.delete_all_for(book.id)
            await self.store.add_book(book)
            await self.store.update_book(book.id, status="error", error_message=str(e))
            raise

        book = await self.store.update_book(book.id, status="completed") or book
        elapsed = (time.perf_counter() - start) * 1000
        logger.info(
            "Processed textbook %r (%s): %s chunks, %s embeddings in %.1f ms",
            title,
            subject,
            len(chunks),
            n_embeddings,
            elapsed,
        )
        return IngestResult(book=book, chunks=chunks, embeddings=n_embeddings, processing_ms=elapsed)

    async def delete_book(self, book_id: str) -> int:
        """Remove a book with its chunks and embeddings. Returns the number of chunks removed."""
        return await self.store.delete_all_for(book_id)

    # --- querying ---

    async def search(
        self,
        text: str,
        subject: str,
        rank_config: Optional[RankingConfig] = None,
    ) -> List[ScoredCandidate]:
        """Ranked candidates for `text` within `subject`, without diversification or composition."""
        if not text or not text.strip():
            raise EmptyQueryError("Query cannot be empty")
        chunks = await self.store.list_chunks(subject)
        if not chunks:
            return []
        embeddings = await self.store.list_embeddings(subject)
        query_vector = await self.embedder.embed(text)
        ranker = HybridRanker(rank_config or self.config.ranking)
        return ranker.rank(text, query_vector.values, chunks, list(embeddings.values()))

    async def query(
        self,
        text: str,
        subject: str,
        rank_config: Optional[RankingConfig] = None,
        mmr_config: Optional[MMRConfig] = None,
        answer_config: Optional[AnswerConfig] = None,
    ) -> ComposedAnswer:
        """
        Answer `text` from the chunks stored for `subject`.

        Raises:
            EmptyQueryError: `text` is empty or whitespace only.
            DimensionMismatchError: Query and stored vectors differ in size.

        Any other failure is logged and returned as an error answer with no
        sources and confidence 0.
        """
        if not text or not text.strip():
            raise EmptyQueryError("Query cannot be empty")
        start = time.perf_counter()
        mmr_config = mmr_config or self.config.mmr

        try:
            chunks = await self.store.list_chunks(subject)
            if not chunks:
                logger.info("No chunks stored for subject %r", subject)
                return ComposedAnswer(
                    text=NOTHING_FOUND_MESSAGE,
                    processing_ms=(time.perf_counter() - start) * 1000,
                )

            embeddings = await self.store.list_embeddings(subject)
            query_vector = await self.embedder.embed(text)
            ranker = HybridRanker(rank_config or self.config.ranking)
            candidates = ranker.rank(text, query_vector.values, chunks, list(embeddings.values()))
            selected = mmr_select(candidates, query_vector.values, lambda_=mmr_config.lambda_, k=mmr_config.k)

            book_titles = await self.store.book_titles(subject)
            composer = AnswerComposer(answer_config or self.config.answer, generator=self.generator)
            if self.generator is not None:
                answer = await asyncio.to_thread(composer.compose, selected, text, book_titles)
            else:
                answer = composer.compose(selected, text, book_titles)
        except CONTRACT_ERRORS:
            raise
        except Exception:
            logger.exception("Query failed for subject %r", subject)
            return ComposedAnswer(
                text=PIPELINE_ERROR_MESSAGE,
                processing_ms=(time.perf_counter() - start) * 1000,
            )

        answer.processing_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Answered query in %.1f ms: %s candidates, %s sources, confidence %.2f",
            answer.processing_ms,
            len(candidates),
            len(answer.sources),
            answer.confidence,
        )
        return answer

    # --- lookups ---

    async def get_book(self, book_id: str) -> Optional[Book]:
        return await self.store.get_book(book_id)

    async def list_books(self, subject: Optional[str] = None) -> List[Book]:
        return await self.store.list_books(subject)

    async def list_subjects(self) -> List[str]:
        return await self.store.list_subjects()

    async def stats(self) -> StoreStats:
        return await self.store.stats()
