"""
Command line entry point.

- ingest: chunk, embed and store a plain-text textbook (pages separated by form feeds)
- query: answer a question from one subject's textbooks
- books / stats: inspect the store
- export: write one subject's chunks to a JSONL file

Usage:
    python -m textbook_rag.cli ingest --title "Finance 101" --subject finance book.txt
    python -m textbook_rag.cli query --subject finance "What is working capital?"
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import sys
from pathlib import Path
from typing import List, Optional

from textbook_rag.api.deps import build_service
from textbook_rag.errors import RAGError
from textbook_rag.extraction import PlainTextExtractor
from textbook_rag.generation import format_answer_with_citations
from textbook_rag.logging_utils import configure_logging
from textbook_rag.rag import dump_chunks
from textbook_rag.service import RetrievalService
from textbook_rag.settings import RAGSettings


async def cmd_ingest(service: RetrievalService, args: argparse.Namespace) -> int:
    pages = PlainTextExtractor().extract_pages(args.file)
    print(f"Read {len(pages)} pages from {args.file}")
    result = await service.process_textbook(args.title, args.subject, pages)
    print(
        f"Book {result.book.id}: {len(result.chunks)} chunks, "
        f"{result.embeddings} embeddings ({result.processing_ms:.0f} ms)"
    )
    return 0


async def cmd_query(service: RetrievalService, args: argparse.Namespace) -> int:
    answer = await service.query(args.question, args.subject)
    print(format_answer_with_citations(answer))
    print(f"\nConfidence: {answer.confidence:.2f} ({answer.processing_ms:.0f} ms)")
    return 0


async def cmd_books(service: RetrievalService, args: argparse.Namespace) -> int:
    books = await service.list_books(args.subject)
    if not books:
        print("No books stored.")
        return 0
    for b in books:
        line = f"{b.id}  {b.subject:12s}  {b.status:10s}  {b.pages:5d} pages  {b.title}"
        if b.error_message:
            line += f"  ({b.error_message})"
        print(line)
    return 0


async def cmd_stats(service: RetrievalService, args: argparse.Namespace) -> int:
    s = await service.stats()
    print(f"Books:      {s.books}")
    print(f"Chunks:     {s.chunks}")
    print(f"Embeddings: {s.embeddings}")
    print(f"Subjects:   {', '.join(s.subjects) or '(none)'}")
    return 0


async def cmd_export(service: RetrievalService, args: argparse.Namespace) -> int:
    chunks = await service.store.list_chunks(args.subject)
    n = dump_chunks(chunks, args.output)
    print(f"Wrote {n} chunks to {args.output}")
    return 0


COMMANDS = {
    "ingest": cmd_ingest,
    "query": cmd_query,
    "books": cmd_books,
    "stats": cmd_stats,
    "export": cmd_export,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="textbook-rag", description="Textbook retrieval engine")
    parser.add_argument("--database-url", default=None, help="Override DATABASE_URL")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("ingest", help="Chunk, embed and store a plain-text textbook")
    p.add_argument("file", type=Path, help="UTF-8 text file, pages separated by form feeds")
    p.add_argument("--title", required=True)
    p.add_argument("--subject", required=True)

    p = sub.add_parser("query", help="Answer a question")
    p.add_argument("question")
    p.add_argument("--subject", required=True)

    p = sub.add_parser("books", help="List stored books")
    p.add_argument("--subject", default=None)

    sub.add_parser("stats", help="Show store counts")

    p = sub.add_parser("export", help="Write a subject's chunks to JSONL")
    p.add_argument("--subject", required=True)
    p.add_argument("--output", type=Path, required=True)
    return parser


async def run(args: argparse.Namespace, settings: RAGSettings) -> int:
    service, store = await build_service(settings)
    try:
        return await COMMANDS[args.command](service, args)
    except RAGError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await store.close()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = RAGSettings.from_env()
    if args.database_url:
        settings = dataclasses.replace(settings, database_url=args.database_url)
    configure_logging(settings.log_level)
    return asyncio.run(run(args, settings))


if __name__ == "__main__":
    sys.exit(main())
