"""
Tests for page extraction and the command line entry point (fallback embeddings, SQLite file).
"""

from __future__ import annotations

import pytest
from conftest import DEPRECIATION_PAGE, WORKING_CAPITAL_PAGE

from textbook_rag.cli import main
from textbook_rag.extraction import PlainTextExtractor, split_pages
from textbook_rag.rag import load_chunks


def test_split_pages_keeps_empty_pages():
    assert split_pages("one\ftwo\f\fthree\f") == ["one", "two", "", "three"]
    assert split_pages("single page") == ["single page"]


def test_plain_text_extractor(tmp_path):
    path = tmp_path / "book.txt"
    path.write_text("page one\fpage two", encoding="utf-8")
    assert PlainTextExtractor().extract_pages(path) == ["page one", "page two"]


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    monkeypatch.setenv("EMBEDDING_MODE", "fallback")
    monkeypatch.setenv("ANSWER_SYNTHESIS", "template")
    db_url = f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"
    book = tmp_path / "finance.txt"
    book.write_text(f"{WORKING_CAPITAL_PAGE}\f{DEPRECIATION_PAGE}", encoding="utf-8")
    return db_url, book


def test_ingest_query_and_export(cli_env, tmp_path, capsys):
    db_url, book = cli_env

    assert main(["--database-url", db_url, "ingest", "--title", "Financial Accounting", "--subject", "finance", str(book)]) == 0
    out = capsys.readouterr().out
    assert "Read 2 pages" in out
    assert "2 chunks, 2 embeddings" in out

    assert main(["--database-url", db_url, "query", "--subject", "finance", "What is working capital?"]) == 0
    assert "Confidence:" in capsys.readouterr().out

    assert main(["--database-url", db_url, "stats"]) == 0
    out = capsys.readouterr().out
    assert "Chunks:     2" in out
    assert "finance" in out

    export = tmp_path / "chunks.jsonl"
    assert main(["--database-url", db_url, "export", "--subject", "finance", "--output", str(export)]) == 0
    chunks = load_chunks(export, subject="finance")
    assert [c.page_start for c in chunks] == [1, 2]
    assert chunks[0].text.startswith("Working capital is the difference")


def test_blank_query_exits_with_error(cli_env, capsys):
    db_url, _ = cli_env
    assert main(["--database-url", db_url, "query", "--subject", "finance", "  "]) == 1
    assert "Error:" in capsys.readouterr().err
