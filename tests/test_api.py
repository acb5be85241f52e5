"""
Tests for the FastAPI routes, backed by an in-memory store and a fake embedding model.
"""

from __future__ import annotations

import pytest
from conftest import DEPRECIATION_PAGE, WORKING_CAPITAL_PAGE
from fastapi.testclient import TestClient

from textbook_rag.api.main import create_app
from textbook_rag.service import RetrievalService
from textbook_rag.storage import InMemoryStore


@pytest.fixture
def client(bow_embedder):
    service = RetrievalService(InMemoryStore(), embedder=bow_embedder)
    with TestClient(create_app(service=service)) as c:
        yield c


def _upload(client: TestClient) -> dict:
    r = client.post(
        "/api/books",
        json={
            "title": "Financial Accounting",
            "subject": "finance",
            "pages": [WORKING_CAPITAL_PAGE, DEPRECIATION_PAGE],
        },
    )
    assert r.status_code == 201
    return r.json()


def test_health(client):
    """GET /api/health returns ok and the embedding mode."""
    r = client.get("/api/health")
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "ok"
    assert data["embedding_mode"] == "primary"
    assert data["subjects"] == []


def test_upload_book_and_stats(client):
    data = _upload(client)
    assert data["book"]["status"] == "completed"
    assert data["book"]["pages"] == 2
    assert data["chunks"] == 2
    assert data["embeddings"] == 2

    r = client.get("/api/stats")
    assert r.status_code == 200
    assert r.json() == {"books": 1, "chunks": 2, "embeddings": 2, "subjects": ["finance"]}

    books = client.get("/api/books", params={"subject": "finance"}).json()
    assert [b["title"] for b in books] == ["Financial Accounting"]
    assert client.get("/api/books", params={"subject": "chemistry"}).json() == []


def test_upload_requires_pages(client):
    r = client.post("/api/books", json={"title": "Empty", "subject": "finance", "pages": []})
    assert r.status_code == 422


def test_query_answers_with_sources(client):
    _upload(client)
    r = client.post("/api/query", json={"query": "What is working capital?", "subject": "finance"})
    assert r.status_code == 200
    data = r.json()
    assert data["answer"].startswith("Working capital is the difference")
    assert data["intent"] == "definition"
    assert data["sources"][0]["book_title"] == "Financial Accounting"
    assert data["sources"][0]["page_start"] == 1
    assert 0.0 <= data["confidence"] <= 1.0


def test_query_unknown_subject_is_not_an_error(client):
    r = client.post("/api/query", json={"query": "What is working capital?", "subject": "history"})
    assert r.status_code == 200
    data = r.json()
    assert data["answer"].startswith("I couldn't find any relevant information")
    assert data["sources"] == []
    assert data["confidence"] == 0.0


def test_blank_query_is_bad_request(client):
    r = client.post("/api/query", json={"query": "   ", "subject": "finance"})
    assert r.status_code == 400
    assert "empty" in r.json()["detail"].lower()


def test_query_requires_body(client):
    """POST /api/query without body returns 422."""
    assert client.post("/api/query", json={}).status_code == 422


def test_search(client):
    _upload(client)
    r = client.post("/api/search", json={"query": "working capital", "subject": "finance", "top_k": 1})
    assert r.status_code == 200
    data = r.json()
    assert data["query"] == "working capital"
    assert len(data["results"]) == 1
    assert data["results"][0]["page"] == 1


def test_delete_book(client):
    book_id = _upload(client)["book"]["id"]
    r = client.delete(f"/api/books/{book_id}")
    assert r.status_code == 200
    assert r.json() == {"ok": True, "book_id": book_id, "chunks_deleted": 2}
    assert client.delete(f"/api/books/{book_id}").status_code == 404
    assert client.get("/api/stats").json()["chunks"] == 0
