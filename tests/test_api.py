from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from corpus_search.api.dependencies import get_engine
from corpus_search.embeddings.encoder import document_id
from corpus_search.embeddings.index import IndexPersistenceError
from corpus_search.engine import CorpusSearchEngine
from corpus_search.main import create_app


@pytest.fixture
def corpus(write_file):
    return [
        write_file("auth.ts", "/** Session store */\nexport class SessionStore {}\n// TODO fix auth bug\n"),
        write_file("fox.md", "the quick fox runs"),
        write_file("dog.md", "the lazy dog sleeps"),
    ]


@pytest.fixture
def engine(make_engine, corpus):
    return make_engine()


@pytest.fixture
def client(engine):
    with TestClient(create_app(engine)) as c:
        yield c


def test_health_after_startup(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "initialized": True}


def test_search(client, corpus):
    resp = client.post("/search/", json={"query": "fix auth bug"})

    assert resp.status_code == 200
    results = resp.json()
    assert results[0]["document"]["id"] == document_id(str(corpus[0]))
    assert results[0]["document"]["relative_path"] == "corpus/auth.ts"
    assert results[0]["document"]["declared_symbols"] == ["SessionStore"]
    assert results[0]["highlights"]
    assert "embedding" not in results[0]["document"]


def test_search_validation(client):
    assert client.post("/search/", json={"query": ""}).status_code == 422
    assert client.post("/search/", json={"query": "fox", "limit": 0}).status_code == 422
    assert client.post("/search/", json={"query": "fox", "bogus": 1}).status_code == 422


def test_search_limit(client):
    resp = client.post("/search/", json={"query": "fox", "limit": 1, "min_score": 0.0})
    assert len(resp.json()) == 1


def test_stats(client):
    resp = client.get("/index/stats")

    assert resp.status_code == 200
    body = resp.json()
    assert body["documents"] == 3
    assert body["vocabulary"] > 0
    assert sum(body["topical_tags"].values()) == 3


def test_rebuild(client):
    resp = client.post("/index/rebuild")

    assert resp.status_code == 200
    body = resp.json()
    assert body["files_found"] == 3
    assert body["documents_indexed"] == 3


def test_sync(client, write_file):
    write_file("cat.md", "a curious cat")
    resp = client.post("/index/sync")

    assert resp.status_code == 200
    assert resp.json()["added"] == 1
    assert resp.json()["unchanged"] == 3


def test_upsert_and_delete_document(client, write_file):
    path = str(write_file("new.md", "quick fox again"))

    resp = client.put("/index/documents", json={"path": path})
    assert resp.status_code == 200
    assert resp.json()["status"] == "updated"
    assert resp.json()["document"]["id"] == document_id(path)

    resp = client.request("DELETE", "/index/documents", json={"path": path})
    assert resp.json() == {"status": "deleted", "document": None}

    resp = client.request("DELETE", "/index/documents", json={"path": path})
    assert resp.json()["status"] == "not_found"


def test_upsert_missing_file(client, corpus_dir):
    resp = client.put("/index/documents", json={"path": str(corpus_dir / "missing.md")})
    assert resp.json()["status"] == "skipped"


def test_search_before_initialization(engine):
    # no context manager: lifespan never runs
    client = TestClient(create_app(engine))

    resp = client.post("/search/", json={"query": "fox"})
    assert resp.status_code == 409
    assert resp.json()["error"] == "index_not_initialized"


def test_index_failure_is_not_leaked():
    mock = MagicMock(spec=CorpusSearchEngine)
    mock.initialized = True
    mock.search.side_effect = IndexPersistenceError("/secret/path unreadable")

    app = create_app(mock)
    app.dependency_overrides[get_engine] = lambda: mock
    client = TestClient(app)

    resp = client.post("/search/", json={"query": "fox"})
    assert resp.status_code == 500
    assert resp.json() == {"error": "index_error", "detail": "Index operation failed"}


def test_upsert_outside_corpus_is_skipped(client, tmp_path):
    outside = tmp_path / "secret.md"
    outside.write_text("password hunter2 is secret", encoding="utf-8")

    resp = client.put("/index/documents", json={"path": str(outside)})
    assert resp.json() == {"status": "skipped", "document": None}

    resp = client.post("/search/", json={"query": "hunter2", "min_score": 0.0})
    assert all(not r["highlights"] for r in resp.json())
