"""Tests for the HTTP API."""
import pytest
from fastapi.testclient import TestClient

from api.web import create_app
from rdf_searchbase import Settings, TripleIndexService
from rdf_searchbase.errors import StoreError
from rdf_searchbase.storage import PREFIXES_INDEX, TRIPLES_INDEX, LocalSearchBackend


EX = "http://example.com/"

TURTLE = b"@prefix ex: <http://example.com/> .\nex:alice ex:name \"Alice\" .\nex:alice ex:knows ex:bob .\n"
NTRIPLES = b"<http://example.com/bob> <http://example.com/name> \"Bob\" .\n"


class BrokenBackend(LocalSearchBackend):
    def index_document(self, index, document, doc_id=None):
        raise StoreError("Connection refused")


@pytest.fixture
def backend():
    return LocalSearchBackend()


@pytest.fixture
def client(backend):
    service = TripleIndexService(backend)
    app = create_app(service=service, settings=Settings(data_dir=None))
    with TestClient(app) as client:
        yield client


def upload(client, filename, content):
    return client.post("/api/upload", files={"rdfFile": (filename, content, "application/octet-stream")})


# ========== Upload Tests ==========

class TestUpload:
    def test_indices_created_at_startup(self, client, backend):
        assert backend.index_exists(TRIPLES_INDEX)
        assert backend.index_exists(PREFIXES_INDEX)

    def test_upload_turtle(self, client, backend):
        response = upload(client, "people.ttl", TURTLE)
        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "File processed and indexed successfully"
        assert data["filename"] == "people.ttl"
        assert data["format"] == "Turtle"
        assert data["triples"] == 2
        assert data["prefixes"] is True
        assert backend.count(TRIPLES_INDEX) == 2

    def test_upload_ntriples(self, client):
        response = upload(client, "bob.nt", NTRIPLES)
        assert response.status_code == 200
        assert response.json()["triples"] == 1
        assert response.json()["prefixes"] is False

    def test_no_file(self, client):
        response = client.post("/api/upload")
        assert response.status_code == 400
        assert response.json() == {"error": "No file uploaded or invalid file"}

    def test_field_without_file(self, client):
        response = client.post("/api/upload", data={"rdfFile": "not a file"})
        assert response.status_code == 400
        assert response.json() == {"error": "No file uploaded or invalid file"}

    def test_unsupported_extension(self, client, backend):
        response = upload(client, "people.json", b"{}")
        assert response.status_code == 400
        assert response.json() == {"error": "Unsupported file format: 'people.json'"}
        assert backend.count(TRIPLES_INDEX) == 0

    def test_malformed_document(self, client, backend):
        response = upload(client, "bad.ttl", b'@prefix ex: <http://example.com/> .\nex:a ex:b "oops .\n')
        assert response.status_code == 400
        assert "Invalid Turtle document" in response.json()["error"]
        assert backend.count(TRIPLES_INDEX) == 0

    def test_store_failure(self):
        service = TripleIndexService(BrokenBackend())
        app = create_app(service=service, settings=Settings(data_dir=None))
        with TestClient(app) as client:
            response = upload(client, "bob.nt", NTRIPLES)
        assert response.status_code == 500
        assert "Connection refused" in response.json()["error"]

    def test_unsaved_upload_fails(self, tmp_path):
        blocker = tmp_path / f"{TRIPLES_INDEX}.parquet"
        service = TripleIndexService(LocalSearchBackend(tmp_path))
        app = create_app(service=service, settings=Settings(data_dir=None))
        with TestClient(app) as client:
            blocker.mkdir()
            response = upload(client, "bob.nt", NTRIPLES)
            # Let the shutdown flush succeed
            blocker.rmdir()
        assert response.status_code == 500
        assert "Failed to persist" in response.json()["error"]
        assert (tmp_path / f"{TRIPLES_INDEX}.parquet").is_file()


# ========== Search Tests ==========

class TestSearch:
    def test_missing_query(self, client):
        response = client.get("/api/search")
        assert response.status_code == 400
        assert response.json() == {"error": 'Query parameter "q" is required'}

    def test_hits(self, client):
        upload(client, "people.ttl", TURTLE)
        response = client.get("/api/search", params={"q": "alice"})
        assert response.status_code == 200

        hits = response.json()
        assert len(hits) == 2
        for hit in hits:
            assert hit["_index"] == TRIPLES_INDEX
            assert hit["_id"]
            assert hit["_score"] > 0
            assert hit["_source"]["subject"] == EX + "alice"

    def test_size(self, client):
        upload(client, "people.ttl", TURTLE)
        response = client.get("/api/search", params={"q": "alice", "size": 1})
        assert len(response.json()) == 1

    def test_no_hits(self, client):
        response = client.get("/api/search", params={"q": "zebra"})
        assert response.status_code == 200
        assert response.json() == []


# ========== Query Tests ==========

class TestQuery:
    def test_missing_filters(self, client):
        response = client.get("/api/query")
        assert response.status_code == 400
        assert response.json() == {
            "error": "At least one of subject, predicate, or object query parameters is required"
        }

    def test_turtle(self, client):
        upload(client, "people.ttl", TURTLE)
        response = client.get("/api/query", params={"predicate": EX + "knows"})
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/turtle")
        assert response.text == (
            "@prefix ex: <http://example.com/> .\n"
            "\n"
            'ex:alice ex:knows "http://example.com/bob" .\n'
        )

    def test_no_matches_still_declares_prefixes(self, client):
        upload(client, "people.ttl", TURTLE)
        response = client.get("/api/query", params={"subject": EX + "zebra"})
        assert response.status_code == 200
        assert response.text == "@prefix ex: <http://example.com/> .\n"

    def test_ntriples_format(self, client):
        upload(client, "bob.nt", NTRIPLES)
        response = client.get("/api/query", params={"subject": EX + "bob", "format": "ntriples"})
        assert response.headers["content-type"].startswith("application/n-triples")
        assert response.text == '<http://example.com/bob> <http://example.com/name> "Bob" .\n'

    def test_rdfxml_format(self, client):
        upload(client, "people.ttl", TURTLE)
        response = client.get("/api/query", params={"object": "Alice", "format": "rdfxml"})
        assert response.headers["content-type"].startswith("application/rdf+xml")
        assert "<ex:name>Alice</ex:name>" in response.text

    def test_unknown_format(self, client):
        response = client.get("/api/query", params={"subject": EX + "a", "format": "json-ld"})
        assert response.status_code == 400


# ========== CORS Tests ==========

class TestCORS:
    def test_allow_origin(self, client):
        response = client.get("/api/search", params={"q": "x"}, headers={"Origin": "http://localhost:8080"})
        assert response.headers["access-control-allow-origin"] == "*"
