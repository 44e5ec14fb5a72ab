"""Tests for the indexing gateway."""
import time

import pytest

from rdf_searchbase.errors import IngestError, StoreError
from rdf_searchbase.gateway import IndexingGateway, record_id
from rdf_searchbase.graph import GraphStore
from rdf_searchbase.models import BlankNode, Literal, NamedNode, PrefixTable, Statement, TripleRecord
from rdf_searchbase.storage import PREFIXES_INDEX, TRIPLES_INDEX, LocalSearchBackend


EX = "http://example.com/"
EX_PREFIXES = PrefixTable({"ex": EX})


def make_store(n, start=0):
    store = GraphStore()
    for i in range(start, start + n):
        store.add(Statement(NamedNode(f"{EX}s{i}"), NamedNode(EX + "p"), Literal(f"value {i}")))
    return store


class FailingBackend(LocalSearchBackend):
    """Accepts ``fail_after`` statement records, then fails."""

    def __init__(self, fail_after):
        super().__init__()
        self.fail_after = fail_after
        self.flushes = 0

    def index_document(self, index, document, doc_id=None):
        if index == TRIPLES_INDEX and self.count(TRIPLES_INDEX) >= self.fail_after:
            raise StoreError("connection refused")
        return super().index_document(index, document, doc_id)

    def bulk_index(self, index, documents):
        room = self.fail_after - self.count(index)
        if room < len(documents):
            written = super().bulk_index(index, documents[:max(room, 0)])
            raise StoreError("connection refused", written=written)
        return super().bulk_index(index, documents)

    def flush(self, indices=(TRIPLES_INDEX, PREFIXES_INDEX)):
        self.flushes += 1


@pytest.fixture
def backend():
    return LocalSearchBackend()


@pytest.fixture
def gateway(backend):
    gateway = IndexingGateway(backend)
    gateway.ensure_indices()
    return gateway


# ========== Ingest Tests ==========

class TestIngest:
    def test_one_record_per_statement(self, gateway, backend):
        result = gateway.ingest(make_store(3), EX_PREFIXES)

        assert result.statements == 3
        assert result.prefix_record is True
        assert backend.count(TRIPLES_INDEX) == 3
        assert backend.count(PREFIXES_INDEX) == 1

    def test_records_keep_document_order(self, gateway, backend):
        gateway.ingest(make_store(3))
        hits = backend.search(TRIPLES_INDEX, {"match_all": {}})
        assert [h.source["subject"] for h in hits] == [EX + "s0", EX + "s1", EX + "s2"]

    def test_record_fields(self, gateway, backend):
        store = GraphStore([Statement(BlankNode("b0"), NamedNode(EX + "p"), NamedNode(EX + "o"))])
        gateway.ingest(store)
        (hit,) = backend.search(TRIPLES_INDEX)
        assert hit.source == {"subject": "b0", "predicate": EX + "p", "object": EX + "o", "graph": ""}

    def test_prefix_record(self, gateway, backend):
        gateway.ingest(make_store(1), EX_PREFIXES)
        (hit,) = backend.search(PREFIXES_INDEX)
        assert hit.source["prefixes"] == {"ex": EX}
        assert "created_at" in hit.source

    def test_empty_prefixes_not_written(self, gateway, backend):
        result = gateway.ingest(make_store(2), PrefixTable())
        assert result.prefix_record is False
        assert backend.count(PREFIXES_INDEX) == 0

    def test_empty_graph(self, gateway, backend):
        result = gateway.ingest(GraphStore(), EX_PREFIXES)
        assert result.statements == 0
        assert backend.count(TRIPLES_INDEX) == 0
        assert backend.count(PREFIXES_INDEX) == 1

    def test_reingest_duplicates(self, gateway, backend):
        gateway.ingest(make_store(2))
        gateway.ingest(make_store(2))
        assert backend.count(TRIPLES_INDEX) == 4

    def test_upsert_deduplicates(self, backend):
        gateway = IndexingGateway(backend, upsert=True)
        gateway.ensure_indices()
        gateway.ingest(make_store(2))
        gateway.ingest(make_store(3))
        assert backend.count(TRIPLES_INDEX) == 3

    def test_batched_writes(self, backend):
        gateway = IndexingGateway(backend, batch_size=2)
        gateway.ensure_indices()
        result = gateway.ingest(make_store(5))
        assert result.statements == 5
        assert backend.count(TRIPLES_INDEX) == 5

    def test_invalid_batch_size(self, backend):
        with pytest.raises(ValueError):
            IndexingGateway(backend, batch_size=0)

    def test_result_to_dict(self, gateway):
        data = gateway.ingest(make_store(1)).to_dict()
        assert data["statements"] == 1
        assert data["prefix_record"] is False
        assert data["elapsed_seconds"] >= 0

    def test_thousands_of_single_writes(self, tmp_path):
        backend = LocalSearchBackend(tmp_path)
        gateway = IndexingGateway(backend)
        gateway.ensure_indices()

        start = time.monotonic()
        result = gateway.ingest(make_store(5000), EX_PREFIXES)
        elapsed = time.monotonic() - start

        assert result.statements == 5000
        assert backend.count(TRIPLES_INDEX) == 5000
        assert elapsed < 10


# ========== Failure Tests ==========

class TestIngestFailures:
    def test_partial_failure_reports_written(self):
        backend = FailingBackend(fail_after=2)
        gateway = IndexingGateway(backend)
        gateway.ensure_indices()

        with pytest.raises(IngestError) as info:
            gateway.ingest(make_store(5), EX_PREFIXES)

        assert info.value.written == 2
        assert "statement 3" in info.value.message
        # Written records are not rolled back
        assert backend.count(TRIPLES_INDEX) == 2
        assert backend.count(PREFIXES_INDEX) == 0
        assert backend.flushes == 1

    def test_partial_bulk_failure_reports_written(self):
        backend = FailingBackend(fail_after=3)
        gateway = IndexingGateway(backend, batch_size=2)
        gateway.ensure_indices()

        with pytest.raises(IngestError) as info:
            gateway.ingest(make_store(5))

        assert info.value.written == 3
        assert backend.count(TRIPLES_INDEX) == 3

    def test_store_unavailable_from_start(self):
        backend = FailingBackend(fail_after=0)
        gateway = IndexingGateway(backend)
        gateway.ensure_indices()

        with pytest.raises(IngestError) as info:
            gateway.ingest(make_store(1))
        assert info.value.written == 0
        assert not info.value.client_fault

    def test_deadline(self, gateway, backend):
        with pytest.raises(IngestError, match="deadline") as info:
            gateway.ingest(make_store(3), EX_PREFIXES, deadline=time.monotonic() - 1)
        assert info.value.written == 0
        assert backend.count(TRIPLES_INDEX) == 0

    def test_flush_failure_after_writes(self):
        class UnsavableBackend(LocalSearchBackend):
            def flush(self, indices=(TRIPLES_INDEX, PREFIXES_INDEX)):
                raise StoreError("disk full")

        backend = UnsavableBackend()
        gateway = IndexingGateway(backend)
        gateway.ensure_indices()

        with pytest.raises(IngestError, match="Failed to persist indexed records: disk full") as info:
            gateway.ingest(make_store(3), EX_PREFIXES)
        assert info.value.written == 3
        assert not info.value.client_fault

    def test_write_failure_wins_over_flush_failure(self):
        class UnsavableBackend(FailingBackend):
            def flush(self, indices=(TRIPLES_INDEX, PREFIXES_INDEX)):
                raise StoreError("disk full")

        gateway = IndexingGateway(UnsavableBackend(fail_after=1))
        gateway.ensure_indices()

        with pytest.raises(IngestError, match="statement 2: connection refused") as info:
            gateway.ingest(make_store(3))
        assert info.value.written == 1

    def test_ensure_indices_failure(self):
        class Unreachable(LocalSearchBackend):
            def index_exists(self, index):
                raise StoreError("connection refused")

        with pytest.raises(IngestError, match="Could not prepare indices"):
            IndexingGateway(Unreachable()).ensure_indices()


# ========== Record Id Tests ==========

class TestRecordId:
    def test_stable(self):
        assert record_id(TripleRecord("s", "p", "o")) == record_id(TripleRecord("s", "p", "o"))

    def test_field_boundaries(self):
        assert record_id(TripleRecord("ab", "c", "o")) != record_id(TripleRecord("a", "bc", "o"))

    def test_graph_distinguishes(self):
        assert record_id(TripleRecord("s", "p", "o")) != record_id(TripleRecord("s", "p", "o", "g"))
