"""
Indexing gateway: bulk-load parsed graphs into the search index.

Every statement becomes one independent record in ``rdf_triples``, written
in document order. Writes are not transactional: if the store fails part
way, the statements written so far stay indexed and the error reports how
many there were. A non-empty prefix table is stored as one timestamped
snapshot in ``rdf_prefixes``.

By default re-ingesting a document duplicates its records. With
``upsert=True`` each record id is a content hash of the statement, so
identical statements overwrite each other instead.
"""

from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple

from rdf_searchbase.errors import IngestError, StoreError
from rdf_searchbase.models import PrefixRecord, PrefixTable, Statement, TripleRecord
from rdf_searchbase.storage.backend import (
    PREFIXES_INDEX,
    TRIPLES_INDEX,
    SearchBackend,
    ensure_indices,
)

logger = logging.getLogger(__name__)


def record_id(record: TripleRecord) -> str:
    """Content hash of (subject, predicate, object, graph)."""
    digest = hashlib.sha256()
    for part in (record.subject, record.predicate, record.object, record.graph):
        digest.update(part.encode("utf-8"))
        digest.update(b"\x00")
    return digest.hexdigest()


@dataclass
class IngestResult:
    """Outcome of one ingest call."""
    statements: int = 0
    prefix_record: bool = False
    elapsed_seconds: float = 0.0

    def to_dict(self) -> dict:
        return {
            "statements": self.statements,
            "prefix_record": self.prefix_record,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
        }


class IndexingGateway:
    """
    Writes statements and prefix snapshots to a SearchBackend.

    Example:
        gateway = IndexingGateway(backend)
        gateway.ensure_indices()             # once, at process start
        result = gateway.ingest(store, prefixes)
    """

    def __init__(self, backend: SearchBackend, upsert: bool = False, batch_size: int = 1):
        """
        Args:
            backend: Durable store
            upsert: Key records by content hash instead of duplicating them
            batch_size: Statements per write; 1 writes each record individually
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.backend = backend
        self.upsert = upsert
        self.batch_size = batch_size

    def ensure_indices(self) -> List[str]:
        """Create the triples and prefixes collections if missing."""
        try:
            return ensure_indices(self.backend, (TRIPLES_INDEX, PREFIXES_INDEX))
        except StoreError as e:
            raise IngestError(f"Could not prepare indices: {e.message}") from e

    def ingest(
        self,
        statements: Iterable[Statement],
        prefixes: Optional[PrefixTable] = None,
        deadline: Optional[float] = None,
    ) -> IngestResult:
        """
        Index statements and their prefix table.

        Args:
            statements: Statements in document order (e.g. a GraphStore)
            prefixes: Final prefix snapshot of the parse session
            deadline: time.monotonic() value after which no more writes
                are issued

        Returns:
            IngestResult with the number of statement records written

        Raises:
            IngestError: Store failure, failed flush or deadline; ``written``
                tells how many statement records were already indexed
        """
        start = time.monotonic()
        result = IngestResult()
        try:
            for batch in self._batches(statements):
                if deadline is not None and time.monotonic() > deadline:
                    raise IngestError(
                        f"Ingest deadline exceeded after {result.statements} statements",
                        written=result.statements,
                    )
                result.statements += self._write(batch, result.statements)

            if prefixes is not None and not prefixes.is_empty():
                try:
                    self.backend.index_document(PREFIXES_INDEX, PrefixRecord(prefixes).to_source())
                except StoreError as e:
                    raise IngestError(f"Failed to index prefixes: {e.message}", written=result.statements) from e
                result.prefix_record = True
        except Exception:
            # Keep what was written before the failure
            try:
                self.backend.flush((TRIPLES_INDEX, PREFIXES_INDEX))
            except StoreError as e:
                logger.warning(f"Flush after failed ingest failed: {e.message}")
            raise

        try:
            self.backend.flush((TRIPLES_INDEX, PREFIXES_INDEX))
        except StoreError as e:
            raise IngestError(
                f"Failed to persist indexed records: {e.message}",
                written=result.statements,
            ) from e

        result.elapsed_seconds = time.monotonic() - start
        logger.info(
            f"Indexed {result.statements} statements"
            + (" and 1 prefix record" if result.prefix_record else "")
            + f" in {result.elapsed_seconds:.2f}s"
        )
        return result

    def _batches(self, statements: Iterable[Statement]) -> Iterator[List[Tuple[Optional[str], dict]]]:
        batch: List[Tuple[Optional[str], dict]] = []
        for statement in statements:
            record = statement.to_record()
            batch.append((record_id(record) if self.upsert else None, record.to_source()))
            if len(batch) >= self.batch_size:
                yield batch
                batch = []
        if batch:
            yield batch

    def _write(self, batch: List[Tuple[Optional[str], dict]], written: int) -> int:
        try:
            if self.batch_size == 1:
                doc_id, document = batch[0]
                self.backend.index_document(TRIPLES_INDEX, document, doc_id)
                return 1
            return self.backend.bulk_index(TRIPLES_INDEX, batch)
        except StoreError as e:
            raise IngestError(
                f"Failed to index statement {written + e.written + 1}: {e.message}",
                written=written + e.written,
            ) from e
