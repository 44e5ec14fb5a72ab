"""
Service facade wiring the ingest and query pipelines.

    raw document -> StreamingGraphParser -> GraphStore + PrefixTable
                 -> IndexingGateway -> search index

    filter -> QueryEngine -> records + PrefixTable
           -> GraphSerializer -> serialized document

One service (and one backend client) is created per process and shared by
all requests; each call works on its own parse session and results.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import IO, List, Optional, Union

from rdf_searchbase.config import Settings
from rdf_searchbase.formats.dialects import RDFDialect, dialect_for_filename
from rdf_searchbase.formats.parser import StreamingGraphParser
from rdf_searchbase.formats.serializer import GraphSerializer
from rdf_searchbase.gateway import IndexingGateway, IngestResult
from rdf_searchbase.models import TripleRecord
from rdf_searchbase.query import MatchResult, QueryEngine
from rdf_searchbase.storage.backend import SearchBackend
from rdf_searchbase.storage.local import LocalSearchBackend

logger = logging.getLogger(__name__)


def create_backend(settings: Settings) -> SearchBackend:
    """Build the backend selected by the settings."""
    if settings.backend == "elasticsearch":
        from rdf_searchbase.storage.elastic import ElasticsearchBackend
        return ElasticsearchBackend.connect(settings.es_node, settings.es_username, settings.es_password)
    return LocalSearchBackend(settings.data_dir)


class TripleIndexService:
    """
    Ingest, search and reconstruct RDF through one backend.

    Example:
        service = TripleIndexService(LocalSearchBackend())
        service.start()
        service.ingest_document(b"<http://ex/a> <http://ex/b> <http://ex/c> .", RDFDialect.NTRIPLES)
        turtle = service.query_document(subject="http://ex/a")
    """

    def __init__(
        self,
        backend: SearchBackend,
        parser: Optional[StreamingGraphParser] = None,
        serializer: Optional[GraphSerializer] = None,
        upsert: bool = False,
        batch_size: int = 1,
        default_size: int = 10,
    ):
        self.backend = backend
        self.parser = parser or StreamingGraphParser()
        self.serializer = serializer or GraphSerializer()
        self.gateway = IndexingGateway(backend, upsert=upsert, batch_size=batch_size)
        self.engine = QueryEngine(backend, default_size=default_size)

    @classmethod
    def from_settings(cls, settings: Settings, backend: Optional[SearchBackend] = None) -> "TripleIndexService":
        return cls(
            backend or create_backend(settings),
            parser=StreamingGraphParser(base_iri=settings.base_iri),
            upsert=settings.upsert,
            batch_size=settings.batch_size,
            default_size=settings.default_size,
        )

    def start(self) -> None:
        """Prepare the index collections. Call once at process start."""
        created = self.gateway.ensure_indices()
        logger.debug(f"Indices ready ({len(created)} created)")

    # -------------------------------------------------------------------------
    # Ingest
    # -------------------------------------------------------------------------

    def ingest_document(
        self,
        source: Union[bytes, str, IO[bytes], IO[str]],
        dialect: RDFDialect,
        deadline: Optional[float] = None,
    ) -> IngestResult:
        """
        Parse a whole document, then index it.

        The document is fully parsed before the first write, so a
        ParseError leaves the index untouched.
        """
        store, prefixes = self.parser.parse_to_graph(source, dialect)
        return self.gateway.ingest(store, prefixes, deadline=deadline)

    def ingest_file(self, path: Union[str, Path], deadline: Optional[float] = None) -> IngestResult:
        """Ingest a file, choosing the dialect from its extension."""
        path = Path(path)
        dialect = dialect_for_filename(path.name)
        with open(path, "rb") as f:
            return self.ingest_document(f, dialect, deadline=deadline)

    # -------------------------------------------------------------------------
    # Query
    # -------------------------------------------------------------------------

    def search(self, query: str, size: Optional[int] = None) -> List[TripleRecord]:
        return self.engine.free_text_search(query, size=size)

    def match(
        self,
        subject: Optional[str] = None,
        predicate: Optional[str] = None,
        object: Optional[str] = None,
        size: Optional[int] = None,
    ) -> MatchResult:
        return self.engine.structured_match(subject, predicate, object, size=size)

    def query_document(
        self,
        subject: Optional[str] = None,
        predicate: Optional[str] = None,
        object: Optional[str] = None,
        dialect: RDFDialect = RDFDialect.TURTLE,
        size: Optional[int] = None,
    ) -> str:
        """Match statements and serialize them with the latest prefixes."""
        result = self.match(subject, predicate, object, size=size)
        return self.serializer.serialize(result.records, result.prefixes, dialect)

    def close(self) -> None:
        self.backend.close()
