"""
RDF-SearchBase: full-text search over RDF statements.

Streams RDF documents into a search index, one record per statement,
and rebuilds serialized RDF from matched statements on query.
"""

__version__ = "0.1.0"

from rdf_searchbase.errors import (
    RDFSearchError,
    InvalidTermError,
    UnsupportedFormatError,
    ParseError,
    ValidationError,
    QueryError,
    StoreError,
    IngestError,
    SerializeError,
)
from rdf_searchbase.models import (
    TermKind,
    NamedNode,
    Literal,
    BlankNode,
    DefaultGraph,
    DEFAULT_GRAPH,
    Statement,
    PrefixTable,
    TripleRecord,
    PrefixRecord,
)
from rdf_searchbase.graph import GraphStore
from rdf_searchbase.formats import (
    RDFDialect,
    StreamingGraphParser,
    GraphSerializer,
    dialect_for_filename,
    parse_rdf,
    parse_to_graph,
    serialize_records,
)
from rdf_searchbase.gateway import IndexingGateway, IngestResult
from rdf_searchbase.query import QueryEngine, MatchResult
from rdf_searchbase.config import Settings, ConfigValidationError
from rdf_searchbase.service import TripleIndexService, create_backend

__all__ = [
    # Errors
    "RDFSearchError",
    "InvalidTermError",
    "UnsupportedFormatError",
    "ParseError",
    "ValidationError",
    "QueryError",
    "StoreError",
    "IngestError",
    "SerializeError",
    # Term model
    "TermKind",
    "NamedNode",
    "Literal",
    "BlankNode",
    "DefaultGraph",
    "DEFAULT_GRAPH",
    "Statement",
    "PrefixTable",
    "TripleRecord",
    "PrefixRecord",
    "GraphStore",
    # Formats
    "RDFDialect",
    "StreamingGraphParser",
    "GraphSerializer",
    "dialect_for_filename",
    "parse_rdf",
    "parse_to_graph",
    "serialize_records",
    # Pipeline
    "IndexingGateway",
    "IngestResult",
    "QueryEngine",
    "MatchResult",
    "TripleIndexService",
    "create_backend",
    # Configuration
    "Settings",
    "ConfigValidationError",
]
