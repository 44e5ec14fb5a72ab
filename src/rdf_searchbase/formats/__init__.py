"""
RDF parsing and serialization.

Supports:
- N-Triples (.nt)
- Turtle (.ttl)
- RDF/XML (.rdf)
"""

from rdf_searchbase.formats.dialects import (
    RDFDialect,
    FORMAT_EXTENSIONS,
    dialect_for_filename,
    dialect_from_name,
)
from rdf_searchbase.formats.parser import StreamingGraphParser, parse_rdf, parse_to_graph
from rdf_searchbase.formats.serializer import GraphSerializer, serialize_records

__all__ = [
    "RDFDialect",
    "FORMAT_EXTENSIONS",
    "dialect_for_filename",
    "dialect_from_name",
    # Parsing
    "StreamingGraphParser",
    "parse_rdf",
    "parse_to_graph",
    # Serialization
    "GraphSerializer",
    "serialize_records",
]
