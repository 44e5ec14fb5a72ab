"""
RDF-SearchBase Storage Layer.

Durable full-text collections for statement and prefix records, behind
one backend interface with a local (Polars/Parquet) and an Elasticsearch
implementation.
"""

from rdf_searchbase.storage.backend import (
    TRIPLES_INDEX,
    PREFIXES_INDEX,
    INDEX_MAPPINGS,
    SearchBackend,
    SearchHit,
    ensure_indices,
)
from rdf_searchbase.storage.local import LocalSearchBackend, analyze

__all__ = [
    "TRIPLES_INDEX",
    "PREFIXES_INDEX",
    "INDEX_MAPPINGS",
    "SearchBackend",
    "SearchHit",
    "ensure_indices",
    "LocalSearchBackend",
    "analyze",
    # Elasticsearch (import from rdf_searchbase.storage.elastic)
    "ElasticsearchBackend",
]


def __getattr__(name):
    if name == "ElasticsearchBackend":
        from rdf_searchbase.storage.elastic import ElasticsearchBackend
        return ElasticsearchBackend
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
