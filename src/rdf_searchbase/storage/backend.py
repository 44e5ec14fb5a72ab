"""
Search backend interface.

The durable store holds two collections:
- rdf_triples: one document per statement (subject, predicate, object, graph)
- rdf_prefixes: one document per prefix-table snapshot

Queries use a small subset of the Elasticsearch query DSL so the same
query bodies run against a cluster or the local backend:

    {"match_all": {}}
    {"match": {"subject": {"query": "...", "operator": "and"}}}
    {"multi_match": {"query": "...", "fields": ["subject", "predicate"]}}
    {"bool": {"must": [<query>, ...]}}
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


TRIPLES_INDEX = "rdf_triples"
PREFIXES_INDEX = "rdf_prefixes"

_TEXT_WITH_KEYWORD = {
    "type": "text",
    "fields": {"keyword": {"type": "keyword", "ignore_above": 8191}},
}

INDEX_MAPPINGS: Dict[str, Dict[str, Any]] = {
    TRIPLES_INDEX: {
        "properties": {
            "subject": _TEXT_WITH_KEYWORD,
            "predicate": _TEXT_WITH_KEYWORD,
            "object": _TEXT_WITH_KEYWORD,
            "graph": {"type": "keyword"},
        }
    },
    PREFIXES_INDEX: {
        "properties": {
            "created_at": {"type": "date"},
            "prefixes": {"type": "object", "enabled": False},
        }
    },
}

Document = Dict[str, Any]


@dataclass
class SearchHit:
    """One document returned by a search."""
    index: str
    id: str
    source: Document = field(default_factory=dict)
    score: Optional[float] = None


class SearchBackend(ABC):
    """
    Durable full-text store.

    Implementations must be safe to share across concurrent requests.
    Errors talking to the store are raised as StoreError.
    """

    @abstractmethod
    def index_exists(self, index: str) -> bool:
        """Check whether a collection exists."""

    @abstractmethod
    def create_index(self, index: str, mappings: Optional[Dict[str, Any]] = None) -> None:
        """Create a collection."""

    @abstractmethod
    def index_document(self, index: str, document: Document, doc_id: Optional[str] = None) -> str:
        """
        Write one document.

        Args:
            index: Collection name
            document: Document body
            doc_id: Explicit id; an existing document with this id is replaced

        Returns:
            The document id
        """

    @abstractmethod
    def bulk_index(self, index: str, documents: Sequence[Tuple[Optional[str], Document]]) -> int:
        """
        Write a batch of (doc_id, document) pairs in order.

        Returns:
            Number of documents written

        Raises:
            StoreError: with ``written`` set to the number of documents that
                were stored before the failure
        """

    @abstractmethod
    def search(
        self,
        index: str,
        query: Optional[Dict[str, Any]] = None,
        size: int = 10,
        sort: Optional[List[Dict[str, Any]]] = None,
    ) -> List[SearchHit]:
        """Run a query and return at most ``size`` hits, best first."""

    def flush(self, indices: Iterable[str] = (TRIPLES_INDEX, PREFIXES_INDEX)) -> None:
        """Make recent writes durable and visible to searches."""

    def close(self) -> None:
        """Release the client."""


def ensure_indices(backend: SearchBackend, indices: Iterable[str] = (TRIPLES_INDEX, PREFIXES_INDEX)) -> List[str]:
    """
    Create the given collections if they are missing.

    Idempotent; meant to run once at process start.

    Returns:
        Names of the collections that were created
    """
    created = []
    for index in indices:
        if not backend.index_exists(index):
            backend.create_index(index, INDEX_MAPPINGS.get(index))
            logger.info(f"Created index: {index}")
            created.append(index)
    return created
