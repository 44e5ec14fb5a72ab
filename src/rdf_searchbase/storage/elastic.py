"""
Elasticsearch search backend.

Thin adapter over the official ``elasticsearch`` client. The client is
created once per process and shared; it is thread-safe.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from elasticsearch import ApiError, Elasticsearch, TransportError, helpers

from rdf_searchbase.errors import StoreError
from rdf_searchbase.storage.backend import (
    PREFIXES_INDEX,
    TRIPLES_INDEX,
    Document,
    SearchBackend,
    SearchHit,
)

logger = logging.getLogger(__name__)

_CLIENT_ERRORS = (ApiError, TransportError)


class ElasticsearchBackend(SearchBackend):
    """
    Search backend on an Elasticsearch cluster.

    Example:
        backend = ElasticsearchBackend.connect("https://localhost:9200", "elastic", "secret")
    """

    def __init__(self, client: Elasticsearch):
        """
        Args:
            client: A configured Elasticsearch client
        """
        self.client = client

    @classmethod
    def connect(
        cls,
        node: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        **client_options: Any,
    ) -> "ElasticsearchBackend":
        """Create a backend with a new client for ``node``."""
        if username:
            client_options["basic_auth"] = (username, password or "")
        return cls(Elasticsearch(node, **client_options))

    def index_exists(self, index: str) -> bool:
        try:
            return bool(self.client.indices.exists(index=index))
        except _CLIENT_ERRORS as e:
            raise StoreError(f"Could not check index {index}: {e}") from e

    def create_index(self, index: str, mappings: Optional[Dict[str, Any]] = None) -> None:
        try:
            if mappings:
                self.client.indices.create(index=index, mappings=mappings)
            else:
                self.client.indices.create(index=index)
        except _CLIENT_ERRORS as e:
            raise StoreError(f"Could not create index {index}: {e}") from e

    def index_document(self, index: str, document: Document, doc_id: Optional[str] = None) -> str:
        try:
            if doc_id is None:
                response = self.client.index(index=index, document=document)
            else:
                response = self.client.index(index=index, id=doc_id, document=document)
        except _CLIENT_ERRORS as e:
            raise StoreError(f"Could not index document into {index}: {e}") from e
        return response["_id"]

    def bulk_index(self, index: str, documents: Sequence[Tuple[Optional[str], Document]]) -> int:
        actions = []
        for doc_id, document in documents:
            action: Dict[str, Any] = {"_index": index, "_source": document}
            if doc_id is not None:
                action["_id"] = doc_id
            actions.append(action)

        written = 0
        try:
            for ok, item in helpers.streaming_bulk(self.client, actions, raise_on_error=False, raise_on_exception=False):
                if not ok:
                    raise StoreError(f"Bulk write to {index} rejected: {item}", written=written)
                written += 1
        except _CLIENT_ERRORS as e:
            raise StoreError(f"Bulk write to {index} failed: {e}", written=written) from e
        return written

    def search(
        self,
        index: str,
        query: Optional[Dict[str, Any]] = None,
        size: int = 10,
        sort: Optional[List[Dict[str, Any]]] = None,
    ) -> List[SearchHit]:
        kwargs: Dict[str, Any] = {"index": index, "size": size}
        if query is not None:
            kwargs["query"] = query
        if sort:
            kwargs["sort"] = sort
        try:
            response = self.client.search(**kwargs)
        except _CLIENT_ERRORS as e:
            raise StoreError(f"Search on {index} failed: {e}") from e

        return [
            SearchHit(
                index=hit.get("_index", index),
                id=hit["_id"],
                source=hit.get("_source") or {},
                score=hit.get("_score"),
            )
            for hit in response["hits"]["hits"]
        ]

    def flush(self, indices: Iterable[str] = (TRIPLES_INDEX, PREFIXES_INDEX)) -> None:
        try:
            self.client.indices.refresh(index=",".join(indices))
        except _CLIENT_ERRORS as e:
            raise StoreError(f"Could not refresh indices: {e}") from e

    def close(self) -> None:
        self.client.close()
