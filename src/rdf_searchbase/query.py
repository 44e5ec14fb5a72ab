"""
Query and match engine over indexed statements.

Two entry points:
- free_text_search: relevance-ranked search across subject, predicate
  and object
- structured_match: AND of per-field matches, returned together with the
  most recent prefix snapshot for serialization

Field matches are analyzed text matches (tokenized, case-insensitive),
not exact string comparison; all tokens of a supplied field value must
occur in that field.

Prefix snapshots are not linked to the statements they came with. The
engine pairs results with the newest snapshot by ``created_at``, so
documents ingested later win the namespace context of earlier ones.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from rdf_searchbase.errors import QueryError, ValidationError
from rdf_searchbase.models import PrefixRecord, PrefixTable, TripleRecord
from rdf_searchbase.storage.backend import PREFIXES_INDEX, TRIPLES_INDEX, SearchBackend

logger = logging.getLogger(__name__)

SEARCH_FIELDS = ["subject", "predicate", "object"]


@dataclass
class MatchResult:
    """Matched records plus the namespace context to render them with."""
    records: List[TripleRecord] = field(default_factory=list)
    prefixes: PrefixTable = field(default_factory=PrefixTable)

    def __len__(self) -> int:
        return len(self.records)


class QueryEngine:
    """
    Translates filters into index queries.

    Example:
        engine = QueryEngine(backend)
        hits = engine.free_text_search("alice")
        result = engine.structured_match(predicate="http://xmlns.com/foaf/0.1/name")
    """

    def __init__(self, backend: SearchBackend, default_size: int = 10):
        """
        Args:
            backend: Durable store to query
            default_size: Hits returned when a call gives no size
        """
        self.backend = backend
        self.default_size = default_size

    def free_text_search(self, query: str, size: Optional[int] = None) -> List[TripleRecord]:
        """
        Rank statements by relevance of ``query`` across all three fields.

        Raises:
            QueryError: If the query string is empty
        """
        if query is None or not str(query).strip():
            raise QueryError('Query parameter "q" is required')

        body = {"multi_match": {"query": query, "fields": SEARCH_FIELDS}}
        hits = self.backend.search(TRIPLES_INDEX, body, size=size or self.default_size)
        logger.debug(f"Free-text search {query!r} returned {len(hits)} hits")
        return [TripleRecord.from_source(h.source, record_id=h.id, score=h.score) for h in hits]

    def build_match_query(
        self,
        subject: Optional[str] = None,
        predicate: Optional[str] = None,
        object: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Build the bool query for a structured filter.

        Raises:
            ValidationError: If no field is supplied
        """
        supplied = {"subject": subject, "predicate": predicate, "object": object}
        must = [
            {"match": {name: {"query": value, "operator": "and"}}}
            for name, value in supplied.items()
            if value
        ]
        if not must:
            raise ValidationError(
                "At least one of subject, predicate, or object query parameters is required"
            )
        return {"bool": {"must": must}}

    def structured_match(
        self,
        subject: Optional[str] = None,
        predicate: Optional[str] = None,
        object: Optional[str] = None,
        size: Optional[int] = None,
    ) -> MatchResult:
        """
        Find statements matching every supplied field.

        Returns:
            MatchResult with the matched records and the latest prefixes

        Raises:
            ValidationError: If no field is supplied
        """
        body = self.build_match_query(subject, predicate, object)
        hits = self.backend.search(TRIPLES_INDEX, body, size=size or self.default_size)
        records = [TripleRecord.from_source(h.source, record_id=h.id, score=h.score) for h in hits]
        logger.debug(f"Structured match {body} returned {len(records)} records")
        return MatchResult(records=records, prefixes=self.latest_prefixes())

    def latest_prefixes(self) -> PrefixTable:
        """The newest prefix snapshot, or an empty table if none is stored."""
        hits = self.backend.search(
            PREFIXES_INDEX,
            {"match_all": {}},
            size=1,
            sort=[{"created_at": {"order": "desc", "unmapped_type": "date"}}],
        )
        if not hits:
            return PrefixTable()
        return PrefixRecord.from_source(hits[0].source, record_id=hits[0].id).prefixes
