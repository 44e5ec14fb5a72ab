"""
RDF term model and record types.

Terms are immutable value objects compared by kind and payload:

- NamedNode: an IRI (or prefixed name) identifying a resource
- Literal: a lexical value with an optional language tag or datatype
- BlankNode: an anonymous node, scoped to one parse session
- DefaultGraph: the marker for statements outside any named graph

Records are the durable, string-only forms written to the search index.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple, Union

from rdf_searchbase.errors import InvalidTermError


XSD_STRING = "http://www.w3.org/2001/XMLSchema#string"
RDF_LANG_STRING = "http://www.w3.org/1999/02/22-rdf-syntax-ns#langString"


class TermKind(str, Enum):
    """RDF term kind."""
    NAMED_NODE = "NamedNode"
    LITERAL = "Literal"
    BLANK_NODE = "BlankNode"
    DEFAULT_GRAPH = "DefaultGraph"


# =============================================================================
# Terms
# =============================================================================

@dataclass(frozen=True, slots=True)
class NamedNode:
    """An IRI-identified resource."""
    value: str

    def __post_init__(self):
        if not self.value:
            raise InvalidTermError("NamedNode IRI must not be empty")

    @property
    def kind(self) -> TermKind:
        return TermKind.NAMED_NODE


@dataclass(frozen=True, slots=True)
class Literal:
    """
    A literal value.

    A literal carries at most one of ``language`` and ``datatype``;
    language-tagged literals have the implicit rdf:langString datatype.
    """
    value: str
    language: Optional[str] = None
    datatype: Optional[str] = None

    def __post_init__(self):
        if self.language and self.datatype and self.datatype != RDF_LANG_STRING:
            raise InvalidTermError(
                f"Literal {self.value!r} cannot have both language "
                f"{self.language!r} and datatype <{self.datatype}>"
            )

    @property
    def kind(self) -> TermKind:
        return TermKind.LITERAL

    @property
    def is_plain(self) -> bool:
        return not self.language and self.datatype in (None, XSD_STRING)


@dataclass(frozen=True, slots=True)
class BlankNode:
    """An anonymous node identified by a session-local label."""
    value: str

    @property
    def kind(self) -> TermKind:
        return TermKind.BLANK_NODE


@dataclass(frozen=True, slots=True)
class DefaultGraph:
    """Marker for the default graph."""

    @property
    def value(self) -> str:
        return ""

    @property
    def kind(self) -> TermKind:
        return TermKind.DEFAULT_GRAPH


DEFAULT_GRAPH = DefaultGraph()

Term = Union[NamedNode, Literal, BlankNode, DefaultGraph]


@dataclass(frozen=True, slots=True)
class Statement:
    """A subject-predicate-object fact, optionally in a named graph."""
    subject: Union[NamedNode, BlankNode]
    predicate: NamedNode
    object: Term
    graph: Term = DEFAULT_GRAPH

    def __post_init__(self):
        if not isinstance(self.subject, (NamedNode, BlankNode)):
            raise InvalidTermError(f"Statement subject must be a NamedNode or BlankNode, got {type(self.subject).__name__}")
        if not isinstance(self.predicate, NamedNode):
            raise InvalidTermError(f"Statement predicate must be a NamedNode, got {type(self.predicate).__name__}")
        if isinstance(self.object, DefaultGraph):
            raise InvalidTermError("Statement object cannot be the default graph")

    def to_record(self) -> "TripleRecord":
        """Flatten to the four-string durable form."""
        return TripleRecord(
            subject=self.subject.value,
            predicate=self.predicate.value,
            object=self.object.value,
            graph=self.graph.value,
        )


# =============================================================================
# Prefixes
# =============================================================================

@dataclass(frozen=True)
class PrefixTable:
    """
    Prefix label to namespace IRI bindings.

    Example:
        prefixes = PrefixTable({"ex": "http://example.com/"})
        prefixes.expand("ex:a")                      # "http://example.com/a"
        prefixes.abbreviate("http://example.com/a")  # ("ex", "a")
    """
    bindings: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "bindings", dict(self.bindings))

    def __len__(self) -> int:
        return len(self.bindings)

    def __iter__(self) -> Iterator[str]:
        return iter(self.bindings)

    def __contains__(self, label: object) -> bool:
        return label in self.bindings

    def __getitem__(self, label: str) -> str:
        return self.bindings[label]

    def is_empty(self) -> bool:
        return not self.bindings

    def items(self):
        return self.bindings.items()

    def expand(self, qname: str) -> str:
        """Expand ``label:local`` to a full IRI; unknown labels pass through."""
        label, sep, local = qname.partition(":")
        if sep and label in self.bindings:
            return self.bindings[label] + local
        return qname

    def abbreviate(self, iri: str) -> Optional[Tuple[str, str]]:
        """
        Find the longest namespace that prefixes ``iri``.

        Returns:
            (label, local part), or None if no namespace matches
        """
        best = None
        for label, namespace in self.bindings.items():
            if namespace and iri.startswith(namespace):
                if best is None or len(namespace) > len(self.bindings[best]):
                    best = label
        if best is None:
            return None
        return best, iri[len(self.bindings[best]):]

    def to_dict(self) -> Dict[str, str]:
        return dict(self.bindings)


# =============================================================================
# Durable records
# =============================================================================

@dataclass(frozen=True)
class TripleRecord:
    """An indexed statement: four strings plus search metadata."""
    subject: str
    predicate: str
    object: str
    graph: str = ""
    record_id: Optional[str] = None
    score: Optional[float] = None

    def to_source(self) -> Dict[str, str]:
        """The document body stored in the index."""
        return {
            "subject": self.subject,
            "predicate": self.predicate,
            "object": self.object,
            "graph": self.graph,
        }

    def to_hit(self, index: str) -> Dict[str, Any]:
        """Search-hit shape returned by the HTTP API."""
        return {
            "_index": index,
            "_id": self.record_id,
            "_score": self.score,
            "_source": self.to_source(),
        }

    @classmethod
    def from_source(
        cls,
        source: Mapping[str, Any],
        record_id: Optional[str] = None,
        score: Optional[float] = None,
    ) -> "TripleRecord":
        return cls(
            subject=str(source.get("subject", "")),
            predicate=str(source.get("predicate", "")),
            object=str(source.get("object", "")),
            graph=str(source.get("graph", "") or ""),
            record_id=record_id,
            score=score,
        )


@dataclass(frozen=True)
class PrefixRecord:
    """One stored PrefixTable snapshot."""
    prefixes: PrefixTable
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    record_id: Optional[str] = None

    def to_source(self) -> Dict[str, Any]:
        return {
            "prefixes": self.prefixes.to_dict(),
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_source(cls, source: Mapping[str, Any], record_id: Optional[str] = None) -> "PrefixRecord":
        created = source.get("created_at")
        if isinstance(created, str):
            created_at = datetime.fromisoformat(created)
        elif isinstance(created, datetime):
            created_at = created
        else:
            created_at = datetime.fromtimestamp(0, timezone.utc)
        bindings = source.get("prefixes")
        if bindings is None:
            # Snapshot stored as a bare label -> IRI map
            bindings = {k: v for k, v in source.items() if k != "created_at"}
        return cls(
            prefixes=PrefixTable({str(k): str(v) for k, v in bindings.items()}),
            created_at=created_at,
            record_id=record_id,
        )
