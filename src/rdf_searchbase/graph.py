"""
Session-scoped in-memory graph.

A GraphStore stages the Statements of one parse session before they are
handed to the IndexingGateway. It is owned by a single session, never
shared across requests, and discarded after hand-off.
"""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List

from rdf_searchbase.models import Statement


class GraphStore:
    """
    Insertion-ordered set of Statements.

    An RDF graph is a set: adding a statement that is already present is a
    no-op, so a document stating the same triple twice stages it once.
    Iteration follows first occurrence in the document.
    """

    def __init__(self, statements: Iterable[Statement] = ()):
        self._statements: Dict[Statement, None] = {}
        for statement in statements:
            self.add(statement)

    def add(self, statement: Statement) -> bool:
        """
        Add a statement.

        Returns:
            True if the statement was new, False if already present
        """
        if not isinstance(statement, Statement):
            raise TypeError(f"GraphStore only holds Statements, got {type(statement).__name__}")
        if statement in self._statements:
            return False
        self._statements[statement] = None
        return True

    def __iter__(self) -> Iterator[Statement]:
        return iter(self._statements)

    def __len__(self) -> int:
        return len(self._statements)

    def __contains__(self, statement: object) -> bool:
        return statement in self._statements

    def statements(self) -> List[Statement]:
        """All statements, in insertion order."""
        return list(self._statements)
