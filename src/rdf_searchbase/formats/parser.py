"""
Streaming RDF parser.

Wraps Oxigraph's (Rust) incremental parser and converts its quads into
the engine's Statement model as they are read. Nothing is buffered: the
first Statement is available as soon as the first triple in the input is
syntactically complete, so large uploads parse in bounded memory.

The parse is a single pass that yields each Statement in document order
and then exactly one PrefixTable, the final snapshot of the document's
prefix declarations:

    parser = StreamingGraphParser()
    for item in parser.parse(stream, RDFDialect.TURTLE):
        if isinstance(item, PrefixTable):
            prefixes = item
        else:
            store.add(item)

Supported dialects: N-Triples, Turtle, RDF/XML.
"""

from __future__ import annotations

import logging
from typing import IO, Iterator, Optional, Tuple, Union

import pyoxigraph
from pyoxigraph import RdfFormat

from rdf_searchbase.errors import InvalidTermError, ParseError
from rdf_searchbase.formats.dialects import RDFDialect
from rdf_searchbase.graph import GraphStore
from rdf_searchbase.models import (
    DEFAULT_GRAPH,
    BlankNode,
    Literal,
    NamedNode,
    PrefixTable,
    Statement,
    Term,
    XSD_STRING,
)

logger = logging.getLogger(__name__)


Source = Union[bytes, str, IO[bytes], IO[str]]

OXIGRAPH_FORMATS = {
    RDFDialect.NTRIPLES: RdfFormat.N_TRIPLES,
    RDFDialect.TURTLE: RdfFormat.TURTLE,
    RDFDialect.RDFXML: RdfFormat.RDF_XML,
}


def _convert_term(term) -> Term:
    """Convert an Oxigraph term into the engine's term model."""
    if isinstance(term, pyoxigraph.NamedNode):
        return NamedNode(term.value)
    if isinstance(term, pyoxigraph.BlankNode):
        return BlankNode(term.value)
    if isinstance(term, pyoxigraph.Literal):
        if term.language:
            return Literal(term.value, language=term.language)
        datatype = term.datatype.value if term.datatype is not None else None
        if datatype == XSD_STRING:
            datatype = None
        return Literal(term.value, datatype=datatype)
    if isinstance(term, pyoxigraph.DefaultGraph):
        return DEFAULT_GRAPH
    raise InvalidTermError(f"Unsupported term {term!r} (RDF-star quoted triples are not supported)")


def quad_to_statement(quad) -> Statement:
    """Convert one Oxigraph Quad to a Statement."""
    return Statement(
        subject=_convert_term(quad.subject),
        predicate=_convert_term(quad.predicate),
        object=_convert_term(quad.object),
        graph=_convert_term(quad.graph_name),
    )


class StreamingGraphParser:
    """
    Incremental parser producing Statements and a final PrefixTable.

    Each call to parse() is an independent session: blank node labels are
    renamed to fresh identifiers, so identical labels in two documents
    (or two parses of the same document) never denote the same node.
    """

    def __init__(self, base_iri: Optional[str] = None):
        """
        Args:
            base_iri: Base IRI for resolving relative IRIs in the input
        """
        self.base_iri = base_iri

    def parse(self, source: Source, dialect: RDFDialect) -> Iterator[Union[Statement, PrefixTable]]:
        """
        Lazily parse an RDF document.

        Args:
            source: Document as bytes, str, or a binary/text file object
            dialect: Syntax of the document (never sniffed from content)

        Yields:
            Statement objects in document order, then one PrefixTable

        Raises:
            ParseError: On malformed input, with line/column when known
        """
        try:
            rdf_format = OXIGRAPH_FORMATS[RDFDialect(dialect)]
        except (KeyError, ValueError):
            raise ParseError(f"Unsupported dialect: {dialect!r}") from None

        count = 0
        try:
            reader = pyoxigraph.parse(
                source,
                rdf_format,
                base_iri=self.base_iri,
                rename_blank_nodes=True,
            )
            for quad in reader:
                yield quad_to_statement(quad)
                count += 1
            prefixes = PrefixTable(reader.prefixes)
        except SyntaxError as e:
            raise ParseError(
                f"Invalid {RDFDialect(dialect).value} document: {e.msg}",
                line=e.lineno,
                column=e.offset,
            ) from e
        except InvalidTermError as e:
            raise ParseError(f"Invalid statement after {count} statements: {e.message}") from e
        except (OSError, ValueError) as e:
            raise ParseError(f"Could not read {RDFDialect(dialect).value} document: {e}") from e

        logger.debug(f"Parsed {count} statements and {len(prefixes)} prefixes ({RDFDialect(dialect).value})")
        yield prefixes

    def parse_to_graph(self, source: Source, dialect: RDFDialect) -> Tuple[GraphStore, PrefixTable]:
        """
        Parse a whole document into a session GraphStore.

        The session is atomic: on a ParseError no partial graph is
        returned.

        Returns:
            Tuple of (GraphStore, PrefixTable)
        """
        store = GraphStore()
        prefixes = PrefixTable()
        for item in self.parse(source, dialect):
            if isinstance(item, PrefixTable):
                prefixes = item
            else:
                store.add(item)
        return store, prefixes


def parse_rdf(
    source: Source,
    dialect: RDFDialect,
    base_iri: Optional[str] = None,
) -> Iterator[Union[Statement, PrefixTable]]:
    """
    Lazily parse an RDF document.

    Args:
        source: Document content or file object
        dialect: Document syntax
        base_iri: Optional base IRI

    Yields:
        Statements, then one PrefixTable
    """
    return StreamingGraphParser(base_iri).parse(source, dialect)


def parse_to_graph(
    source: Source,
    dialect: RDFDialect,
    base_iri: Optional[str] = None,
) -> Tuple[GraphStore, PrefixTable]:
    """
    Parse a whole document into a GraphStore plus its PrefixTable.

    Args:
        source: Document content or file object
        dialect: Document syntax
        base_iri: Optional base IRI

    Returns:
        Tuple of (GraphStore, PrefixTable)
    """
    return StreamingGraphParser(base_iri).parse_to_graph(source, dialect)
