"""
RDF serialization dialects and filename extension mapping.
"""

from enum import Enum
from pathlib import PurePath
from typing import Dict

from rdf_searchbase.errors import UnsupportedFormatError


class RDFDialect(str, Enum):
    """Concrete RDF syntaxes handled by the parser and serializer."""
    NTRIPLES = "N-Triples"
    TURTLE = "Turtle"
    RDFXML = "RDF/XML"

    @property
    def media_type(self) -> str:
        return MEDIA_TYPES[self]


# Upload extensions accepted for ingestion
FORMAT_EXTENSIONS: Dict[str, RDFDialect] = {
    "nt": RDFDialect.NTRIPLES,
    "rdf": RDFDialect.RDFXML,
    "ttl": RDFDialect.TURTLE,
}

MEDIA_TYPES: Dict[RDFDialect, str] = {
    RDFDialect.NTRIPLES: "application/n-triples",
    RDFDialect.TURTLE: "text/turtle",
    RDFDialect.RDFXML: "application/rdf+xml",
}

# Names accepted for the output ``format`` parameter
_DIALECT_NAMES: Dict[str, RDFDialect] = {
    "ntriples": RDFDialect.NTRIPLES,
    "nt": RDFDialect.NTRIPLES,
    "turtle": RDFDialect.TURTLE,
    "ttl": RDFDialect.TURTLE,
    "rdfxml": RDFDialect.RDFXML,
    "rdf": RDFDialect.RDFXML,
    "xml": RDFDialect.RDFXML,
}


def dialect_for_filename(filename: str) -> RDFDialect:
    """
    Map an uploaded file's extension to its dialect.

    Raises:
        UnsupportedFormatError: for any extension other than .nt, .rdf, .ttl
    """
    suffix = PurePath(filename or "").suffix.lower().lstrip(".")
    try:
        return FORMAT_EXTENSIONS[suffix]
    except KeyError:
        raise UnsupportedFormatError(f"Unsupported file format: {filename!r}") from None


def dialect_from_name(name: str) -> RDFDialect:
    """Resolve a user-supplied format name such as 'turtle' or 'N-Triples'."""
    key = name.lower().replace("-", "").replace("_", "").replace("/", "").replace(" ", "")
    try:
        return _DIALECT_NAMES[key]
    except KeyError:
        raise UnsupportedFormatError(f"Unsupported format: {name!r}") from None
