"""
Error types for RDF-SearchBase.

Every failure raised by the engine's public operations is one of these.
Client faults (bad input) and server faults (store or internal failures)
are kept apart so the HTTP layer can map them to 400 and 500 responses.
"""
from __future__ import annotations

from typing import Optional


class RDFSearchError(Exception):
    """Base class for all engine errors."""

    client_fault = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidTermError(RDFSearchError, ValueError):
    """An RDF term or statement was built from illegal parts."""

    client_fault = True


class UnsupportedFormatError(RDFSearchError):
    """The document's extension or dialect name is not supported."""

    client_fault = True


class ParseError(RDFSearchError):
    """
    Malformed input document.

    Carries the 1-based line and column of the failure when the
    underlying parser reports them.
    """

    client_fault = True

    def __init__(self, message: str, line: Optional[int] = None, column: Optional[int] = None):
        self.line = line
        self.column = column
        if line is not None:
            where = f"line {line}" + (f", column {column}" if column is not None else "")
            message = f"{message} ({where})"
        super().__init__(message)


class ValidationError(RDFSearchError):
    """The caller supplied no usable filter."""

    client_fault = True


class QueryError(RDFSearchError):
    """Empty or otherwise unusable query string."""

    client_fault = True


class StoreError(RDFSearchError):
    """The durable store is unreachable or rejected a request."""

    def __init__(self, message: str, written: int = 0):
        super().__init__(message)
        self.written = written


class IngestError(RDFSearchError):
    """
    Ingestion stopped before every record was written.

    ``written`` is the number of statement records that were durably
    indexed before the failure. They are not rolled back.
    """

    def __init__(self, message: str, written: int = 0):
        super().__init__(message)
        self.written = written


class SerializeError(RDFSearchError):
    """Matched records could not be rebuilt into a document."""
