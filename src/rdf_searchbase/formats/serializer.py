"""
Graph serializer: rebuild RDF documents from indexed records.

Matched TripleRecords are turned back into statements with the subject
and predicate as IRIs and the object as a plain literal. The index keeps
only strings, so whether an object was originally an IRI, a blank node
or a typed literal is not recoverable. This round-trip is lossy by
construction: an object IRI comes back as a string literal.

Output dialects:
- Turtle: prefix declarations, prefixed names, grouped subjects
- N-Triples: one absolute statement per line, no prefixes
- RDF/XML: prefixes become xmlns declarations, one rdf:Description
  per run of statements about the same subject
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional, Tuple

from rdf_searchbase.errors import InvalidTermError, SerializeError
from rdf_searchbase.formats.dialects import RDFDialect
from rdf_searchbase.models import (
    BlankNode,
    Literal,
    NamedNode,
    PrefixTable,
    Statement,
    TripleRecord,
)


RDF_NS = "http://www.w3.org/1999/02/22-rdf-syntax-ns#"

# Turtle PN_PREFIX / PN_LOCAL, restricted to ASCII
_PREFIX_LABEL = re.compile(r"^(?:[A-Za-z](?:[A-Za-z0-9_.\-]*[A-Za-z0-9_\-])?)?$")
_LOCAL_NAME = re.compile(r"^(?:[A-Za-z0-9_](?:[A-Za-z0-9_.\-]*[A-Za-z0-9_\-])?)?$")
# XML NCName, restricted to ASCII
_NCNAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_.\-]*$")

_IRI_FORBIDDEN = set('<>"{}|^`\\')
# Characters outside the XML 1.0 Char production
_XML_FORBIDDEN = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]")

_LITERAL_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}

Group = Tuple[object, List[Tuple[NamedNode, list]]]


def _group_statements(statements: Iterable[Statement]) -> List[Group]:
    """Group consecutive statements by subject, then by predicate."""
    groups: List[Group] = []
    for st in statements:
        if groups and groups[-1][0] == st.subject:
            predicates = groups[-1][1]
            if predicates[-1][0] == st.predicate:
                predicates[-1][1].append(st.object)
            else:
                predicates.append((st.predicate, [st.object]))
        else:
            groups.append((st.subject, [(st.predicate, [st.object])]))
    return groups


class GraphSerializer:
    """
    Serializer for matched statement records.

    Serialization is all-or-nothing: every record is validated before any
    output is produced, and a SerializeError is raised instead of a
    partial document.
    """

    def serialize(
        self,
        records: Iterable[TripleRecord],
        prefixes: Optional[PrefixTable] = None,
        dialect: RDFDialect = RDFDialect.TURTLE,
    ) -> str:
        """
        Serialize records to a complete document.

        Args:
            records: Matched statement records
            prefixes: Namespace bindings to declare and abbreviate with
            dialect: Output syntax

        Returns:
            The serialized document

        Raises:
            SerializeError: If a record cannot form a valid statement
        """
        statements = [self.record_to_statement(r) for r in records]
        prefixes = prefixes or PrefixTable()

        dialect = RDFDialect(dialect)
        if dialect == RDFDialect.TURTLE:
            return self._serialize_turtle(statements, prefixes)
        if dialect == RDFDialect.NTRIPLES:
            return self._serialize_ntriples(statements)
        return self._serialize_rdfxml(statements, prefixes)

    def record_to_statement(self, record: TripleRecord) -> Statement:
        """Rebuild a statement: IRI subject and predicate, literal object."""
        name = f"Record {record.record_id}" if record.record_id else "Record"
        if not record.subject:
            raise SerializeError(f"{name} has an empty subject")
        if not record.predicate:
            raise SerializeError(f"{name} has an empty predicate")
        try:
            return Statement(
                subject=NamedNode(record.subject),
                predicate=NamedNode(record.predicate),
                object=Literal(record.object),
            )
        except InvalidTermError as e:
            raise SerializeError(f"Inconsistent record: {e.message}") from e

    # -------------------------------------------------------------------------
    # Turtle / N-Triples
    # -------------------------------------------------------------------------

    def _serialize_turtle(self, statements: List[Statement], prefixes: PrefixTable) -> str:
        usable = PrefixTable({
            label: ns for label, ns in sorted(prefixes.items())
            if _PREFIX_LABEL.match(label) and ns
        })

        lines = [f"@prefix {label}: {self._format_iri(ns)} ." for label, ns in usable.items()]
        if lines and statements:
            lines.append("")

        for subject, predicates in _group_statements(statements):
            parts = []
            for predicate, objects in predicates:
                objs = ", ".join(self._format_term(o, usable) for o in objects)
                parts.append(f"{self._format_term(predicate, usable)} {objs}")
            lines.append(f"{self._format_term(subject, usable)} " + " ;\n    ".join(parts) + " .")

        return "\n".join(lines) + "\n" if lines else ""

    def _serialize_ntriples(self, statements: List[Statement]) -> str:
        lines = [
            f"{self._format_term(st.subject)} {self._format_term(st.predicate)} {self._format_term(st.object)} ."
            for st in statements
        ]
        return "\n".join(lines) + "\n" if lines else ""

    def _format_term(self, term, prefixes: Optional[PrefixTable] = None) -> str:
        if isinstance(term, NamedNode):
            if prefixes is not None:
                abbreviated = prefixes.abbreviate(term.value)
                if abbreviated and _LOCAL_NAME.match(abbreviated[1]):
                    return f"{abbreviated[0]}:{abbreviated[1]}"
            return self._format_iri(term.value)
        if isinstance(term, BlankNode):
            return f"_:{term.value}"
        if isinstance(term, Literal):
            text = f'"{self._escape_literal(term.value)}"'
            if term.language:
                return f"{text}@{term.language}"
            if not term.is_plain:
                return f"{text}^^{self._format_term(NamedNode(term.datatype), prefixes)}"
            return text
        raise SerializeError(f"Cannot serialize term {term!r}")

    def _format_iri(self, iri: str) -> str:
        escaped = "".join(
            f"\\u{ord(ch):04X}" if ch in _IRI_FORBIDDEN or ord(ch) <= 0x20 else ch
            for ch in iri
        )
        return f"<{escaped}>"

    def _escape_literal(self, value: str) -> str:
        return "".join(_LITERAL_ESCAPES.get(ch, ch) for ch in value)

    # -------------------------------------------------------------------------
    # RDF/XML
    # -------------------------------------------------------------------------

    def _serialize_rdfxml(self, statements: List[Statement], prefixes: PrefixTable) -> str:
        namespaces: Dict[str, str] = {"rdf": RDF_NS}
        for label, ns in sorted(prefixes.items()):
            # Names starting with "xml" are reserved
            if label and label != "rdf" and not label.lower().startswith("xml") and _NCNAME.match(label) and ns:
                namespaces[label] = ns

        # Resolve every predicate before writing anything
        qnames = {st.predicate.value: self._xml_qname(st.predicate.value, namespaces) for st in statements}

        lines = ['<?xml version="1.0" encoding="utf-8"?>']
        declarations = " ".join(
            f'xmlns:{label}="{self._escape_xml(ns)}"' for label, ns in namespaces.items()
        )
        lines.append(f"<rdf:RDF {declarations}>")

        for subject, predicates in _group_statements(statements):
            if isinstance(subject, BlankNode):
                lines.append(f'  <rdf:Description rdf:nodeID="{self._escape_xml(subject.value)}">')
            else:
                lines.append(f'  <rdf:Description rdf:about="{self._escape_xml(subject.value)}">')
            for predicate, objects in predicates:
                qname = qnames[predicate.value]
                for obj in objects:
                    lines.append(f"    {self._xml_property(qname, obj)}")
            lines.append("  </rdf:Description>")

        lines.append("</rdf:RDF>")
        return "\n".join(lines) + "\n"

    def _xml_qname(self, iri: str, namespaces: Dict[str, str]) -> str:
        """Split a predicate IRI into a declared prefix and an NCName."""
        best = None
        for label, ns in namespaces.items():
            if iri.startswith(ns) and _NCNAME.match(iri[len(ns):]):
                if best is None or len(ns) > len(namespaces[best]):
                    best = label
        if best is not None:
            return f"{best}:{iri[len(namespaces[best]):]}"

        match = re.match(r"^(.*[#/:])([A-Za-z_][A-Za-z0-9_.\-]*)$", iri)
        if not match:
            raise SerializeError(f"Predicate <{iri}> cannot be written as an RDF/XML element name")
        ns, local = match.groups()
        n = 0
        label = f"ns{n}"
        while label in namespaces:
            n += 1
            label = f"ns{n}"
        namespaces[label] = ns
        return f"{label}:{local}"

    def _xml_property(self, qname: str, obj) -> str:
        if isinstance(obj, NamedNode):
            return f'<{qname} rdf:resource="{self._escape_xml(obj.value)}"/>'
        if isinstance(obj, BlankNode):
            return f'<{qname} rdf:nodeID="{self._escape_xml(obj.value)}"/>'
        attrs = ""
        if obj.language:
            attrs = f' xml:lang="{self._escape_xml(obj.language)}"'
        elif not obj.is_plain:
            attrs = f' rdf:datatype="{self._escape_xml(obj.datatype)}"'
        return f"<{qname}{attrs}>{self._escape_xml(obj.value)}</{qname}>"

    def _escape_xml(self, text: str) -> str:
        """Escape XML special characters."""
        bad = _XML_FORBIDDEN.search(text)
        if bad:
            raise SerializeError(f"Character U+{ord(bad.group()):04X} cannot be written in RDF/XML")
        return (text
            .replace("&", "&amp;")
            .replace("<", "&lt;")
            .replace(">", "&gt;")
            .replace('"', "&quot;")
            .replace("'", "&apos;"))


def serialize_records(
    records: Iterable[TripleRecord],
    prefixes: Optional[PrefixTable] = None,
    dialect: RDFDialect = RDFDialect.TURTLE,
) -> str:
    """
    Serialize matched records.

    Args:
        records: Matched statement records
        prefixes: Namespace bindings
        dialect: Output syntax (Turtle by default)

    Returns:
        The serialized document
    """
    return GraphSerializer().serialize(records, prefixes, dialect)
