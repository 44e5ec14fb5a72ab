"""
Command line interface.

Usage:
    python -m rdf_searchbase load data/people.ttl data/places.nt
    python -m rdf_searchbase search "alice"
    python -m rdf_searchbase query --predicate http://xmlns.com/foaf/0.1/name
    python -m rdf_searchbase serve --port 3000
"""

import argparse
import json
import sys

from rdf_searchbase.config import ConfigValidationError, Settings
from rdf_searchbase.errors import RDFSearchError
from rdf_searchbase.formats.dialects import dialect_from_name
from rdf_searchbase.service import TripleIndexService
from rdf_searchbase.storage.backend import TRIPLES_INDEX


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rdf_searchbase",
        description="Index RDF documents for full-text search and rebuild RDF from matches",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    load = sub.add_parser("load", help="Ingest .nt, .ttl or .rdf files")
    load.add_argument("files", nargs="+", help="Files to ingest")

    search = sub.add_parser("search", help="Free-text search over statements")
    search.add_argument("query", help="Search text")
    search.add_argument("--size", type=int, default=None, help="Maximum hits")

    query = sub.add_parser("query", help="Match statements and print them as RDF")
    query.add_argument("--subject", default=None)
    query.add_argument("--predicate", default=None)
    query.add_argument("--object", default=None)
    query.add_argument("--format", default="turtle", help="turtle, ntriples or rdfxml")
    query.add_argument("--size", type=int, default=None, help="Maximum statements")

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=3000)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = Settings.from_env()
    except ConfigValidationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    settings.configure_logging()

    if args.command == "serve":
        import uvicorn
        uvicorn.run("api.web:app", host=args.host, port=args.port)
        return 0

    service = TripleIndexService.from_settings(settings)
    try:
        service.start()
        if args.command == "load":
            for path in args.files:
                result = service.ingest_file(path)
                print(json.dumps({"file": path, **result.to_dict()}))
        elif args.command == "search":
            hits = service.search(args.query, size=args.size)
            print(json.dumps([h.to_hit(TRIPLES_INDEX) for h in hits], indent=2))
        elif args.command == "query":
            document = service.query_document(
                args.subject,
                args.predicate,
                args.object,
                dialect=dialect_from_name(args.format),
                size=args.size,
            )
            sys.stdout.write(document)
    except (RDFSearchError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        service.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
