"""
RDF-SearchBase Web API

FastAPI-based REST API over the ingest and query pipelines.
Provides endpoints for:
- Uploading RDF documents (N-Triples, Turtle, RDF/XML) for indexing
- Free-text search over indexed statements
- Rebuilding matched statements as serialized RDF
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field
from starlette.datastructures import UploadFile

from rdf_searchbase import RDFSearchError, Settings, TripleIndexService
from rdf_searchbase.formats.dialects import dialect_for_filename, dialect_from_name
from rdf_searchbase.storage.backend import TRIPLES_INDEX

logger = logging.getLogger(__name__)


# Pydantic models for API
class UploadResponse(BaseModel):
    """Result of indexing an uploaded file."""
    message: str
    filename: str
    format: str
    triples: int = Field(..., description="Statement records written")
    prefixes: bool = Field(..., description="Whether a prefix snapshot was stored")


class StatementSource(BaseModel):
    """Stored fields of an indexed statement."""
    subject: str
    predicate: str
    object: str
    graph: str = ""


class StatementHit(BaseModel):
    """One search hit, in search-engine hit shape."""
    model_config = ConfigDict(populate_by_name=True)

    index: str = Field(..., alias="_index")
    id: Optional[str] = Field(None, alias="_id")
    score: Optional[float] = Field(None, alias="_score")
    source: StatementSource = Field(..., alias="_source")


def create_app(
    service: Optional[TripleIndexService] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        service: Optional service instance (built from settings if not provided)
        settings: Optional settings (read from the environment if not provided)

    Returns:
        Configured FastAPI application
    """
    settings = settings or Settings.from_env()
    service = service or TripleIndexService.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Index collections must exist before the first request
        await asyncio.to_thread(service.start)
        yield
        await asyncio.to_thread(service.close)

    app = FastAPI(
        title="RDF-SearchBase API",
        description="Full-text search over RDF statements",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    app.state.service = service
    app.state.settings = settings

    @app.exception_handler(RDFSearchError)
    async def engine_error_handler(request: Request, exc: RDFSearchError):
        if exc.client_fault:
            return JSONResponse(status_code=400, content={"error": exc.message})
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
        return JSONResponse(status_code=500, content={"error": exc.message})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.url.path}")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    # ==========================================================================
    # Upload
    # ==========================================================================

    @app.post("/api/upload", response_model=UploadResponse)
    async def upload(request: Request):
        """
        Upload an RDF file (multipart field ``rdfFile``) for indexing.

        The format is taken from the extension: .nt, .ttl or .rdf.
        """
        form = await request.form()
        rdf_file = form.get("rdfFile")
        if not isinstance(rdf_file, UploadFile) or not rdf_file.filename:
            logger.info("No file uploaded or invalid file")
            return JSONResponse(status_code=400, content={"error": "No file uploaded or invalid file"})

        dialect = dialect_for_filename(rdf_file.filename)
        rdf_file.file.seek(0)
        result = await asyncio.to_thread(service.ingest_document, rdf_file.file, dialect)

        return UploadResponse(
            message="File processed and indexed successfully",
            filename=rdf_file.filename,
            format=dialect.value,
            triples=result.statements,
            prefixes=result.prefix_record,
        )

    # ==========================================================================
    # Search
    # ==========================================================================

    @app.get("/api/search", response_model=list[StatementHit])
    async def search(
        q: Optional[str] = Query(None, description="Text matched against subject, predicate and object"),
        size: Optional[int] = Query(None, ge=1, le=10000),
    ):
        """Relevance-ranked statement hits."""
        records = await asyncio.to_thread(service.search, q, size)
        return [StatementHit.model_validate(r.to_hit(TRIPLES_INDEX)) for r in records]

    # ==========================================================================
    # Query
    # ==========================================================================

    @app.get("/api/query")
    async def query(
        subject: Optional[str] = None,
        predicate: Optional[str] = None,
        object: Optional[str] = None,
        format: str = Query("turtle", description="turtle, ntriples or rdfxml"),
        size: Optional[int] = Query(None, ge=1, le=10000),
    ):
        """
        Matched statements as an RDF document.

        Objects are always rendered as literals.
        """
        dialect = dialect_from_name(format)
        document = await asyncio.to_thread(
            service.query_document, subject, predicate, object, dialect, size
        )
        return Response(content=document, media_type=dialect.media_type)

    return app


# Default app instance for running directly
app = create_app()


if __name__ == "__main__":
    import uvicorn
    app.state.settings.configure_logging()
    uvicorn.run("api.web:app", host="0.0.0.0", port=3000)
