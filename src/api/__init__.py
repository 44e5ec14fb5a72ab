"""
RDF-SearchBase API Layer

FastAPI-based REST API for the RDF search engine.
Separates HTTP concerns from the core engine (rdf_searchbase).
"""

__version__ = "0.1.0"

# api.web builds a default app on import; import it directly when needed:
# from api.web import create_app
