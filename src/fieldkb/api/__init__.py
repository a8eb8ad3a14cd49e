"""
FastAPI REST API for fieldkb.

Endpoints:
    POST /search - Similarity search over indexed chunks
    POST /index/pending - Index every source not yet indexed
    POST /sources/{id}/index - Index one source
    POST /sources/{id}/reindex - Replace one source's chunks
    GET /sources/{id}/status - Indexing status of one source
    GET /health - Health check for k8s probes
"""

from fieldkb.api.main import app, create_app

__all__ = ["app", "create_app"]
