"""
fieldkb: Knowledge-base indexing and semantic retrieval for field-service teams

Turns manuals, procedures and policies into overlapping text chunks with
vector embeddings, and answers similarity queries over them with
threshold, limit, source-type and sensitivity filters.

Key Components:
    - retrieval: Chunking, embedding providers, chunk store, indexer, retriever
    - api: FastAPI REST endpoints
    - cli: Typer command line
    - tracing: Arize Phoenix observability integration

Example:
    >>> from fieldkb.retrieval.resources import get_indexer, get_retriever
    >>> get_indexer().index_all_pending()
    >>> results = get_retriever().search("How do I reset the compressor alarm?")
    >>> print(results[0].chunk.metadata.source_title)
"""

__version__ = "0.1.0"

from fieldkb.config import settings

__all__ = [
    "__version__",
    "settings",
]
