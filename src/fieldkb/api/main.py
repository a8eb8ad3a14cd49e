"""
FastAPI application for the fieldkb REST API.

Run with:
    uvicorn fieldkb.api.main:app --reload

Or use the CLI:
    fieldkb serve
"""

import logging
from contextlib import asynccontextmanager
from typing import Callable

from fastapi import APIRouter, Depends, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware

from fieldkb import __version__
from fieldkb.api.models import (
    ErrorResponse,
    HealthResponse,
    IndexResponse,
    SearchHit,
    SearchRequest,
    SearchResponse,
    SourceStatusResponse,
)
from fieldkb.config import settings
from fieldkb.exceptions import (
    DimensionMismatch,
    IndexingError,
    ProviderFailure,
    SourceNotFound,
    StoreFailure,
)
from fieldkb.logging_config import setup_logging
from fieldkb.models import IndexingReport
from fieldkb.retrieval.embeddings import EmbeddingProvider
from fieldkb.retrieval.indexer import Indexer
from fieldkb.retrieval.resources import (
    get_chunk_store,
    get_embedding_provider,
    get_indexer,
    get_retriever,
    initialize_resources,
    persist_chunk_store,
)
from fieldkb.retrieval.retriever import Retriever
from fieldkb.retrieval.store import ChunkStore
from fieldkb.tracing import setup_tracing

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
        - Configure logging
        - Load sources and chunk store (cached)
        - Initialize embedding provider (cached)
        - Initialize tracing if enabled
    """
    setup_logging(settings.log_level)
    logger.info("Initializing fieldkb resources...")

    try:
        resource_status = initialize_resources()
        logger.info(f"Resource initialization status: {resource_status}")
    except Exception as e:
        logger.error(f"Failed to initialize resources: {e}")
        raise RuntimeError(f"Startup failed: {e}") from e

    if setup_tracing():
        logger.info(f"Tracing to Phoenix at {settings.phoenix_endpoint}")

    yield

    logger.info("Shutting down fieldkb...")


def get_persister() -> Callable[[], None]:
    """Dependency returning the callable that writes the chunk store to disk."""
    return persist_chunk_store


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="fieldkb",
        description="Knowledge-base indexing and semantic retrieval",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    return app


router = APIRouter()

_ERROR_RESPONSES = {
    404: {"model": ErrorResponse, "description": "Source not found"},
    502: {"model": ErrorResponse, "description": "Embedding provider failed"},
    503: {"model": ErrorResponse, "description": "Chunk store failed"},
}


@router.get("/health", response_model=HealthResponse, tags=["System"])
def health_check(
    store: ChunkStore = Depends(get_chunk_store),
    provider: EmbeddingProvider = Depends(get_embedding_provider),
) -> HealthResponse:
    """Health check endpoint for liveness/readiness probes."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        chunk_count=store.count_chunks(),
        embedding_provider=provider.name,
        embedding_dimension=provider.dimension,
    )


@router.post(
    "/search",
    response_model=SearchResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid request"},
        409: {"model": ErrorResponse, "description": "Embedding dimension mismatch"},
        **_ERROR_RESPONSES,
    },
    tags=["Search"],
)
def search_endpoint(
    request: SearchRequest,
    retriever: Retriever = Depends(get_retriever),
) -> SearchResponse:
    """
    Find indexed chunks semantically close to a query.

    An empty result list means nothing cleared the threshold; provider
    and store failures are reported as errors, never as empty results.
    """
    try:
        results = retriever.search(
            request.query,
            threshold=request.threshold,
            limit=request.limit,
            source_type=request.source_types,
            categories=request.categories,
            sensitivity=request.sensitivity,
            role=request.role,
        )
    except ProviderFailure as e:
        raise _http_error(status.HTTP_502_BAD_GATEWAY, "provider_failure", e)
    except StoreFailure as e:
        raise _http_error(status.HTTP_503_SERVICE_UNAVAILABLE, "store_failure", e)
    except DimensionMismatch as e:
        raise _http_error(status.HTTP_409_CONFLICT, "dimension_mismatch", e)
    except ValueError as e:
        raise _http_error(status.HTTP_400_BAD_REQUEST, "invalid_request", e)

    hits = [SearchHit.from_result(result) for result in results]
    return SearchResponse(results=hits, count=len(hits))


@router.post("/index/pending", response_model=IndexingReport, tags=["Indexing"])
def index_pending_endpoint(
    indexer: Indexer = Depends(get_indexer),
    persist: Callable[[], None] = Depends(get_persister),
) -> IndexingReport:
    """Index every active source that is not fully indexed yet."""
    report = indexer.index_all_pending()
    _persist(persist)
    return report


@router.post(
    "/sources/{source_id}/index",
    response_model=IndexResponse,
    responses=_ERROR_RESPONSES,
    tags=["Indexing"],
)
def index_source_endpoint(
    source_id: str,
    indexer: Indexer = Depends(get_indexer),
    persist: Callable[[], None] = Depends(get_persister),
) -> IndexResponse:
    """Index one source without clearing its existing chunks."""
    written = _run_indexing(indexer.index_document, source_id)
    _persist(persist)
    return IndexResponse(source_id=source_id, chunks_written=written)


@router.post(
    "/sources/{source_id}/reindex",
    response_model=IndexResponse,
    responses=_ERROR_RESPONSES,
    tags=["Indexing"],
)
def reindex_source_endpoint(
    source_id: str,
    indexer: Indexer = Depends(get_indexer),
    persist: Callable[[], None] = Depends(get_persister),
) -> IndexResponse:
    """Replace a source's chunks with a fresh index."""
    written = _run_indexing(indexer.reindex_document, source_id)
    _persist(persist)
    return IndexResponse(source_id=source_id, chunks_written=written)


@router.get(
    "/sources/{source_id}/status",
    response_model=SourceStatusResponse,
    responses={404: {"model": ErrorResponse, "description": "Source not found"}},
    tags=["Indexing"],
)
def source_status_endpoint(
    source_id: str,
    indexer: Indexer = Depends(get_indexer),
) -> SourceStatusResponse:
    """Indexing status and chunk count of one source."""
    try:
        indexer.sources.get_source(source_id)
    except SourceNotFound as e:
        raise _http_error(status.HTTP_404_NOT_FOUND, "not_found", e, source_id=source_id)

    return SourceStatusResponse(
        source_id=source_id,
        status=indexer.status(source_id),
        chunk_count=indexer.store.count_chunks(source_id),
    )


def _run_indexing(operation: Callable[[str], int], source_id: str) -> int:
    try:
        return operation(source_id)
    except SourceNotFound as e:
        raise _http_error(status.HTTP_404_NOT_FOUND, "not_found", e, source_id=source_id)
    except IndexingError as e:
        code = (
            status.HTTP_502_BAD_GATEWAY
            if isinstance(e.__cause__, ProviderFailure)
            else status.HTTP_503_SERVICE_UNAVAILABLE
        )
        raise _http_error(code, "indexing_failed", e, source_id=e.source_id, ordinal=e.ordinal)


def _persist(persist: Callable[[], None]) -> None:
    try:
        persist()
    except StoreFailure as e:
        raise _http_error(status.HTTP_503_SERVICE_UNAVAILABLE, "store_failure", e)


def _http_error(code: int, error: str, exc: Exception, **extra) -> HTTPException:
    return HTTPException(
        status_code=code,
        detail=ErrorResponse(error=error, message=str(exc), **extra).model_dump(),
    )


# Create app instance
app = create_app()
