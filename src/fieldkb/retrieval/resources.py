"""
Singleton resource management for the knowledge-base components.

Provides cached instances wired from settings, so the CLI and the API
share one source repository, chunk store, embedding provider, indexer and
retriever per process. Uses @lru_cache (same as the config.py settings
singleton).

Usage:
    # In API handlers or CLI commands
    retriever = get_retriever()
    indexer = get_indexer()

    # After indexing, persist the store
    persist_chunk_store()

    # In tests (reset cache)
    clear_resource_cache()
"""

import logging
from functools import lru_cache
from typing import TYPE_CHECKING

from fieldkb.config import settings

if TYPE_CHECKING:
    from fieldkb.retrieval.embeddings import EmbeddingProvider
    from fieldkb.retrieval.indexer import Indexer
    from fieldkb.retrieval.retriever import Retriever
    from fieldkb.retrieval.sources import InMemorySourceRepository
    from fieldkb.retrieval.store import InMemoryChunkStore

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_source_repository() -> "InMemorySourceRepository":
    """
    Get or create the global source repository.

    Loads sources from settings.sources_path; starts empty when the file
    does not exist.
    """
    from fieldkb.retrieval.sources import InMemorySourceRepository

    if not settings.sources_path.exists():
        logger.warning(f"Sources file not found: {settings.sources_path}; starting empty")
        return InMemorySourceRepository()

    return InMemorySourceRepository.from_json(settings.sources_path)


@lru_cache(maxsize=1)
def get_chunk_store() -> "InMemoryChunkStore":
    """
    Get or create the global chunk store.

    Loads chunks from settings.store_path when the file exists.
    """
    from fieldkb.retrieval.store import InMemoryChunkStore

    store = InMemoryChunkStore(get_source_repository())
    if settings.store_path.exists():
        store.load(settings.store_path)
    else:
        logger.info(f"No chunk store at {settings.store_path}; starting empty")
    return store


@lru_cache(maxsize=1)
def get_embedding_provider() -> "EmbeddingProvider":
    """
    Get or create the embedding provider selected by settings.embedding_provider.

    Raises:
        ImportError: If the local provider is selected without sentence-transformers
    """
    from fieldkb.retrieval.embeddings import HashEmbedder, HuggingFaceEmbedder, LocalEmbedder

    if settings.embedding_provider == "huggingface":
        provider = HuggingFaceEmbedder()
    elif settings.embedding_provider == "local":
        provider = LocalEmbedder()
    else:
        provider = HashEmbedder(dimension=settings.hash_embedding_dimension)

    logger.info(f"Embedding provider: {provider.name} (dimension {provider.dimension})")
    return provider


@lru_cache(maxsize=1)
def get_indexer() -> "Indexer":
    """Get or create the global indexer."""
    from fieldkb.retrieval.indexer import Indexer

    return Indexer(
        sources=get_source_repository(),
        store=get_chunk_store(),
        provider=get_embedding_provider(),
        chunking=settings.chunking,
        embed_timeout=settings.embedding_timeout,
        max_workers=settings.index_max_workers,
    )


@lru_cache(maxsize=1)
def get_retriever() -> "Retriever":
    """Get or create the global retriever."""
    from fieldkb.retrieval.retriever import Retriever

    return Retriever(
        store=get_chunk_store(),
        provider=get_embedding_provider(),
        default_threshold=settings.similarity_threshold,
        default_limit=settings.retrieval_top_k,
        default_sensitivity=settings.default_sensitivity,
        embed_timeout=settings.embedding_timeout,
    )


def persist_chunk_store() -> None:
    """Write the global chunk store to settings.store_path."""
    get_chunk_store().save(settings.store_path)


def initialize_resources() -> dict[str, bool]:
    """
    Explicitly initialize all resources for eager loading.

    Called at API server startup so the first request does not pay for
    loading sources, chunks or an embedding model.

    Returns:
        dict: Status of each resource initialization

    Raises:
        RuntimeError: If any resource fails to initialize
    """
    status = {}

    try:
        status["sources"] = get_source_repository() is not None
        status["chunk_store"] = get_chunk_store() is not None
    except Exception as e:
        raise RuntimeError(f"Failed to load knowledge base: {e}") from e

    try:
        status["embedder"] = get_embedding_provider().dimension > 0
    except Exception as e:
        raise RuntimeError(f"Failed to load embedder: {e}") from e

    return status


def clear_resource_cache() -> None:
    """
    Clear all cached resources.

    Used in tests to reset state between test cases.
    """
    get_indexer.cache_clear()
    get_retriever.cache_clear()
    get_chunk_store.cache_clear()
    get_source_repository.cache_clear()
    get_embedding_provider.cache_clear()
    logger.debug("Resource cache cleared")
