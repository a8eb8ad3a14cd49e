"""
Semantic retrieval over the chunk store.

Embeds the query with the provider used for indexing and asks the store
for the closest chunks. Only public content is returned unless the
caller passes a higher sensitivity or a role cleared for one.
"""

import logging
from collections.abc import Collection
from typing import Optional, Union

from fieldkb.models import SearchResult, SensitivityLevel
from fieldkb.retrieval.embeddings import EmbeddingProvider, generate_embedding
from fieldkb.retrieval.permissions import clearance_for_role
from fieldkb.retrieval.store import ChunkStore
from fieldkb.tracing import add_span_attributes, traced

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.7
DEFAULT_LIMIT = 5


class Retriever:
    """
    Answers similarity queries against indexed knowledge sources.

    Example:
        >>> retriever = Retriever(store, HashEmbedder())
        >>> results = retriever.search("reset the compressor alarm", limit=3)
        >>> [r.chunk.metadata.source_title for r in results]
    """

    def __init__(
        self,
        store: ChunkStore,
        provider: EmbeddingProvider,
        default_threshold: float = DEFAULT_THRESHOLD,
        default_limit: int = DEFAULT_LIMIT,
        default_sensitivity: SensitivityLevel = SensitivityLevel.PUBLIC,
        embed_timeout: Optional[float] = None,
    ) -> None:
        """
        Initialize the retriever.

        Args:
            store: Chunk store to query
            provider: Embedding provider the chunks were indexed with
            default_threshold: Minimum similarity when a query gives none
            default_limit: Result count when a query gives none
            default_sensitivity: Clearance when a query gives neither
                sensitivity nor role
            embed_timeout: Seconds to wait for the query embedding
        """
        self.store = store
        self.provider = provider
        self.default_threshold = default_threshold
        self.default_limit = default_limit
        self.default_sensitivity = SensitivityLevel(default_sensitivity)
        self.embed_timeout = embed_timeout

    @traced("search")
    def search(
        self,
        query: str,
        *,
        threshold: Optional[float] = None,
        limit: Optional[int] = None,
        source_type: Union[str, Collection[str], None] = None,
        categories: Optional[Collection[str]] = None,
        sensitivity: Union[SensitivityLevel, str, None] = None,
        role: Optional[str] = None,
    ) -> list[SearchResult]:
        """
        Find the stored chunks closest to a query.

        Args:
            query: Non-empty query text
            threshold: Minimum cosine similarity in [0, 1] (default 0.7)
            limit: Maximum number of results, > 0 (default 5)
            source_type: One source type or a collection of them
            categories: Collection of categories to keep
            sensitivity: Highest sensitivity to return (default public)
            role: User role whose clearance sets the sensitivity; ignored
                when ``sensitivity`` is given

        Returns:
            Results ordered closest first; empty when nothing matches

        Raises:
            ValueError: If the query is empty or an option is out of range
            ProviderFailure: If the query cannot be embedded
            DimensionMismatch: If stored chunks do not match the query dimension
            StoreFailure: If the store cannot be read
        """
        if not query or not query.strip():
            raise ValueError("query must be a non-empty string")

        threshold = self.default_threshold if threshold is None else threshold
        limit = self.default_limit if limit is None else limit
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be in [0, 1], got {threshold}")
        if limit <= 0:
            raise ValueError(f"limit must be positive, got {limit}")

        level = self._resolve_sensitivity(sensitivity, role)
        source_types = {source_type} if isinstance(source_type, str) else source_type

        query_embedding = generate_embedding(
            self.provider,
            query,
            timeout=self.embed_timeout,
        )
        results = self.store.search_similar(
            query_embedding,
            threshold=threshold,
            limit=limit,
            source_types=source_types or None,
            categories=categories or None,
            sensitivity=level,
        )

        add_span_attributes(results=len(results), sensitivity=level.value)
        logger.debug(
            f"Query returned {len(results)} results "
            f"(threshold={threshold}, limit={limit}, sensitivity={level.value})"
        )
        return results

    def _resolve_sensitivity(
        self,
        sensitivity: Union[SensitivityLevel, str, None],
        role: Optional[str],
    ) -> SensitivityLevel:
        if sensitivity is not None:
            return SensitivityLevel(sensitivity)
        if role is not None:
            return clearance_for_role(role)
        return self.default_sensitivity
