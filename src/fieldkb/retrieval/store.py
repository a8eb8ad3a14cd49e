"""
Chunk storage and similarity search.

Stores document chunks keyed by source, the per-source indexing status,
and answers similarity queries. Similarity is cosine: vectors are L2
normalized and scored with a FAISS inner-product index built over the
chunks that pass the query filters.

Query filters:
    - the owning source must still exist and be active
    - the source's sensitivity must be cleared by the query's level
    - optional source type and category sets, matched on the chunk's
      metadata snapshot
"""

import json
import logging
import os
import tempfile
import threading
from collections.abc import Collection
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

import faiss
import numpy as np
from pydantic import ValidationError

from fieldkb.exceptions import DimensionMismatch, SourceNotFound, StoreFailure
from fieldkb.models import DocumentChunk, IndexingStatus, SearchResult, SensitivityLevel
from fieldkb.retrieval.embeddings import normalize_embeddings
from fieldkb.retrieval.sources import SourceRepository

logger = logging.getLogger(__name__)

STORE_FORMAT_VERSION = 1


@runtime_checkable
class ChunkStore(Protocol):
    """Persistence and similarity-search capability used by the indexer and retriever."""

    def insert_chunk(self, chunk: DocumentChunk) -> DocumentChunk: ...

    def delete_chunks_for_source(self, source_id: str) -> int: ...

    def chunk_exists_for_source(self, source_id: str) -> bool: ...

    def count_chunks(self, source_id: Optional[str] = None) -> int: ...

    def get_status(self, source_id: str) -> IndexingStatus: ...

    def set_status(self, source_id: str, status: IndexingStatus) -> None: ...

    def search_similar(
        self,
        query_embedding: list[float],
        threshold: float,
        limit: int,
        source_types: Optional[Collection[str]] = None,
        categories: Optional[Collection[str]] = None,
        sensitivity: SensitivityLevel = SensitivityLevel.PUBLIC,
    ) -> list[SearchResult]: ...


class InMemoryChunkStore:
    """
    Chunk store held in memory with JSON persistence.

    All operations take a re-entrant lock, so concurrent indexing of
    different sources is safe. Writes are scoped to one source id and
    never touch the chunks of another.

    Example:
        >>> store = InMemoryChunkStore(sources)
        >>> store.insert_chunk(chunk)
        >>> results = store.search_similar(query_vector, threshold=0.7, limit=5)
        >>> store.save("data/index/chunks.json")
    """

    def __init__(self, sources: SourceRepository) -> None:
        """
        Initialize an empty store.

        Args:
            sources: Repository consulted at query time for the active
                flag and sensitivity of each chunk's source
        """
        self.sources = sources
        self._lock = threading.RLock()
        self._chunks: dict[str, dict[int, DocumentChunk]] = {}
        self._status: dict[str, IndexingStatus] = {}

    # ------------------------------------------------------------------
    # Chunk persistence
    # ------------------------------------------------------------------
    def insert_chunk(self, chunk: DocumentChunk) -> DocumentChunk:
        """
        Store one chunk.

        Raises:
            StoreFailure: If the source already has a chunk with this ordinal
        """
        with self._lock:
            by_ordinal = self._chunks.setdefault(chunk.source_id, {})
            if chunk.ordinal in by_ordinal:
                raise StoreFailure(
                    f"Chunk {chunk.ordinal} already exists for source {chunk.source_id}"
                )
            by_ordinal[chunk.ordinal] = chunk
        return chunk

    def delete_chunks_for_source(self, source_id: str) -> int:
        """Delete every chunk of a source and return how many were removed."""
        with self._lock:
            removed = self._chunks.pop(source_id, {})
            self._status.pop(source_id, None)
        return len(removed)

    def chunk_exists_for_source(self, source_id: str) -> bool:
        with self._lock:
            return bool(self._chunks.get(source_id))

    def count_chunks(self, source_id: Optional[str] = None) -> int:
        """Number of chunks for one source, or in the whole store."""
        with self._lock:
            if source_id is not None:
                return len(self._chunks.get(source_id, {}))
            return sum(len(by_ordinal) for by_ordinal in self._chunks.values())

    def get_chunks(self, source_id: str) -> list[DocumentChunk]:
        """Chunks of a source in ordinal order."""
        with self._lock:
            by_ordinal = self._chunks.get(source_id, {})
            return [by_ordinal[ordinal] for ordinal in sorted(by_ordinal)]

    # ------------------------------------------------------------------
    # Indexing status
    # ------------------------------------------------------------------
    def get_status(self, source_id: str) -> IndexingStatus:
        """
        Indexing status of a source.

        Falls back to ``indexed`` when chunks exist without a recorded
        status, and ``not_indexed`` otherwise.
        """
        with self._lock:
            status = self._status.get(source_id)
            if status is not None:
                return status
            if self._chunks.get(source_id):
                return IndexingStatus.INDEXED
            return IndexingStatus.NOT_INDEXED

    def set_status(self, source_id: str, status: IndexingStatus) -> None:
        with self._lock:
            self._status[source_id] = status

    # ------------------------------------------------------------------
    # Similarity search
    # ------------------------------------------------------------------
    def search_similar(
        self,
        query_embedding: list[float],
        threshold: float,
        limit: int,
        source_types: Optional[Collection[str]] = None,
        categories: Optional[Collection[str]] = None,
        sensitivity: SensitivityLevel = SensitivityLevel.PUBLIC,
    ) -> list[SearchResult]:
        """
        Find the chunks closest to a query embedding.

        Args:
            query_embedding: Query vector
            threshold: Minimum cosine similarity in [0, 1]
            limit: Maximum number of results (> 0)
            source_types: Keep only chunks whose source type is in this set
            categories: Keep only chunks whose category is in this set
            sensitivity: Highest source sensitivity the caller is cleared for

        Returns:
            Results sorted by score descending; empty when nothing clears
            the threshold

        Raises:
            ValueError: If threshold or limit is out of range
            DimensionMismatch: If the candidate chunks have a dimension other
                than the query's, or more than one dimension between them
        """
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be in [0, 1], got {threshold}")
        if limit <= 0:
            raise ValueError(f"limit must be positive, got {limit}")

        candidates = self._candidates(
            SensitivityLevel(sensitivity), source_types, categories
        )
        if not candidates:
            return []

        query = np.asarray(query_embedding, dtype=np.float32).reshape(1, -1)
        dimension = query.shape[1]
        self._check_dimensions(candidates, dimension)

        matrix = normalize_embeddings(
            np.array([chunk.embedding for chunk in candidates], dtype=np.float32)
        )
        index = faiss.IndexFlatIP(dimension)
        index.add(np.ascontiguousarray(matrix))

        k = min(limit, len(candidates))
        scores, indices = index.search(np.ascontiguousarray(normalize_embeddings(query)), k)

        results: list[SearchResult] = []
        for idx, score in zip(indices[0], scores[0]):
            if idx < 0 or float(score) < threshold:
                continue
            results.append(SearchResult(chunk=candidates[idx], score=float(score)))

        logger.debug(
            f"Similarity search over {len(candidates)} chunks returned {len(results)} results"
        )
        return results

    def _candidates(
        self,
        sensitivity: SensitivityLevel,
        source_types: Optional[Collection[str]],
        categories: Optional[Collection[str]],
    ) -> list[DocumentChunk]:
        with self._lock:
            snapshot = {sid: list(chunks.values()) for sid, chunks in self._chunks.items()}

        candidates: list[DocumentChunk] = []
        for source_id, chunks in snapshot.items():
            try:
                source = self.sources.get_source(source_id)
            except SourceNotFound:
                continue
            if not source.is_active or not sensitivity.allows(source.sensitivity):
                continue
            for chunk in chunks:
                if source_types and chunk.metadata.source_type not in source_types:
                    continue
                if categories and chunk.metadata.category not in categories:
                    continue
                candidates.append(chunk)
        return candidates

    @staticmethod
    def _check_dimensions(candidates: list[DocumentChunk], dimension: int) -> None:
        stored = {chunk.dimension for chunk in candidates}
        if len(stored) > 1:
            raise DimensionMismatch(
                expected=dimension,
                actual=max(stored - {dimension}, default=dimension),
                details=f"store holds chunks of dimensions {sorted(stored)}",
            )
        actual = stored.pop()
        if actual != dimension:
            raise DimensionMismatch(expected=dimension, actual=actual)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def save(self, path: str | Path) -> None:
        """
        Write chunks and statuses to a JSON file.

        The file is written to a temporary sibling and moved into place.

        Raises:
            StoreFailure: If the file cannot be written
        """
        path = Path(path)
        with self._lock:
            payload = {
                "version": STORE_FORMAT_VERSION,
                "statuses": {sid: status.value for sid, status in self._status.items()},
                "chunks": [
                    chunk.model_dump(mode="json")
                    for by_ordinal in self._chunks.values()
                    for chunk in by_ordinal.values()
                ],
            }

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False)
            os.replace(tmp_name, path)
        except OSError as e:
            raise StoreFailure(f"Could not write chunk store: {path}", details=str(e)) from e

        logger.info(f"Saved {len(payload['chunks'])} chunks to {path}")

    def load(self, path: str | Path) -> None:
        """
        Replace the store contents with a file written by ``save``.

        The file is read and checked in full before anything is replaced;
        on failure the store keeps its previous contents.

        Raises:
            FileNotFoundError: If the file does not exist
            StoreFailure: If the file is unreadable, malformed or repeats a
                (source_id, ordinal) pair
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Chunk store file not found: {path}")

        try:
            with path.open(encoding="utf-8") as f:
                payload = json.load(f)
            chunks = [DocumentChunk.model_validate(item) for item in payload["chunks"]]
            statuses = {
                sid: IndexingStatus(value) for sid, value in payload.get("statuses", {}).items()
            }
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError, ValidationError) as e:
            raise StoreFailure(f"Could not read chunk store: {path}", details=str(e)) from e

        loaded: dict[str, dict[int, DocumentChunk]] = {}
        for chunk in chunks:
            by_ordinal = loaded.setdefault(chunk.source_id, {})
            if chunk.ordinal in by_ordinal:
                raise StoreFailure(
                    f"Could not read chunk store: {path}",
                    details=f"chunk {chunk.ordinal} of source {chunk.source_id} appears twice",
                )
            by_ordinal[chunk.ordinal] = chunk

        with self._lock:
            self._chunks = loaded
            self._status = statuses

        logger.info(f"Loaded {len(chunks)} chunks from {path}")

    @classmethod
    def from_disk(cls, path: str | Path, sources: SourceRepository) -> "InMemoryChunkStore":
        """
        Create a store from a saved file.

        Args:
            path: JSON file written by ``save``
            sources: Source repository for query-time filters

        Returns:
            InMemoryChunkStore with loaded data
        """
        store = cls(sources)
        store.load(path)
        return store
