"""
Exceptions for knowledge-base indexing and retrieval.

Exception Hierarchy:
    KnowledgeBaseError (base)
    ├── SourceNotFound
    ├── ChunkingConfigError
    ├── ProviderFailure
    ├── StoreFailure
    ├── DimensionMismatch
    └── IndexingError

Usage:
    from fieldkb.exceptions import IndexingError, SourceNotFound

    try:
        indexer.index_document("manual-042")
    except SourceNotFound as e:
        print(f"No such source: {e.source_id}")
    except IndexingError as e:
        print(f"{e.source_id} failed at chunk {e.ordinal}: {e}")
"""

from __future__ import annotations

from typing import Optional


class KnowledgeBaseError(Exception):
    """
    Base exception for all knowledge-base errors.

    Attributes:
        message: Human-readable error description
        details: Additional technical details (optional)
    """

    def __init__(
        self,
        message: str = "A knowledge-base error occurred",
        details: Optional[str] = None,
    ):
        self.message = message
        self.details = details

        full_message = message
        if details:
            full_message = f"{message} | Details: {details}"

        super().__init__(full_message)


class SourceNotFound(KnowledgeBaseError, LookupError):
    """Raised when a knowledge source id does not exist."""

    def __init__(self, source_id: str):
        self.source_id = source_id
        super().__init__(f"Knowledge source not found: {source_id}")


class ChunkingConfigError(KnowledgeBaseError, ValueError):
    """Raised for chunk size / overlap pairs that cannot terminate."""


class ProviderFailure(KnowledgeBaseError):
    """Raised when the embedding provider times out or returns garbage."""


class StoreFailure(KnowledgeBaseError):
    """Raised when the chunk store rejects a read, write or delete."""


class DimensionMismatch(KnowledgeBaseError):
    """
    Raised when embedding dimensions disagree.

    Attributes:
        expected: Dimension the caller required
        actual: Dimension that was found
    """

    def __init__(self, expected: int, actual: int, details: Optional[str] = None):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Embedding dimension mismatch: expected {expected}, got {actual}",
            details,
        )


class IndexingError(KnowledgeBaseError):
    """
    Raised when indexing a document aborts part-way.

    Chunks written before the failure are left in place; the document
    can be repaired with ``Indexer.reindex_document``.

    Attributes:
        source_id: Document whose run aborted
        ordinal: Ordinal of the chunk that failed (None if before chunking)
    """

    def __init__(self, source_id: str, ordinal: Optional[int], reason: str):
        self.source_id = source_id
        self.ordinal = ordinal
        self.reason = reason
        where = f"chunk {ordinal}" if ordinal is not None else "start of run"
        super().__init__(f"Indexing {source_id} failed at {where}", reason)
