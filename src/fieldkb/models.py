"""
Pydantic models for knowledge sources, indexed chunks and search results.

Knowledge sources are owned by the content-management side of the
application; this package only reads them. Document chunks are created
by the indexer and replaced wholesale on reindex.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class SensitivityLevel(str, Enum):
    """Access-control tag on a source, ordered from least to most restricted."""

    PUBLIC = "public"
    INTERNAL = "internal"
    CONFIDENTIAL = "confidential"
    RESTRICTED = "restricted"

    @property
    def rank(self) -> int:
        return _SENSITIVITY_RANK[self]

    def allows(self, other: "SensitivityLevel") -> bool:
        """True if a query cleared for this level may see ``other``."""
        return other.rank <= self.rank


_SENSITIVITY_RANK = {
    SensitivityLevel.PUBLIC: 0,
    SensitivityLevel.INTERNAL: 25,
    SensitivityLevel.CONFIDENTIAL: 50,
    SensitivityLevel.RESTRICTED: 100,
}


class IndexingStatus(str, Enum):
    """Per-source indexing state kept next to the chunks."""

    NOT_INDEXED = "not_indexed"
    INDEXING = "indexing"
    INDEXED = "indexed"
    FAILED = "failed"


class KnowledgeSource(BaseModel):
    """A document made searchable by the knowledge base."""

    id: str = Field(min_length=1, description="Opaque unique identifier")
    title: str
    content: str = Field(description="Full text content")
    source_type: str = Field(
        description="Document category such as manual, procedure or policy",
        examples=["manual", "procedure", "policy"],
    )
    category: str = Field(default="", description="Topical category")
    sensitivity: SensitivityLevel = SensitivityLevel.PUBLIC
    is_active: bool = True
    version: Optional[str] = None


class SourceSummary(BaseModel):
    """Identity of an active source, as listed for corpus indexing."""

    id: str
    title: str


class ChunkMetadata(BaseModel):
    """Snapshot of source attributes captured at indexing time."""

    source_title: str
    source_type: str
    category: str = ""


class DocumentChunk(BaseModel):
    """One indexed unit of a source's text."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    source_id: str
    ordinal: int = Field(ge=0, description="0-based position in reading order")
    text: str
    size: int = Field(ge=0, description="Number of words in text")
    embedding: list[float]
    metadata: ChunkMetadata
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def dimension(self) -> int:
        return len(self.embedding)


class SearchResult(BaseModel):
    """A chunk returned by a similarity query with its cosine score."""

    chunk: DocumentChunk
    score: float

    @property
    def source_id(self) -> str:
        return self.chunk.source_id


class IndexingFailure(BaseModel):
    """Where a document's indexing run stopped."""

    source_id: str
    ordinal: Optional[int] = None
    reason: str


class IndexingReport(BaseModel):
    """Outcome of a corpus-level indexing pass."""

    indexed: list[str] = Field(default_factory=list)
    reindexed: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    failed: list[IndexingFailure] = Field(default_factory=list)
    chunks_written: int = 0
    cancelled: bool = False
