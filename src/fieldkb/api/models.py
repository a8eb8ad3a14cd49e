"""
Pydantic models for API request and response schemas.

These models provide automatic validation and OpenAPI documentation.
"""

from typing import Optional

from pydantic import BaseModel, Field

from fieldkb.models import IndexingStatus, SearchResult, SensitivityLevel


class SearchRequest(BaseModel):
    """Request schema for the /search endpoint."""

    query: str = Field(
        ...,
        min_length=1,
        max_length=2000,
        description="Natural language query",
        examples=["How do I reset the compressor high-pressure alarm?"],
    )
    threshold: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Minimum cosine similarity (default from settings)",
    )
    limit: Optional[int] = Field(
        default=None,
        ge=1,
        le=100,
        description="Maximum number of results (default from settings)",
    )
    source_types: list[str] = Field(
        default_factory=list,
        description="Keep only these source types",
        examples=[["manual", "procedure"]],
    )
    categories: list[str] = Field(
        default_factory=list,
        description="Keep only these categories",
    )
    sensitivity: Optional[SensitivityLevel] = Field(
        default=None,
        description="Highest sensitivity to return (default public)",
    )
    role: Optional[str] = Field(
        default=None,
        description="User role whose clearance applies when sensitivity is not given",
        examples=["technician"],
    )


class SearchHit(BaseModel):
    """One chunk in a search response."""

    source_id: str
    source_title: str
    source_type: str
    category: str
    ordinal: int
    text: str
    score: float

    @classmethod
    def from_result(cls, result: SearchResult) -> "SearchHit":
        chunk = result.chunk
        return cls(
            source_id=chunk.source_id,
            source_title=chunk.metadata.source_title,
            source_type=chunk.metadata.source_type,
            category=chunk.metadata.category,
            ordinal=chunk.ordinal,
            text=chunk.text,
            score=result.score,
        )


class SearchResponse(BaseModel):
    """Response schema for the /search endpoint."""

    results: list[SearchHit] = Field(
        default_factory=list,
        description="Chunks ordered closest first",
    )
    count: int = Field(description="Number of results")


class IndexResponse(BaseModel):
    """Response schema for single-source indexing endpoints."""

    source_id: str
    chunks_written: int


class SourceStatusResponse(BaseModel):
    """Response schema for the source status endpoint."""

    source_id: str
    status: IndexingStatus
    chunk_count: int


class HealthResponse(BaseModel):
    """Response schema for the /health endpoint."""

    status: str = Field(
        description="Health status",
        examples=["healthy", "degraded"],
    )
    version: str = Field(
        description="API version",
    )
    chunk_count: int = Field(
        description="Chunks in the store",
    )
    embedding_provider: str = Field(
        description="Name of the active embedding provider",
    )
    embedding_dimension: int


class ErrorResponse(BaseModel):
    """Schema for error responses."""

    error: str = Field(
        description="Error code",
        examples=["not_found", "provider_failure", "store_failure", "dimension_mismatch"],
    )
    message: str = Field(
        description="Human-readable error message",
    )
    source_id: Optional[str] = None
    ordinal: Optional[int] = None
