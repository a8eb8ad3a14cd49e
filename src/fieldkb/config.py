"""
Configuration management using Pydantic Settings.

All configuration is loaded from environment variables with sensible defaults.
Use a .env file for local development.

Environment Variables:
    EMBEDDING_PROVIDER: Embedding backend (hash, huggingface, local)
    EMBEDDING_MODEL: Model ID for the huggingface/local providers
    EMBEDDING_DIMENSION: Dimension of embedding vectors
    HF_API_KEY: HuggingFace API key (only for the huggingface provider)
    CHUNK_SIZE: Words per document chunk
    CHUNK_OVERLAP: Words shared by consecutive chunks
    SOURCES_PATH: JSON file with the knowledge sources
    STORE_PATH: JSON file backing the chunk store
    LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
"""

from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Literal, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from fieldkb.retrieval.chunker import ChunkingConfig


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Embedding Configuration
    # ==========================================================================
    embedding_provider: Literal["hash", "huggingface", "local"] = Field(
        default="hash",
        description="Embedding backend used for both indexing and queries",
    )
    embedding_model: str = Field(
        default="sentence-transformers/all-MiniLM-L6-v2",
        description="Model ID for the huggingface and local providers",
    )
    embedding_dimension: int = Field(
        default=384,
        ge=1,
        description="Dimension of embedding vectors (must match model)",
    )
    hash_embedding_dimension: int = Field(
        default=1536,
        ge=1,
        description="Dimension of the hash provider vectors",
    )
    hf_api_key: Optional[SecretStr] = Field(
        default=None,
        description="HuggingFace API key (optional, for API-based embeddings)",
    )
    embedding_timeout: float = Field(
        default=30.0,
        gt=0.0,
        description="Seconds to wait for a single embedding call",
    )
    embedding_max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per embedding request when rate limited",
    )
    embedding_batch_size: int = Field(
        default=32,
        ge=1,
        description="Texts per embedding API call",
    )

    # ==========================================================================
    # Chunking Configuration
    # ==========================================================================
    chunk_size: int = Field(
        default=500,
        ge=1,
        description="Words per document chunk",
    )
    chunk_overlap: int = Field(
        default=50,
        ge=0,
        description="Words repeated between consecutive chunks",
    )

    # ==========================================================================
    # Retrieval Configuration
    # ==========================================================================
    similarity_threshold: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Minimum cosine similarity for retrieved chunks",
    )
    retrieval_top_k: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Number of chunks to retrieve",
    )
    default_sensitivity: Literal["public", "internal", "confidential", "restricted"] = Field(
        default="public",
        description="Highest sensitivity returned when a query does not ask for more",
    )

    # ==========================================================================
    # Indexing Configuration
    # ==========================================================================
    index_max_workers: int = Field(
        default=1,
        ge=1,
        le=32,
        description="Documents indexed concurrently by index_all_pending",
    )

    # ==========================================================================
    # Storage Paths
    # ==========================================================================
    sources_path: Path = Field(
        default=Path("data/sources.json"),
        description="JSON file with the knowledge sources",
    )
    store_path: Path = Field(
        default=Path("data/index/chunks.json"),
        description="JSON file backing the chunk store",
    )

    # ==========================================================================
    # API Configuration
    # ==========================================================================
    api_host: str = Field(
        default="0.0.0.0",
        description="Host to bind API server",
    )
    api_port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port for API server",
    )
    api_workers: int = Field(
        default=1,
        ge=1,
        le=4,
        description="Number of uvicorn workers",
    )

    # ==========================================================================
    # Observability Configuration
    # ==========================================================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    phoenix_endpoint: str = Field(
        default="http://localhost:6006",
        description="Arize Phoenix collector endpoint",
    )
    enable_tracing: bool = Field(
        default=False,
        description="Enable OpenTelemetry tracing to Phoenix",
    )

    # ==========================================================================
    # Validators
    # ==========================================================================
    @field_validator("chunk_overlap")
    @classmethod
    def validate_chunk_overlap(cls, v: int, info) -> int:
        """Ensure overlap is less than chunk size."""
        chunk_size = info.data.get("chunk_size", 500)
        if v >= chunk_size:
            raise ValueError(f"chunk_overlap ({v}) must be less than chunk_size ({chunk_size})")
        return v

    @field_validator("sources_path", "store_path")
    @classmethod
    def resolve_path(cls, v: Path) -> Path:
        """Resolve paths to absolute paths."""
        return v.resolve()

    # ==========================================================================
    # Computed Properties
    # ==========================================================================
    @property
    def hf_api_key_value(self) -> Optional[str]:
        """Get the actual API key value (use sparingly)."""
        if self.hf_api_key:
            return self.hf_api_key.get_secret_value()
        return None

    @property
    def chunking(self) -> "ChunkingConfig":
        """Chunking configuration built from chunk_size and chunk_overlap."""
        from fieldkb.retrieval.chunker import ChunkingConfig

        return ChunkingConfig(chunk_size=self.chunk_size, chunk_overlap=self.chunk_overlap)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to ensure settings are only loaded once.
    Call `get_settings.cache_clear()` to reload settings.

    Returns:
        Settings: Application settings instance
    """
    return Settings()


# Convenience alias
settings = get_settings()
