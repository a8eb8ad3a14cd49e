"""
Pytest configuration and shared fixtures.

Provides common fixtures for:
    - Configuration with test values
    - Sample knowledge sources
    - A deterministic keyword embedder with real semantic signal
    - Wired source repository, chunk store, indexer and retriever
"""

from unittest.mock import patch

import numpy as np
import pytest

# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def mock_settings():
    """Provide test settings without requiring .env file."""
    with patch.dict(
        "os.environ",
        {
            "HF_API_KEY": "test-api-key",
            "EMBEDDING_PROVIDER": "hash",
            "EMBEDDING_DIMENSION": "64",
            "CHUNK_SIZE": "120",
            "CHUNK_OVERLAP": "20",
            "ENABLE_TRACING": "false",
        },
    ):
        from fieldkb.config import Settings

        yield Settings()


# =============================================================================
# Embedding Fixtures
# =============================================================================

VOCABULARY = [
    "compressor",
    "alarm",
    "pressure",
    "refrigerant",
    "invoice",
    "payment",
    "tax",
    "salary",
    "vacation",
    "safety",
    "ladder",
    "helmet",
]


class KeywordEmbedder:
    """Bag-of-words embedder over a fixed vocabulary, for predictable scores."""

    name = "keyword"

    def __init__(self, vocabulary: list[str] = VOCABULARY) -> None:
        self.vocabulary = vocabulary
        # One extra slot keeps texts without vocabulary words off the zero vector
        self.dimension = len(vocabulary) + 1
        self.calls: list[str] = []

    def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        words = [w.strip(".,;:!?").lower() for w in text.split()]
        vector = np.zeros(self.dimension)
        for word in words:
            if word in self.vocabulary:
                vector[self.vocabulary.index(word)] += 1.0
        vector[-1] = 0.1
        return vector.tolist()


@pytest.fixture
def keyword_embedder() -> KeywordEmbedder:
    """Provide a deterministic embedder whose scores follow shared keywords."""
    return KeywordEmbedder()


# =============================================================================
# Sample Data Fixtures
# =============================================================================


@pytest.fixture
def sample_sources():
    """Provide field-service knowledge sources of every sensitivity level."""
    from fieldkb.models import KnowledgeSource, SensitivityLevel

    return [
        KnowledgeSource(
            id="manual-chiller",
            title="Chiller maintenance manual",
            content=(
                "When the compressor alarm sounds check the discharge pressure. "
                "High pressure usually means the condenser coil is dirty. "
                "Recover the refrigerant before opening the circuit."
            ),
            source_type="manual",
            category="hvac",
        ),
        KnowledgeSource(
            id="procedure-ladder",
            title="Working at height procedure",
            content=(
                "Inspect the ladder before every use and wear a helmet. "
                "Safety harness is mandatory above two meters."
            ),
            source_type="procedure",
            category="safety",
        ),
        KnowledgeSource(
            id="policy-billing",
            title="Billing policy",
            content=(
                "Every invoice is issued after the service order closes. "
                "Payment terms are thirty days and tax is itemized on the invoice."
            ),
            source_type="policy",
            category="finance",
            sensitivity=SensitivityLevel.INTERNAL,
        ),
        KnowledgeSource(
            id="policy-payroll",
            title="Payroll policy",
            content="Salary advances and vacation pay are approved by finance.",
            source_type="policy",
            category="hr",
            sensitivity=SensitivityLevel.CONFIDENTIAL,
        ),
    ]


@pytest.fixture
def source_repository(sample_sources):
    """Provide an in-memory repository with the sample sources."""
    from fieldkb.retrieval.sources import InMemorySourceRepository

    return InMemorySourceRepository(sample_sources)


@pytest.fixture
def chunk_store(source_repository):
    """Provide an empty chunk store bound to the sample sources."""
    from fieldkb.retrieval.store import InMemoryChunkStore

    return InMemoryChunkStore(source_repository)


@pytest.fixture
def chunking_config():
    """Provide a small chunking configuration (8 words, 2 overlap)."""
    from fieldkb.retrieval.chunker import ChunkingConfig

    return ChunkingConfig(chunk_size=8, chunk_overlap=2)


@pytest.fixture
def indexer(source_repository, chunk_store, keyword_embedder, chunking_config):
    """Provide an indexer wired to the sample repository and keyword embedder."""
    from fieldkb.retrieval.indexer import Indexer

    indexer = Indexer(
        sources=source_repository,
        store=chunk_store,
        provider=keyword_embedder,
        chunking=chunking_config,
    )
    return indexer


@pytest.fixture
def retriever(chunk_store, keyword_embedder):
    """Provide a retriever sharing the indexer's store and embedder."""
    from fieldkb.retrieval.retriever import Retriever

    return Retriever(store=chunk_store, provider=keyword_embedder)


@pytest.fixture
def indexed_corpus(indexer):
    """Index every sample source and return the indexer."""
    indexer.index_all_pending()
    return indexer


@pytest.fixture
def make_chunk():
    """Provide a factory for DocumentChunk objects with sensible defaults."""
    from fieldkb.models import ChunkMetadata, DocumentChunk

    def _make_chunk(source_id="manual-chiller", ordinal=0, embedding=None, **overrides):
        metadata = overrides.pop(
            "metadata",
            ChunkMetadata(
                source_title="Chiller maintenance manual", source_type="manual", category="hvac"
            ),
        )
        text = overrides.pop("text", f"chunk {ordinal}")
        return DocumentChunk(
            source_id=source_id,
            ordinal=ordinal,
            text=text,
            size=len(text.split()),
            embedding=embedding if embedding is not None else [1.0, 0.0, 0.0],
            metadata=metadata,
            **overrides,
        )

    return _make_chunk
