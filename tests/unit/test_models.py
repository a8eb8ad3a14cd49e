"""Unit tests for models and exceptions modules."""

import pytest
from pydantic import ValidationError

from fieldkb.exceptions import (
    ChunkingConfigError,
    DimensionMismatch,
    IndexingError,
    KnowledgeBaseError,
    ProviderFailure,
    SourceNotFound,
    StoreFailure,
)
from fieldkb.models import (
    ChunkMetadata,
    DocumentChunk,
    IndexingReport,
    KnowledgeSource,
    SearchResult,
    SensitivityLevel,
)


@pytest.mark.unit
class TestSensitivityLevel:
    """Tests for sensitivity ordering."""

    def test_ranks_ordered(self):
        """Levels rank public < internal < confidential < restricted."""
        ranks = [level.rank for level in SensitivityLevel]

        assert ranks == sorted(ranks)
        assert SensitivityLevel.PUBLIC.rank == 0
        assert SensitivityLevel.RESTRICTED.rank == 100

    @pytest.mark.parametrize(
        "query,source,allowed",
        [
            (SensitivityLevel.PUBLIC, SensitivityLevel.PUBLIC, True),
            (SensitivityLevel.PUBLIC, SensitivityLevel.INTERNAL, False),
            (SensitivityLevel.INTERNAL, SensitivityLevel.PUBLIC, True),
            (SensitivityLevel.CONFIDENTIAL, SensitivityLevel.RESTRICTED, False),
            (SensitivityLevel.RESTRICTED, SensitivityLevel.CONFIDENTIAL, True),
        ],
    )
    def test_allows(self, query, source, allowed):
        """A level clears sources of the same or a lower rank."""
        assert query.allows(source) is allowed

    def test_from_string(self):
        """Levels parse from their string values."""
        assert SensitivityLevel("confidential") is SensitivityLevel.CONFIDENTIAL


@pytest.mark.unit
class TestModels:
    """Tests for pydantic models."""

    def test_source_requires_id(self):
        """Source ids cannot be empty."""
        with pytest.raises(ValidationError):
            KnowledgeSource(id="", title="T", content="", source_type="manual")

    def test_chunk_defaults(self):
        """Chunks get an id and creation time."""
        chunk = DocumentChunk(
            source_id="s1",
            ordinal=0,
            text="a b",
            size=2,
            embedding=[0.1, 0.2],
            metadata=ChunkMetadata(source_title="T", source_type="manual"),
        )

        assert chunk.id
        assert chunk.created_at.tzinfo is not None
        assert chunk.dimension == 2

    def test_chunk_rejects_negative_ordinal(self):
        """Ordinals start at zero."""
        with pytest.raises(ValidationError):
            DocumentChunk(
                source_id="s1",
                ordinal=-1,
                text="a",
                size=1,
                embedding=[0.1],
                metadata=ChunkMetadata(source_title="T", source_type="manual"),
            )

    def test_search_result_source_id(self, make_chunk):
        """Results expose the chunk's source id."""
        assert SearchResult(chunk=make_chunk(), score=0.9).source_id == "manual-chiller"

    def test_report_defaults(self):
        """An empty report has nothing in any bucket."""
        report = IndexingReport()

        assert report.indexed == report.reindexed == report.skipped == []
        assert report.failed == []
        assert report.chunks_written == 0
        assert report.cancelled is False


@pytest.mark.unit
class TestExceptions:
    """Tests for the exception hierarchy."""

    @pytest.mark.parametrize(
        "exc",
        [
            SourceNotFound("s1"),
            ChunkingConfigError("bad"),
            ProviderFailure("down"),
            StoreFailure("full"),
            DimensionMismatch(3, 4),
            IndexingError("s1", 2, "down"),
        ],
    )
    def test_all_derive_from_base(self, exc):
        """Every error is a KnowledgeBaseError."""
        assert isinstance(exc, KnowledgeBaseError)

    def test_details_in_message(self):
        """Details are appended to the message."""
        error = StoreFailure("Could not write", details="disk full")

        assert str(error) == "Could not write | Details: disk full"
        assert error.message == "Could not write"
        assert error.details == "disk full"

    def test_dimension_mismatch_attributes(self):
        """Expected and actual dimensions are kept."""
        error = DimensionMismatch(expected=384, actual=768)

        assert error.expected == 384
        assert error.actual == 768
        assert "384" in str(error) and "768" in str(error)

    def test_indexing_error_message(self):
        """The failing ordinal and reason appear in the message."""
        error = IndexingError("manual-042", 7, "timed out")

        assert str(error) == "Indexing manual-042 failed at chunk 7 | Details: timed out"
        assert IndexingError("manual-042", None, "x").ordinal is None
