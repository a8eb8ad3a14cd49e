"""
Word-window document chunking.

Splits a document into overlapping windows of words so each window can
be embedded independently while keeping context across boundaries:
    - Window k covers words [k * step, k * step + chunk_size)
    - step = chunk_size - chunk_overlap
    - Chunks keep their position (ordinal) in reading order
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from fieldkb.exceptions import ChunkingConfigError


@dataclass(frozen=True)
class ChunkingConfig:
    """Chunk size and overlap, both measured in words."""

    chunk_size: int = 500
    chunk_overlap: int = 50

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            raise ChunkingConfigError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.chunk_overlap < 0:
            raise ChunkingConfigError(
                f"chunk_overlap must be non-negative, got {self.chunk_overlap}"
            )
        if self.chunk_overlap >= self.chunk_size:
            raise ChunkingConfigError(
                f"chunk_overlap ({self.chunk_overlap}) must be less than "
                f"chunk_size ({self.chunk_size})"
            )

    @property
    def step(self) -> int:
        """Words the window advances between chunks (always positive)."""
        return self.chunk_size - self.chunk_overlap


@dataclass(frozen=True)
class TextChunk:
    """A window of a document's words."""

    ordinal: int
    """Position of the chunk in reading order, starting at 0."""

    text: str
    """Words of the window joined by single spaces."""

    start: int
    """Index of the first word of the window in the document."""

    size: int
    """Number of words in the window."""


def iter_chunks(text: str, config: ChunkingConfig) -> Iterator[TextChunk]:
    """
    Lazily split text into overlapping word windows.

    A text with fewer than ``chunk_size`` words yields exactly one chunk;
    empty or whitespace-only text yields nothing.

    Args:
        text: Document text, tokenized on whitespace
        config: Validated chunk size and overlap

    Yields:
        TextChunk objects in ordinal order
    """
    words = text.split()
    step = config.step

    for ordinal, start in enumerate(range(0, len(words), step)):
        window = words[start : start + config.chunk_size]
        yield TextChunk(
            ordinal=ordinal,
            text=" ".join(window),
            start=start,
            size=len(window),
        )


def chunk_text(text: str, config: ChunkingConfig) -> list[TextChunk]:
    """Split text into a list of chunks (see ``iter_chunks``)."""
    return list(iter_chunks(text, config))


def merge_chunks(chunks: Iterable[str], chunk_overlap: int) -> str:
    """
    Rebuild a document from its chunks in ordinal order.

    Drops the leading ``chunk_overlap`` words of every chunk after the
    first. The result equals the original text with whitespace
    normalized to single spaces.

    Args:
        chunks: Chunk texts in ordinal order
        chunk_overlap: Overlap the chunks were produced with

    Returns:
        Reconstructed text
    """
    words: list[str] = []
    for i, chunk in enumerate(chunks):
        chunk_words = chunk.split()
        words.extend(chunk_words if i == 0 else chunk_words[chunk_overlap:])
    return " ".join(words)
