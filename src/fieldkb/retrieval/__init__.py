"""
Knowledge-base indexing and retrieval components.

Components:
    - chunker: Split documents into overlapping word windows
    - embeddings: Embedding provider contract and implementations
    - sources: Read access to knowledge sources
    - store: Chunk persistence, indexing status and similarity search
    - indexer: Bring a source's chunks up to date in the store
    - retriever: Answer similarity queries
"""

from fieldkb.retrieval.chunker import ChunkingConfig, TextChunk, chunk_text, iter_chunks
from fieldkb.retrieval.embeddings import (
    EmbeddingProvider,
    HashEmbedder,
    HuggingFaceEmbedder,
    LocalEmbedder,
)
from fieldkb.retrieval.indexer import Indexer
from fieldkb.retrieval.retriever import Retriever
from fieldkb.retrieval.sources import InMemorySourceRepository, SourceRepository
from fieldkb.retrieval.store import ChunkStore, InMemoryChunkStore

__all__ = [
    "ChunkingConfig",
    "TextChunk",
    "chunk_text",
    "iter_chunks",
    "EmbeddingProvider",
    "HashEmbedder",
    "HuggingFaceEmbedder",
    "LocalEmbedder",
    "Indexer",
    "Retriever",
    "InMemorySourceRepository",
    "SourceRepository",
    "ChunkStore",
    "InMemoryChunkStore",
]
