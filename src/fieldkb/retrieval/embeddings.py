"""
Embedding providers.

Every provider exposes one operation, ``embed(text)``, and one declared
property, ``dimension``. The indexer and the retriever only talk to
providers through ``generate_embedding``, which applies the timeout and
turns any provider error into ``ProviderFailure``.

Providers:
    - HashEmbedder: deterministic text-hash vectors for development
    - HuggingFaceEmbedder: HuggingFace Inference API over httpx
    - LocalEmbedder: in-process sentence-transformers model
"""

import concurrent.futures
import logging
import time
from typing import Optional, Protocol, runtime_checkable

import httpx
import numpy as np
from numpy.typing import NDArray

from fieldkb.config import settings
from fieldkb.exceptions import DimensionMismatch, ProviderFailure

logger = logging.getLogger(__name__)


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Converts a text into a vector of fixed length ``dimension``."""

    name: str
    dimension: int

    def embed(self, text: str) -> list[float]: ...


def generate_embedding(
    provider: EmbeddingProvider,
    text: str,
    *,
    timeout: Optional[float] = None,
) -> list[float]:
    """
    Embed one text with a bounded wait.

    Args:
        provider: Embedding provider to call
        text: Text to embed
        timeout: Seconds to wait for the provider, counted from the start
            of this call (None waits forever)

    Returns:
        Embedding as a list of floats of length ``provider.dimension``

    Raises:
        ProviderFailure: If the provider raises, times out or returns a
            non-numeric vector
        DimensionMismatch: If the vector length differs from ``provider.dimension``
    """
    try:
        if timeout is not None:
            raw = _embed_with_timeout(provider, text, timeout)
        else:
            raw = provider.embed(text)
        vector = np.asarray(raw, dtype=np.float64).ravel()
    except ProviderFailure:
        raise
    except concurrent.futures.TimeoutError as e:
        raise ProviderFailure(
            f"Embedding provider '{provider.name}' timed out after {timeout}s"
        ) from e
    except Exception as e:
        raise ProviderFailure(
            f"Embedding provider '{provider.name}' failed", details=str(e)
        ) from e

    if not np.all(np.isfinite(vector)):
        raise ProviderFailure(f"Embedding provider '{provider.name}' returned non-finite values")
    if vector.shape[0] != provider.dimension:
        raise DimensionMismatch(
            expected=provider.dimension,
            actual=int(vector.shape[0]),
            details=f"provider '{provider.name}'",
        )
    return vector.tolist()


def _embed_with_timeout(provider: EmbeddingProvider, text: str, timeout: float) -> list[float]:
    # Own worker per call: a timed-out call keeps running but never queues later ones
    executor = concurrent.futures.ThreadPoolExecutor(
        max_workers=1, thread_name_prefix="fieldkb-embed"
    )
    try:
        return executor.submit(provider.embed, text).result(timeout=timeout)
    finally:
        executor.shutdown(wait=False)


def normalize_embeddings(embeddings: NDArray[np.float32]) -> NDArray[np.float32]:
    """
    Normalize embeddings to unit length for cosine similarity.

    Args:
        embeddings: Array of shape (n, dimension)

    Returns:
        Normalized embeddings of same shape
    """
    norms = np.linalg.norm(embeddings, axis=1, keepdims=True)
    # Avoid division by zero
    norms = np.where(norms == 0, 1, norms)
    return (embeddings / norms).astype(np.float32)


class HashEmbedder:
    """
    Deterministic development provider.

    Derives a scalar from a 32-bit rolling hash of the text and spreads it
    over the vector with ``sin(h * (i + 1)) * 0.5 + 0.5``. The same text
    always maps to the same vector; there is no semantic signal.
    """

    name = "hash"

    def __init__(self, dimension: int = 1536) -> None:
        if dimension <= 0:
            raise ValueError(f"dimension must be positive, got {dimension}")
        self.dimension = dimension

    def embed(self, text: str) -> list[float]:
        h = self._text_hash(text)
        positions = np.arange(1, self.dimension + 1, dtype=np.float64)
        return (np.sin(h * positions) * 0.5 + 0.5).tolist()

    @staticmethod
    def _text_hash(text: str) -> float:
        h = 0
        for char in text:
            h = (h * 31 + ord(char)) & 0xFFFFFFFF
        if h >= 2**31:
            h -= 2**32
        return abs(h) / 2147483647


class HuggingFaceEmbedder:
    """
    Generate embeddings using HuggingFace Inference API.

    Uses the feature-extraction pipeline with retry logic for rate limits.

    Example:
        >>> embedder = HuggingFaceEmbedder(dimension=384)
        >>> vectors = embedder.embed_texts(["How do I bleed the pump?"])
        >>> vectors.shape
        (1, 384)
    """

    def __init__(
        self,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        batch_size: Optional[int] = None,
        dimension: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """
        Initialize the embedder.

        Args:
            model: HuggingFace model ID (default from settings)
            api_key: HuggingFace API key (default from settings)
            batch_size: Number of texts per API call (default from settings)
            dimension: Vector dimension produced by the model (default from settings)
            timeout: HTTP timeout in seconds (default from settings)
        """
        self.model = model or settings.embedding_model
        self.api_key = api_key or settings.hf_api_key_value
        self.batch_size = batch_size or settings.embedding_batch_size
        self.dimension = dimension or settings.embedding_dimension
        self.timeout = timeout or settings.embedding_timeout
        self.base_url = "https://api-inference.huggingface.co/pipeline/feature-extraction"
        self.max_retries = settings.embedding_max_retries
        self.initial_retry_delay = 1.0  # seconds

    @property
    def name(self) -> str:
        return f"huggingface:{self.model}"

    def embed(self, text: str) -> list[float]:
        """Embed a single text."""
        return self.embed_texts([text])[0].tolist()

    def embed_texts(self, texts: list[str]) -> NDArray[np.float32]:
        """
        Generate embeddings for a list of texts.

        Handles batching and retry logic for rate limits.

        Args:
            texts: List of texts to embed

        Returns:
            Array of shape (len(texts), dimension)
        """
        if not texts:
            return np.empty((0, self.dimension), dtype=np.float32)

        all_embeddings: list[NDArray[np.float32]] = []

        # Process texts in batches
        for i in range(0, len(texts), self.batch_size):
            batch = texts[i : i + self.batch_size]
            all_embeddings.append(self._embed_batch(batch))

        return np.vstack(all_embeddings)

    def _embed_batch(self, texts: list[str]) -> NDArray[np.float32]:
        """
        Embed a single batch of texts with retry logic.

        Args:
            texts: List of texts to embed (should be <= batch_size)

        Returns:
            Array of normalized embeddings

        Raises:
            httpx.HTTPStatusError: If API returns non-429 error, or 429 after retries
            httpx.HTTPError: If network error occurs
            ProviderFailure: If the response is not a (len(texts), dimension) matrix
        """
        url = f"{self.base_url}/{self.model}"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = {"inputs": texts}

        retry_delay = self.initial_retry_delay

        with httpx.Client(timeout=self.timeout) as client:
            for attempt in range(self.max_retries):
                response = client.post(url, json=payload, headers=headers)

                # Handle rate limiting with exponential backoff
                if response.status_code == 429 and attempt < self.max_retries - 1:
                    logger.warning(
                        f"HuggingFace rate limit hit, retrying in {retry_delay:.1f}s "
                        f"(attempt {attempt + 1}/{self.max_retries})"
                    )
                    time.sleep(retry_delay)
                    retry_delay *= 2  # Exponential backoff
                    continue

                response.raise_for_status()
                return self._parse_embeddings(response.json(), len(texts))

        # Only reached when max_retries is 0
        raise ProviderFailure("No embedding request was attempted")

    def _parse_embeddings(self, payload: object, expected_rows: int) -> NDArray[np.float32]:
        try:
            embeddings = np.array(payload, dtype=np.float32)
        except (TypeError, ValueError) as e:
            raise ProviderFailure("Malformed embedding response", details=str(e)) from e

        if embeddings.ndim != 2 or embeddings.shape[0] != expected_rows:
            raise ProviderFailure(
                "Malformed embedding response",
                details=f"expected {expected_rows} vectors, got shape {embeddings.shape}",
            )
        if embeddings.shape[1] != self.dimension:
            raise DimensionMismatch(expected=self.dimension, actual=int(embeddings.shape[1]))

        return normalize_embeddings(embeddings)


class LocalEmbedder:
    """
    Generate embeddings with a local sentence-transformers model.

    Requires the ``local`` extra (sentence-transformers). The model is
    loaded once at construction; the dimension is read from the model.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        batch_size: int = 32,
        show_progress: bool = False,
        device: Optional[str] = None,
    ) -> None:
        from sentence_transformers import SentenceTransformer

        self.model_name = model or settings.embedding_model
        self.batch_size = batch_size
        self.show_progress = show_progress
        self.model = SentenceTransformer(self.model_name, device=device)
        self.dimension = int(self.model.get_sentence_embedding_dimension())

    @property
    def name(self) -> str:
        return f"local:{self.model_name}"

    def embed(self, text: str) -> list[float]:
        """Embed a single text."""
        return self.embed_texts([text])[0].tolist()

    def embed_texts(self, texts: list[str]) -> NDArray[np.float32]:
        """
        Generate normalized embeddings for a list of texts.

        Args:
            texts: List of texts to embed

        Returns:
            Array of shape (len(texts), dimension)
        """
        if not texts:
            return np.empty((0, self.dimension), dtype=np.float32)

        embeddings = self.model.encode(
            texts,
            batch_size=self.batch_size,
            show_progress_bar=self.show_progress,
            normalize_embeddings=True,
            convert_to_numpy=True,
        )
        return np.asarray(embeddings, dtype=np.float32)

