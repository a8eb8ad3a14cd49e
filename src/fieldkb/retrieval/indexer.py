"""
Indexing of knowledge sources into the chunk store.

Brings a source's chunk set up to date:
    - index_document: chunk, embed and write one source
    - index_all_pending: index every active source not yet fully indexed
    - reindex_document: delete a source's chunks and index it again

Within a document, chunks are embedded and written in ordinal order.
Different documents share nothing but the chunk store, so
index_all_pending may process several on a thread pool.
"""

import concurrent.futures
import logging
import threading
from typing import Optional

from fieldkb.exceptions import (
    DimensionMismatch,
    IndexingError,
    ProviderFailure,
    SourceNotFound,
    StoreFailure,
)
from fieldkb.models import (
    ChunkMetadata,
    DocumentChunk,
    IndexingFailure,
    IndexingReport,
    IndexingStatus,
    SourceSummary,
)
from fieldkb.retrieval.chunker import ChunkingConfig, iter_chunks
from fieldkb.retrieval.embeddings import EmbeddingProvider, generate_embedding
from fieldkb.retrieval.sources import SourceRepository
from fieldkb.retrieval.store import ChunkStore
from fieldkb.tracing import add_span_attributes, record_exception, traced

logger = logging.getLogger(__name__)


class Indexer:
    """
    Orchestrates chunking, embedding and chunk writes for knowledge sources.

    Example:
        >>> indexer = Indexer(sources, store, HashEmbedder())
        >>> report = indexer.index_all_pending()
        >>> report.indexed
        ['manual-042', 'policy-007']
    """

    def __init__(
        self,
        sources: SourceRepository,
        store: ChunkStore,
        provider: EmbeddingProvider,
        chunking: Optional[ChunkingConfig] = None,
        embed_timeout: Optional[float] = None,
        max_workers: int = 1,
    ) -> None:
        """
        Initialize the indexer.

        Args:
            sources: Repository the documents are read from
            store: Chunk store the chunks are written to
            provider: Embedding provider (same one the retriever uses)
            chunking: Chunk size and overlap (default 500 / 50 words)
            embed_timeout: Seconds to wait for each embedding call (None waits forever)
            max_workers: Documents processed concurrently by index_all_pending
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")

        self.sources = sources
        self.store = store
        self.provider = provider
        self.chunking = chunking or ChunkingConfig()
        self.embed_timeout = embed_timeout
        self.max_workers = max_workers

    def status(self, source_id: str) -> IndexingStatus:
        """Indexing status of a source as recorded by the store."""
        return self.store.get_status(source_id)

    @traced("index_document")
    def index_document(self, source_id: str) -> int:
        """
        Chunk, embed and store one source.

        Does not clear existing chunks first; use ``reindex_document`` to
        replace a source's index.

        Args:
            source_id: Source to index

        Returns:
            Number of chunks written

        Raises:
            SourceNotFound: If the source does not exist
            IndexingError: If an embedding, a chunk write or a status write
                fails; chunks written before the failing ordinal stay in the
                store and the source is marked ``failed``
        """
        source = self.sources.get_source(source_id)
        metadata = ChunkMetadata(
            source_title=source.title,
            source_type=source.source_type,
            category=source.category,
        )

        self._record_status(source_id, IndexingStatus.INDEXING)
        written = 0
        for chunk in iter_chunks(source.content, self.chunking):
            try:
                embedding = generate_embedding(
                    self.provider,
                    chunk.text,
                    timeout=self.embed_timeout,
                )
                self.store.insert_chunk(
                    DocumentChunk(
                        source_id=source_id,
                        ordinal=chunk.ordinal,
                        text=chunk.text,
                        size=chunk.size,
                        embedding=embedding,
                        metadata=metadata,
                    )
                )
            except (ProviderFailure, StoreFailure, DimensionMismatch) as e:
                self._mark_failed(source_id)
                record_exception(e)
                logger.error(
                    f"Indexing '{source.title}' ({source_id}) aborted at chunk "
                    f"{chunk.ordinal}: {e}"
                )
                raise IndexingError(source_id, chunk.ordinal, str(e)) from e

            written += 1
            logger.debug(f"Indexed chunk {chunk.ordinal} of {source_id} ({chunk.size} words)")

        self._record_status(source_id, IndexingStatus.INDEXED)
        add_span_attributes(source_id=source_id, chunks_written=written)
        logger.info(f"Indexed {written} chunks for document: {source.title}")
        return written

    @traced("reindex_document")
    def reindex_document(self, source_id: str) -> int:
        """
        Replace a source's chunks with a fresh index.

        Args:
            source_id: Source to reindex

        Returns:
            Number of chunks written

        Raises:
            SourceNotFound: If the source does not exist (nothing is deleted)
            IndexingError: If the new run fails part-way
        """
        # Fail before deleting anything
        self.sources.get_source(source_id)

        try:
            removed = self.store.delete_chunks_for_source(source_id)
        except StoreFailure as e:
            raise IndexingError(source_id, None, str(e)) from e

        logger.info(f"Removed {removed} chunks of {source_id} for reindexing")
        return self.index_document(source_id)

    @traced("index_all_pending")
    def index_all_pending(
        self,
        cancel_event: Optional[threading.Event] = None,
    ) -> IndexingReport:
        """
        Index every active source that is not fully indexed.

        Sources marked ``indexed`` are skipped, so running this twice
        writes nothing the second time. Sources left ``indexing`` or
        ``failed`` by an earlier run are cleared and indexed again.
        A failing document is reported and does not stop the others.

        Args:
            cancel_event: When set, no further document is started;
                documents already in progress finish

        Returns:
            IndexingReport describing what happened to each source
        """
        report = IndexingReport()
        report_lock = threading.Lock()
        pending = self.sources.list_active_sources()
        logger.info(f"Indexing {len(pending)} active documents...")

        def process(summary: SourceSummary) -> None:
            if cancel_event is not None and cancel_event.is_set():
                with report_lock:
                    report.cancelled = True
                return
            outcome, written, failure = self._index_if_pending(summary)
            with report_lock:
                report.chunks_written += written
                if failure is not None:
                    report.failed.append(failure)
                else:
                    getattr(report, outcome).append(summary.id)

        if self.max_workers == 1:
            for summary in pending:
                process(summary)
                if report.cancelled:
                    break
        else:
            with concurrent.futures.ThreadPoolExecutor(
                max_workers=self.max_workers, thread_name_prefix="fieldkb-index"
            ) as pool:
                for future in [pool.submit(process, summary) for summary in pending]:
                    future.result()

        add_span_attributes(
            indexed=len(report.indexed),
            reindexed=len(report.reindexed),
            skipped=len(report.skipped),
            failed=len(report.failed),
        )
        logger.info(
            f"Indexing complete: {len(report.indexed)} indexed, "
            f"{len(report.reindexed)} repaired, {len(report.skipped)} skipped, "
            f"{len(report.failed)} failed"
            + (" (cancelled)" if report.cancelled else "")
        )
        return report

    def _index_if_pending(
        self, summary: SourceSummary
    ) -> tuple[str, int, Optional[IndexingFailure]]:
        try:
            status = self.status(summary.id)
            if status == IndexingStatus.INDEXED:
                logger.info(f"Skipping: {summary.title} (already indexed)")
                return "skipped", 0, None
            if status == IndexingStatus.NOT_INDEXED and not self.store.chunk_exists_for_source(
                summary.id
            ):
                logger.info(f"Indexing: {summary.title}")
                return "indexed", self.index_document(summary.id), None
            logger.info(f"Repairing: {summary.title} (status {status.value})")
            return "reindexed", self.reindex_document(summary.id), None
        except IndexingError as e:
            return "failed", 0, IndexingFailure(
                source_id=e.source_id, ordinal=e.ordinal, reason=e.reason
            )
        except SourceNotFound as e:
            logger.warning(f"Source {summary.id} disappeared before indexing")
            return "failed", 0, IndexingFailure(source_id=summary.id, reason=str(e))
        except StoreFailure as e:
            record_exception(e)
            logger.error(f"Chunk store failed while checking {summary.id}: {e}")
            return "failed", 0, IndexingFailure(source_id=summary.id, reason=str(e))

    def _record_status(self, source_id: str, status: IndexingStatus) -> None:
        try:
            self.store.set_status(source_id, status)
        except StoreFailure as e:
            self._mark_failed(source_id)
            record_exception(e)
            logger.error(f"Could not record status {status.value} for {source_id}: {e}")
            raise IndexingError(source_id, None, str(e)) from e

    def _mark_failed(self, source_id: str) -> None:
        try:
            self.store.set_status(source_id, IndexingStatus.FAILED)
        except StoreFailure:
            logger.exception(f"Could not record failed status for {source_id}")
