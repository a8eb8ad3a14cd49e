"""
Read access to knowledge sources.

The indexer needs two reads from the content side of the application:
fetch one source by id, and list the active sources. Sources are edited
elsewhere; ``InMemorySourceRepository`` is the implementation used by the
CLI and API, loaded from a JSON file of source records.
"""

import json
import logging
import threading
from collections.abc import Iterable
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import TypeAdapter, ValidationError

from fieldkb.exceptions import SourceNotFound, StoreFailure
from fieldkb.models import KnowledgeSource, SourceSummary

logger = logging.getLogger(__name__)

_SOURCE_LIST = TypeAdapter(list[KnowledgeSource])


@runtime_checkable
class SourceRepository(Protocol):
    """Read capability over knowledge sources."""

    def get_source(self, source_id: str) -> KnowledgeSource:
        """Return the source or raise ``SourceNotFound``."""
        ...

    def list_active_sources(self) -> list[SourceSummary]:
        """Return id and title of every active source."""
        ...


class InMemorySourceRepository:
    """
    Thread-safe dictionary of knowledge sources.

    Example:
        >>> repo = InMemorySourceRepository.from_json("data/sources.json")
        >>> repo.get_source("manual-042").title
        'Chiller maintenance manual'
    """

    def __init__(self, sources: Iterable[KnowledgeSource] = ()) -> None:
        self._lock = threading.RLock()
        self._sources: dict[str, KnowledgeSource] = {}
        for source in sources:
            self.upsert(source)

    def __len__(self) -> int:
        return len(self._sources)

    def get_source(self, source_id: str) -> KnowledgeSource:
        with self._lock:
            try:
                return self._sources[source_id]
            except KeyError:
                raise SourceNotFound(source_id) from None

    def list_active_sources(self) -> list[SourceSummary]:
        with self._lock:
            return [
                SourceSummary(id=source.id, title=source.title)
                for source in self._sources.values()
                if source.is_active
            ]

    def upsert(self, source: KnowledgeSource) -> None:
        """Add a source or replace the one with the same id."""
        with self._lock:
            self._sources[source.id] = source

    def set_active(self, source_id: str, is_active: bool) -> KnowledgeSource:
        """Activate or deactivate a source, returning the updated record."""
        with self._lock:
            updated = self.get_source(source_id).model_copy(update={"is_active": is_active})
            self._sources[source_id] = updated
            return updated

    @classmethod
    def from_json(cls, path: str | Path) -> "InMemorySourceRepository":
        """
        Load sources from a JSON array of source records.

        Args:
            path: JSON file path

        Returns:
            Repository holding the loaded sources

        Raises:
            FileNotFoundError: If the file does not exist
            StoreFailure: If the file is not a valid list of sources
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Sources file not found: {path}")

        try:
            with path.open(encoding="utf-8") as f:
                sources = _SOURCE_LIST.validate_python(json.load(f))
        except (json.JSONDecodeError, ValidationError) as e:
            raise StoreFailure(f"Invalid sources file: {path}", details=str(e)) from e

        logger.info(f"Loaded {len(sources)} knowledge sources from {path}")
        return cls(sources)
