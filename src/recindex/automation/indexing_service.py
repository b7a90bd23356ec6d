"""Shared job runner used by the hotfolder watcher and the batch CLI."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
import threading
from typing import Mapping

from recindex.indexing.config import IndexerSettings
from recindex.indexing.connector import HttpConnector
from recindex.indexing.models import IndexingJob, IndexingResult
from recindex.indexing.pipeline import RecordIndexer
from recindex.indexing.source import ParseError
from recindex.indexing.variants import VariantRegistry, build_default_variants
from recindex.search.writestrategy import DocumentSink


LOGGER = logging.getLogger(__name__)


class IndexingService:
    """Route files to per-variant indexers that share one repository.

    Indexers are created lazily, one per variant, and reused for later jobs.
    """

    def __init__(
        self,
        repository: DocumentSink,
        *,
        settings: IndexerSettings | None = None,
        registry: VariantRegistry | None = None,
        connector: HttpConnector | None = None,
        format_name: str | None = None,
        data_folders: Mapping[str, Path] | None = None,
        download_external_images: bool = False,
    ) -> None:
        self._repository = repository
        self._settings = settings or IndexerSettings()
        self._registry = registry or build_default_variants()
        self._connector = connector
        self._format_name = format_name
        self._data_folders = dict(data_folders or {})
        self._download_external_images = download_external_images
        self._indexers: dict[str, RecordIndexer] = {}
        self._lock = threading.Lock()

        if format_name is not None:
            self._registry.get(format_name)

    def _indexer_for(self, name: str) -> RecordIndexer:
        with self._lock:
            indexer = self._indexers.get(name)
            if indexer is None:
                indexer = RecordIndexer(
                    self._registry.get(name),
                    self._repository,
                    settings=self._settings,
                    connector=self._connector,
                )
                self._indexers[name] = indexer
            return indexer

    def build_job(self, file_path: Path, *, from_reindex_queue: bool = False) -> IndexingJob:
        return IndexingJob(
            file_path=file_path,
            from_reindex_queue=from_reindex_queue,
            data_folders=dict(self._data_folders),
            page_count_start=self._settings.page_count_start,
            download_external_images=self._download_external_images,
        )

    def index_file(self, file_path: str | Path, *, from_reindex_queue: bool = False) -> IndexingResult:
        path = Path(file_path)
        name = self._format_name
        if name is None:
            try:
                variant = self._registry.detect(path, self._settings.namespaces)
            except ParseError as exc:
                LOGGER.error("Cannot detect format of %s: %s", path, exc)
                return IndexingResult(source_path=str(path), error=str(exc), from_reindex_queue=from_reindex_queue)
            if variant is None:
                message = f"No format variant matches {path}"
                LOGGER.error("%s", message)
                return IndexingResult(source_path=str(path), error=message, from_reindex_queue=from_reindex_queue)
            name = variant.name

        return self._indexer_for(name).index(self.build_job(path, from_reindex_queue=from_reindex_queue))

    async def index_file_async(self, file_path: str | Path) -> IndexingResult:
        return await asyncio.to_thread(self.index_file, file_path)

    def close(self) -> None:
        with self._lock:
            indexers = list(self._indexers.values())
            self._indexers.clear()
        for indexer in indexers:
            indexer.close()
