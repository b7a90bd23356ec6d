"""Automation services for hotfolder-based indexing workflows."""

from recindex.automation.indexing_service import IndexingService
from recindex.automation.watcher import DebouncedRecordHandler, RecordFolderWatcher

__all__ = [
    "DebouncedRecordHandler",
    "IndexingService",
    "RecordFolderWatcher",
]
