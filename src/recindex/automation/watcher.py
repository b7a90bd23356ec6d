"""Hotfolder watching for incoming metadata records.

watchdog events arrive on observer threads; each record path is debounced there
and then handed to the asyncio loop, where a single consumer indexes records
one after another.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
import threading
from typing import Awaitable, Callable

from watchdog.events import PatternMatchingEventHandler
from watchdog.observers import Observer


LOGGER = logging.getLogger(__name__)

RECORD_PATTERNS = ["*.xml"]
# Partial uploads and editor leftovers
IGNORED_PATTERNS = ["*.tmp", "*.part", ".*", "*~"]

RecordCallback = Callable[[Path], Awaitable[None]]


class DebouncedRecordHandler(PatternMatchingEventHandler):
    """Emit a record path once writes to it have been quiet for the debounce delay."""

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        queue: asyncio.Queue[Path],
        debounce_seconds: float = 2.0,
    ) -> None:
        super().__init__(
            patterns=RECORD_PATTERNS,
            ignore_patterns=IGNORED_PATTERNS,
            ignore_directories=True,
            case_sensitive=False,
        )
        self._loop = loop
        self._records = queue
        self._debounce_seconds = debounce_seconds
        self._pending: dict[str, threading.Timer] = {}
        self._lock = threading.Lock()

    @property
    def pending_records(self) -> list[str]:
        with self._lock:
            return sorted(self._pending)

    def _hand_over(self, record_path: str) -> None:
        with self._lock:
            self._pending.pop(record_path, None)
        self._loop.call_soon_threadsafe(self._records.put_nowait, Path(record_path))

    def _debounce(self, record_path: str) -> None:
        with self._lock:
            previous = self._pending.pop(record_path, None)
            if previous is not None:
                previous.cancel()

            timer = threading.Timer(self._debounce_seconds, self._hand_over, args=(record_path,))
            timer.daemon = True
            self._pending[record_path] = timer
            timer.start()

    def on_created(self, event) -> None:  # type: ignore[override]
        self._debounce(event.src_path)

    def on_modified(self, event) -> None:  # type: ignore[override]
        # Large records are often copied in several writes
        self._debounce(event.src_path)

    def on_moved(self, event) -> None:  # type: ignore[override]
        # Uploads renamed from *.part to *.xml only match on the destination
        dest_path = getattr(event, "dest_path", None)
        if dest_path and Path(dest_path).suffix.lower() == ".xml":
            self._debounce(dest_path)

    def close(self) -> None:
        with self._lock:
            timers = list(self._pending.values())
            self._pending.clear()
        for timer in timers:
            timer.cancel()


class RecordFolderWatcher:
    """Index metadata records dropped into a hotfolder.

    ``callback`` receives each settled record path on the running event loop.
    Records are processed strictly one at a time so that an anchor and its
    volumes uploaded together are committed in arrival order. A failing
    callback is logged and does not stop the watcher.
    """

    def __init__(
        self,
        watch_dir: str | Path,
        callback: RecordCallback,
        debounce_seconds: float = 2.0,
    ) -> None:
        self._hotfolder = Path(watch_dir)
        self._callback = callback
        self._debounce_seconds = debounce_seconds
        self._records: asyncio.Queue[Path] | None = None
        self._handler: DebouncedRecordHandler | None = None
        self._observer: Observer | None = None
        self._indexing_task: asyncio.Task[None] | None = None

    @property
    def hotfolder(self) -> Path:
        return self._hotfolder

    @property
    def running(self) -> bool:
        return self._observer is not None

    async def _index_arrivals(self) -> None:
        assert self._records is not None
        while True:
            record_path = await self._records.get()
            try:
                await self._callback(record_path)
            except Exception:  # pragma: no cover
                LOGGER.exception("Indexing callback failed for record %s", record_path)
            finally:
                self._records.task_done()

    async def start(self) -> None:
        if self._observer is not None:
            return
        if not self._hotfolder.is_dir():
            raise ValueError(f"Hotfolder does not exist or is not a directory: {self._hotfolder}")

        self._records = asyncio.Queue()
        self._handler = DebouncedRecordHandler(
            loop=asyncio.get_running_loop(),
            queue=self._records,
            debounce_seconds=self._debounce_seconds,
        )

        observer = Observer()
        observer.schedule(self._handler, str(self._hotfolder), recursive=False)
        observer.start()
        self._observer = observer
        self._indexing_task = asyncio.create_task(self._index_arrivals())
        LOGGER.debug("Watching hotfolder %s for %s", self._hotfolder, ", ".join(RECORD_PATTERNS))

    def stop(self) -> None:
        observer = self._observer
        if observer is not None:
            observer.stop()
            observer.join(timeout=5.0)
            self._observer = None

        if self._handler is not None:
            self._handler.close()
            self._handler = None

        if self._indexing_task is not None:
            self._indexing_task.cancel()
            self._indexing_task = None
