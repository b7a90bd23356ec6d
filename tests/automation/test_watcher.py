from __future__ import annotations

import asyncio
from pathlib import Path

from watchdog.events import FileCreatedEvent, FileModifiedEvent, FileMovedEvent

from recindex.automation.watcher import DebouncedRecordHandler, RecordFolderWatcher


def test_debounced_handler_emits_only_once_for_same_path() -> None:
    async def _scenario() -> None:
        queue: asyncio.Queue[Path] = asyncio.Queue()
        handler = DebouncedRecordHandler(
            loop=asyncio.get_running_loop(),
            queue=queue,
            debounce_seconds=0.2,
        )

        handler.on_created(FileCreatedEvent("hotfolder/PPN123.xml"))
        assert handler.pending_records == ["hotfolder/PPN123.xml"]
        for _ in range(4):
            await asyncio.sleep(0.05)
            handler.on_modified(FileModifiedEvent("hotfolder/PPN123.xml"))

        emitted = await asyncio.wait_for(queue.get(), timeout=1.0)
        await asyncio.sleep(0.3)

        assert emitted.name == "PPN123.xml"
        assert handler.pending_records == []
        assert queue.empty()
        handler.close()

    asyncio.run(_scenario())


def test_debounced_handler_pattern_filtering() -> None:
    async def _scenario() -> None:
        queue: asyncio.Queue[Path] = asyncio.Queue()
        handler = DebouncedRecordHandler(
            loop=asyncio.get_running_loop(),
            queue=queue,
            debounce_seconds=0.05,
        )

        handler.dispatch(FileCreatedEvent("hotfolder/ok.XML"))
        handler.dispatch(FileCreatedEvent("hotfolder/scan.jpg"))
        handler.dispatch(FileCreatedEvent("hotfolder/partial.xml.part"))
        handler.dispatch(FileCreatedEvent("hotfolder/.hidden.xml"))

        emitted = await asyncio.wait_for(queue.get(), timeout=1.0)
        await asyncio.sleep(0.1)

        assert emitted.name == "ok.XML"
        assert queue.empty()
        handler.close()

    asyncio.run(_scenario())


def test_debounced_handler_picks_up_renamed_uploads() -> None:
    async def _scenario() -> None:
        queue: asyncio.Queue[Path] = asyncio.Queue()
        handler = DebouncedRecordHandler(
            loop=asyncio.get_running_loop(),
            queue=queue,
            debounce_seconds=0.05,
        )

        handler.dispatch(FileMovedEvent("hotfolder/upload.tmp", "hotfolder/EAD_0001.xml"))

        emitted = await asyncio.wait_for(queue.get(), timeout=1.0)

        assert emitted.name == "EAD_0001.xml"
        handler.close()

    asyncio.run(_scenario())


def test_record_folder_watcher_start_stop_lifecycle(tmp_path: Path) -> None:
    async def _scenario() -> None:
        received: list[Path] = []

        async def _callback(path: Path) -> None:
            received.append(path)

        watcher = RecordFolderWatcher(tmp_path, _callback, debounce_seconds=0.05)
        await watcher.start()

        assert watcher.running
        assert watcher.hotfolder == tmp_path
        assert watcher._observer is not None
        assert watcher._observer.is_alive()

        watcher.stop()

        assert watcher._observer is None
        assert watcher._indexing_task is None
        assert watcher.running is False
        assert received == []

    asyncio.run(_scenario())


def test_record_folder_watcher_rejects_missing_directory(tmp_path: Path) -> None:
    async def _scenario() -> None:
        async def _callback(path: Path) -> None:
            return None

        watcher = RecordFolderWatcher(tmp_path / "missing", _callback)
        try:
            await watcher.start()
        except ValueError as exc:
            assert "does not exist" in str(exc)
        else:  # pragma: no cover
            raise AssertionError("Expected ValueError for missing watch directory")

    asyncio.run(_scenario())
