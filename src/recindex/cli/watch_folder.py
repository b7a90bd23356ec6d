"""CLI entrypoint for hotfolder-based automatic indexing."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
from pathlib import Path

from dotenv import load_dotenv

from recindex.automation.indexing_service import IndexingService
from recindex.automation.watcher import RecordFolderWatcher
from recindex.indexing.config import IndexerSettings
from recindex.search.repository import SearchRepository


load_dotenv()

LOGGER = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Watch a hotfolder and index metadata records automatically")
    parser.add_argument("--watch-dir", required=True, help="Directory to watch for new records")
    parser.add_argument("--db-path", default=None, help="SQLite database path (default: RECINDEX_DB_PATH)")
    parser.add_argument("--format", default=None, help="Format variant name; detected per file when omitted")
    parser.add_argument("--debounce", type=float, default=2.0, help="Debounce delay in seconds")
    return parser.parse_args(argv)


async def _run_watcher(args: argparse.Namespace, settings: IndexerSettings) -> int:
    watch_dir = Path(args.watch_dir)
    if not watch_dir.exists() or not watch_dir.is_dir():
        LOGGER.error("watch-dir must exist and be a directory: %s", watch_dir)
        return 2

    with SearchRepository(settings.db_path) as repository:
        service = IndexingService(repository, settings=settings, format_name=args.format)

        async def _on_new_file(file_path: Path) -> None:
            LOGGER.info("Detected new record: %s", file_path)
            result = await service.index_file_async(file_path)
            if result.success:
                LOGGER.info(
                    "Indexed '%s' (%s, %d documents)",
                    result.pi,
                    result.schema_kind.value if result.schema_kind else "unknown format",
                    len(result.identifiers),
                )
                return
            LOGGER.error("Indexing failed for %s at %s: %s", file_path, result.stage, result.error or "unknown error")

        watcher = RecordFolderWatcher(
            watch_dir=watch_dir,
            callback=_on_new_file,
            debounce_seconds=float(args.debounce),
        )

        await watcher.start()
        LOGGER.info("Watching %s (debounce %.1fs)", watch_dir, float(args.debounce))

        try:
            while True:
                await asyncio.sleep(1.0)
        finally:
            watcher.stop()
            service.close()
            LOGGER.info("Watcher stopped cleanly")


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = IndexerSettings.from_env()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(message)s")
    if args.db_path:
        settings = dataclasses.replace(settings, db_path=Path(args.db_path))
    try:
        return asyncio.run(_run_watcher(args, settings))
    except KeyboardInterrupt:
        LOGGER.info("Shutdown requested")
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
