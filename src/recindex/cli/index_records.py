"""CLI entrypoint for batch indexing of metadata records."""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
from pathlib import Path

from dotenv import load_dotenv

from recindex.automation.indexing_service import IndexingService
from recindex.indexing.config import IndexerSettings
from recindex.search.repository import SearchRepository


load_dotenv()

LOGGER = logging.getLogger(__name__)


def _collect_inputs(target: Path) -> list[Path]:
    if target.is_file():
        return [target]
    if target.is_dir():
        return sorted(path for path in target.rglob("*") if path.is_file() and path.suffix.lower() == ".xml")
    return []


def _parse_data_folder(raw_value: str) -> tuple[str, Path]:
    key, separator, path = raw_value.partition("=")
    if not separator or not key.strip() or not path.strip():
        raise argparse.ArgumentTypeError(f"Expected KEY=PATH, got {raw_value!r}")
    return key.strip(), Path(path.strip())


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Index METS, EAD, LIDO and Dublin Core records into SQLite")
    parser.add_argument("--path", required=True, help="Source record file or directory")
    parser.add_argument("--format", default=None, help="Format variant name; detected per file when omitted")
    parser.add_argument("--db-path", default=None, help="SQLite database path (default: RECINDEX_DB_PATH)")
    parser.add_argument(
        "--download-external-images",
        action="store_true",
        help="Fetch http(s) page images into the 'media' data folder",
    )
    parser.add_argument(
        "--data-folder",
        action="append",
        default=[],
        type=_parse_data_folder,
        metavar="KEY=PATH",
        help="Data folder such as fulltext=/data/txt or media=/data/media (repeatable)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = IndexerSettings.from_env()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(message)s")
    if args.db_path:
        settings = dataclasses.replace(settings, db_path=Path(args.db_path))

    source_path = Path(args.path)
    files = _collect_inputs(source_path)

    results: list[dict[str, object]] = []
    errors: list[dict[str, str]] = []

    with SearchRepository(settings.db_path) as repository:
        try:
            service = IndexingService(
                repository,
                settings=settings,
                format_name=args.format,
                data_folders=dict(args.data_folder),
                download_external_images=args.download_external_images,
            )
        except KeyError as exc:
            LOGGER.error("%s", exc.args[0] if exc.args else exc)
            return 2

        try:
            for file_path in files:
                result = service.index_file(file_path)
                if result.success:
                    results.append(result.to_dict())
                else:
                    errors.append({"source_path": str(file_path), "stage": result.stage, "error": result.error or ""})
        finally:
            service.close()

    payload = {
        "path": str(source_path),
        "processed": len(results),
        "results": results,
        "errors": errors,
    }
    print(json.dumps(payload, ensure_ascii=True, indent=2))
    return 0 if not errors else 1


if __name__ == "__main__":
    raise SystemExit(main())
