"""Runtime configuration for the record indexer."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import os
from pathlib import Path
import tempfile
from typing import Mapping

from recindex.indexing.namespaces import NamespaceTable, parse_namespace_bindings


DEFAULT_DB_PATH = ".recindex-search.db"
DEFAULT_SIZE_THRESHOLD_BYTES = 10 * 1024 * 1024
DEFAULT_DATA_FOLDER_SIZE_THRESHOLD_BYTES = 100 * 1024 * 1024
DEFAULT_FETCH_TIMEOUT_SECONDS = 30.0
DEFAULT_PAGE_COUNT_START = 1
DEFAULT_LOG_LEVEL = "INFO"


def _parse_positive_int(*, name: str, raw_value: str, minimum: int = 1) -> int:
    try:
        value = int(raw_value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return value


def _parse_positive_float(*, name: str, raw_value: str, minimum: float = 0.001) -> float:
    try:
        value = float(raw_value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number") from exc
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return value


@dataclass(frozen=True, slots=True)
class IndexerSettings:
    """Validated indexer runtime settings."""

    db_path: Path = Path(DEFAULT_DB_PATH)
    temp_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()))
    size_threshold_bytes: int = DEFAULT_SIZE_THRESHOLD_BYTES
    data_folder_size_threshold_bytes: int = DEFAULT_DATA_FOLDER_SIZE_THRESHOLD_BYTES
    fetch_timeout_seconds: float = DEFAULT_FETCH_TIMEOUT_SECONDS
    page_count_start: int = DEFAULT_PAGE_COUNT_START
    namespaces: NamespaceTable = field(default_factory=NamespaceTable.default)
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "IndexerSettings":
        source: Mapping[str, str] = os.environ if environ is None else environ

        db_path_raw = source.get("RECINDEX_DB_PATH", DEFAULT_DB_PATH).strip()
        if not db_path_raw:
            raise ValueError("RECINDEX_DB_PATH cannot be empty")

        temp_dir_raw = source.get("RECINDEX_TEMP_DIR", "").strip()
        temp_dir = Path(temp_dir_raw) if temp_dir_raw else Path(tempfile.gettempdir())

        size_threshold = _parse_positive_int(
            name="RECINDEX_SIZE_THRESHOLD_BYTES",
            raw_value=source.get("RECINDEX_SIZE_THRESHOLD_BYTES", str(DEFAULT_SIZE_THRESHOLD_BYTES)).strip(),
        )
        data_folder_threshold = _parse_positive_int(
            name="RECINDEX_DATA_FOLDER_SIZE_THRESHOLD_BYTES",
            raw_value=source.get(
                "RECINDEX_DATA_FOLDER_SIZE_THRESHOLD_BYTES",
                str(DEFAULT_DATA_FOLDER_SIZE_THRESHOLD_BYTES),
            ).strip(),
        )
        fetch_timeout = _parse_positive_float(
            name="RECINDEX_FETCH_TIMEOUT_SECONDS",
            raw_value=source.get("RECINDEX_FETCH_TIMEOUT_SECONDS", str(DEFAULT_FETCH_TIMEOUT_SECONDS)).strip(),
            minimum=0.1,
        )
        page_count_start = _parse_positive_int(
            name="RECINDEX_PAGE_COUNT_START",
            raw_value=source.get("RECINDEX_PAGE_COUNT_START", str(DEFAULT_PAGE_COUNT_START)).strip(),
            minimum=0,
        )

        namespaces = NamespaceTable.default()
        extra_namespaces = source.get("RECINDEX_NAMESPACES", "").strip()
        if extra_namespaces:
            namespaces = namespaces.with_overrides(parse_namespace_bindings(extra_namespaces))

        log_level = source.get("RECINDEX_LOG_LEVEL", DEFAULT_LOG_LEVEL).strip().upper() or DEFAULT_LOG_LEVEL
        if not isinstance(logging.getLevelName(log_level), int):
            raise ValueError(f"RECINDEX_LOG_LEVEL is not a logging level: {log_level}")

        return cls(
            db_path=Path(db_path_raw),
            temp_dir=temp_dir,
            size_threshold_bytes=size_threshold,
            data_folder_size_threshold_bytes=data_folder_threshold,
            fetch_timeout_seconds=fetch_timeout,
            page_count_start=page_count_start,
            namespaces=namespaces,
            log_level=log_level,
        )
