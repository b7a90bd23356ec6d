"""Buffered handoff of document trees to the search repository.

Two backings share one contract: an in-memory list for small records and a
JSON-lines spool file for large ones. Both stream documents to
:meth:`SearchRepository.upsert_documents` in insertion order, so a commit is a
single transaction and a failure leaves nothing behind.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
from pathlib import Path
import tempfile
from typing import Iterable, Iterator, Mapping, Protocol

from recindex.indexing.models import StructuralDocument

logger = logging.getLogger(__name__)

SPOOL_FILE_NAME = "documents.jsonl"
# Data folders whose size counts towards the disk/memory decision.
SIZED_DATA_FOLDERS = ("fulltext", "alto", "abbyy", "tei")


class DocumentSink(Protocol):
    def upsert_documents(self, documents: Iterable[StructuralDocument]) -> int:
        ...


@dataclass(slots=True)
class CommitError(RuntimeError):
    """Handing the buffered documents to the index failed; nothing was written."""

    message: str
    written: int = 0

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class CommitResult:
    written: list[str]
    error: CommitError | None = None

    @property
    def success(self) -> bool:
        return self.error is None


class WriteStrategy:
    """Base buffer: identifier bookkeeping, commit and cleanup."""

    backing = "abstract"

    def __init__(self, repository: DocumentSink) -> None:
        self._repository = repository
        self._identifiers: list[str] = []
        self._seen: set[str] = set()
        self._closed = False

    @property
    def identifiers(self) -> list[str]:
        return list(self._identifiers)

    def __len__(self) -> int:
        return len(self._identifiers)

    def __enter__(self) -> "WriteStrategy":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.discard()

    def add(self, document: StructuralDocument) -> None:
        if self._closed:
            raise RuntimeError("Write strategy has already been discarded")
        if not document.pi:
            raise ValueError("Document PI cannot be empty")
        if document.pi in self._seen:
            raise ValueError(f"Duplicate document PI in batch: {document.pi}")
        if document.parent_pi is not None and document.parent_pi not in self._seen:
            raise ValueError(f"Parent {document.parent_pi} of {document.pi} must be added first")
        self._store(document)
        self._seen.add(document.pi)
        self._identifiers.append(document.pi)

    def add_tree(self, root: StructuralDocument) -> int:
        """Add ``root`` and its descendants parents-first; return the count."""

        count = 0
        for node in root.iter_tree():
            self.add(node)
            count += 1
        return count

    def commit(self) -> CommitResult:
        if self._closed:
            raise RuntimeError("Write strategy has already been discarded")
        if not self._identifiers:
            return CommitResult(written=[])
        try:
            written = self._repository.upsert_documents(self._iter_documents())
        except Exception as exc:
            logger.error("Commit of %d documents failed (%s backing): %s", len(self._identifiers), self.backing, exc)
            return CommitResult(
                written=[],
                error=CommitError(f"Commit failed: {exc}", written=0),
            )
        if written != len(self._identifiers):
            return CommitResult(
                written=[],
                error=CommitError(
                    f"Index accepted {written} of {len(self._identifiers)} documents",
                    written=written,
                ),
            )
        logger.debug("Committed %d documents (%s backing)", written, self.backing)
        return CommitResult(written=list(self._identifiers))

    def discard(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._release()

    def _store(self, document: StructuralDocument) -> None:
        raise NotImplementedError

    def _iter_documents(self) -> Iterator[StructuralDocument]:
        raise NotImplementedError

    def _release(self) -> None:
        return None


class InMemoryWriteStrategy(WriteStrategy):
    backing = "memory"

    def __init__(self, repository: DocumentSink) -> None:
        super().__init__(repository)
        self._documents: list[StructuralDocument] = []

    def _store(self, document: StructuralDocument) -> None:
        self._documents.append(document)

    def _iter_documents(self) -> Iterator[StructuralDocument]:
        yield from self._documents

    def _release(self) -> None:
        self._documents.clear()


class SerializingWriteStrategy(WriteStrategy):
    """Spools documents as JSON lines in a private temporary directory."""

    backing = "disk"

    def __init__(self, repository: DocumentSink, *, temp_folder: str | Path | None = None) -> None:
        super().__init__(repository)
        if temp_folder is not None:
            Path(temp_folder).mkdir(parents=True, exist_ok=True)
        self._tempdir = tempfile.TemporaryDirectory(
            prefix="recindex-",
            dir=str(temp_folder) if temp_folder is not None else None,
        )
        self._spool_path = Path(self._tempdir.name) / SPOOL_FILE_NAME
        try:
            self._handle = self._spool_path.open("w", encoding="utf-8")
        except OSError:
            self._tempdir.cleanup()
            raise

    @property
    def spool_dir(self) -> Path:
        return Path(self._tempdir.name)

    def _store(self, document: StructuralDocument) -> None:
        self._handle.write(json.dumps(document.to_record(), ensure_ascii=False))
        self._handle.write("\n")

    def _iter_documents(self) -> Iterator[StructuralDocument]:
        self._handle.flush()
        with self._spool_path.open("r", encoding="utf-8") as handle:
            for line in handle:
                line = line.strip()
                if line:
                    yield StructuralDocument.from_record(json.loads(line))

    def _release(self) -> None:
        if not self._handle.closed:
            self._handle.close()
        self._tempdir.cleanup()


def create_write_strategy(
    repository: DocumentSink,
    *,
    estimated_size: int,
    threshold: int,
    temp_folder: str | Path | None = None,
) -> WriteStrategy:
    """Pick disk backing at or above ``threshold`` bytes, memory below it."""

    if threshold <= 0:
        raise ValueError("threshold must be positive")
    if estimated_size >= threshold:
        logger.info("Estimated size %d >= %d bytes; spooling documents to disk", estimated_size, threshold)
        return SerializingWriteStrategy(repository, temp_folder=temp_folder)
    return InMemoryWriteStrategy(repository)


def folder_size(path: Path) -> int:
    if not path.is_dir():
        return 0
    return sum(item.stat().st_size for item in path.rglob("*") if item.is_file())


def estimate_size(source: Path, data_folders: Mapping[str, Path] | None = None) -> tuple[int, int]:
    """Return ``(source file size, sized data folder total)`` in bytes."""

    source_size = source.stat().st_size if source.is_file() else 0
    folders_size = 0
    for key in SIZED_DATA_FOLDERS:
        folder = (data_folders or {}).get(key)
        if folder is not None:
            folders_size += folder_size(Path(folder))
    return source_size, folders_size
