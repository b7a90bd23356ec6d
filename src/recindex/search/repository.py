"""Repository primitives for upsert-by-identifier document persistence."""

from __future__ import annotations

from dataclasses import dataclass
import json
from pathlib import Path
import sqlite3
import threading
from typing import Iterable

from recindex.indexing.models import DocumentKind, StructuralDocument
from recindex.search.schema import apply_runtime_pragmas, ensure_schema, optimize_fts, rebuild_fts

DEFAULT_TIMEOUT_SECONDS = 5.0

_DOCUMENT_COLUMNS = "pi, kind, parent_pi, root_pi, anchor_pi, position, fields_json"


@dataclass(slots=True)
class DocumentRow:
    pi: str
    kind: str
    parent_pi: str | None
    root_pi: str
    anchor_pi: str | None
    position: int
    schema_kind: str | None
    fields_json: str


def _document_row(document: StructuralDocument) -> tuple[object, ...]:
    fields = document.fields
    label = (fields.get("LABEL") or [""])[0]
    default_text = " ".join(fields.get("DEFAULT", []) + fields.get("FULLTEXT", []))
    return (
        document.pi,
        document.kind.value,
        document.parent_pi,
        document.root_pi or document.pi,
        document.anchor_pi,
        document.position,
        (fields.get("SOURCEDOCFORMAT") or [None])[0],
        label,
        default_text,
        json.dumps(fields, ensure_ascii=False, sort_keys=True),
    )


def _to_document(row: sqlite3.Row) -> StructuralDocument:
    return StructuralDocument(
        pi=row["pi"],
        kind=DocumentKind(row["kind"]),
        fields=json.loads(row["fields_json"]),
        anchor_pi=row["anchor_pi"],
        parent_pi=row["parent_pi"],
        root_pi=row["root_pi"],
        position=int(row["position"]),
    )


class SearchRepository:
    """Thin transactional layer over the SQLite document index.

    Writes are serialized with a lock so several indexing jobs can share one
    repository from worker threads.
    """

    def __init__(self, db_path: str | Path, *, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self._db_path = Path(db_path) if str(db_path) != ":memory:" else None
        self._connection = sqlite3.connect(
            str(db_path),
            timeout=timeout_seconds,
            check_same_thread=False,
        )
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        apply_runtime_pragmas(self._connection, busy_timeout_ms=int(timeout_seconds * 1000))
        ensure_schema(self._connection)

    @property
    def connection(self) -> sqlite3.Connection:
        return self._connection

    def close(self) -> None:
        self._connection.close()

    def __enter__(self) -> "SearchRepository":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def upsert_documents(self, documents: Iterable[StructuralDocument]) -> int:
        """Upsert documents by PI in one transaction; all or nothing."""

        written = 0
        with self._lock, self._connection:
            for document in documents:
                if not document.pi:
                    raise ValueError("Document PI cannot be empty")
                self._connection.execute(
                    """
                    INSERT INTO documents(
                        pi,
                        kind,
                        parent_pi,
                        root_pi,
                        anchor_pi,
                        position,
                        schema_kind,
                        label,
                        default_text,
                        fields_json
                    )
                    VALUES(?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(pi) DO UPDATE SET
                        kind=excluded.kind,
                        parent_pi=excluded.parent_pi,
                        root_pi=excluded.root_pi,
                        anchor_pi=excluded.anchor_pi,
                        position=excluded.position,
                        schema_kind=excluded.schema_kind,
                        label=excluded.label,
                        default_text=excluded.default_text,
                        fields_json=excluded.fields_json,
                        updated_at=CURRENT_TIMESTAMP
                    """,
                    _document_row(document),
                )
                written += 1
        return written

    def delete_documents(self, pis: Iterable[str]) -> int:
        pi_list = list(pis)
        if not pi_list:
            return 0
        placeholders = ",".join("?" for _ in pi_list)
        with self._lock, self._connection:
            cursor = self._connection.execute(f"DELETE FROM documents WHERE pi IN ({placeholders})", tuple(pi_list))
        return cursor.rowcount

    def delete_record(self, root_pi: str) -> int:
        """Delete a record's root document and everything below it."""

        with self._lock, self._connection:
            cursor = self._connection.execute(
                "DELETE FROM documents WHERE root_pi = ? OR pi = ?",
                (root_pi, root_pi),
            )
        return cursor.rowcount

    def get_document(self, pi: str) -> StructuralDocument | None:
        row = self._connection.execute(
            f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE pi = ?",
            (pi,),
        ).fetchone()
        if row is None:
            return None
        return _to_document(row)

    def children_of(self, pi: str) -> list[StructuralDocument]:
        rows = self._connection.execute(
            f"""
            SELECT {_DOCUMENT_COLUMNS}
            FROM documents
            WHERE parent_pi = ?
            ORDER BY position ASC, pi ASC
            """,
            (pi,),
        ).fetchall()
        return [_to_document(row) for row in rows]

    def load_tree(self, pi: str) -> StructuralDocument | None:
        """Rebuild the stored tree below ``pi`` with children in commit order."""

        root = self.get_document(pi)
        if root is None:
            return None
        stack = [root]
        while stack:
            node = stack.pop()
            node.children = self.children_of(node.pi)
            stack.extend(node.children)
        return root

    def find_volumes(self, anchor_pi: str) -> list[StructuralDocument]:
        rows = self._connection.execute(
            f"""
            SELECT {_DOCUMENT_COLUMNS}
            FROM documents
            WHERE anchor_pi = ? AND kind = ?
            ORDER BY pi ASC
            """,
            (anchor_pi, DocumentKind.VOLUME.value),
        ).fetchall()
        return [_to_document(row) for row in rows]

    def search(self, text: str, *, limit: int = 20) -> list[StructuralDocument]:
        if limit <= 0:
            raise ValueError("limit must be positive")
        terms = [term.replace('"', '""') for term in text.split() if term]
        if not terms:
            return []
        match = " ".join(f'"{term}"' for term in terms)
        rows = self._connection.execute(
            f"""
            SELECT {', '.join('d.' + column.strip() for column in _DOCUMENT_COLUMNS.split(','))}
            FROM documents_fts f
            JOIN documents d ON d.rowid = f.rowid
            WHERE documents_fts MATCH ?
            ORDER BY rank
            LIMIT ?
            """,
            (match, limit),
        ).fetchall()
        return [_to_document(row) for row in rows]

    def count_documents(self, *, root_pi: str | None = None) -> int:
        if root_pi is None:
            row = self._connection.execute("SELECT COUNT(*) AS c FROM documents").fetchone()
        else:
            row = self._connection.execute(
                "SELECT COUNT(*) AS c FROM documents WHERE root_pi = ?",
                (root_pi,),
            ).fetchone()
        return int(row["c"])

    def iter_rows(self) -> list[DocumentRow]:
        """Stored rows ordered by PI, without timestamps."""

        rows = self._connection.execute(
            """
            SELECT pi, kind, parent_pi, root_pi, anchor_pi, position, schema_kind, fields_json
            FROM documents
            ORDER BY pi ASC
            """
        ).fetchall()
        return [
            DocumentRow(
                pi=row["pi"],
                kind=row["kind"],
                parent_pi=row["parent_pi"],
                root_pi=row["root_pi"],
                anchor_pi=row["anchor_pi"],
                position=int(row["position"]),
                schema_kind=row["schema_kind"],
                fields_json=row["fields_json"],
            )
            for row in rows
        ]

    def run_maintenance(self, command: str) -> None:
        if command == "optimize":
            optimize_fts(self._connection)
            return
        if command == "rebuild":
            rebuild_fts(self._connection)
            return
        raise ValueError(f"Unsupported maintenance command: {command}")
