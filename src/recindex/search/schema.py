"""SQLite schema and pragmas for the structural document index."""

from __future__ import annotations

import sqlite3


PRAGMA_BUSY_TIMEOUT_MS = 5000


def apply_runtime_pragmas(connection: sqlite3.Connection, *, busy_timeout_ms: int = PRAGMA_BUSY_TIMEOUT_MS) -> None:
    """Apply runtime pragmas recommended for local indexing throughput."""

    connection.execute("PRAGMA journal_mode=WAL;")
    connection.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)};")
    connection.execute("PRAGMA synchronous=NORMAL;")


def ensure_schema(connection: sqlite3.Connection) -> None:
    """Create document tables, FTS index, and sync triggers if missing."""

    connection.executescript(
        """
        CREATE TABLE IF NOT EXISTS documents (
            pi TEXT PRIMARY KEY,
            kind TEXT NOT NULL,
            parent_pi TEXT,
            root_pi TEXT NOT NULL,
            anchor_pi TEXT,
            position INTEGER NOT NULL DEFAULT 0,
            schema_kind TEXT,
            label TEXT NOT NULL DEFAULT '',
            default_text TEXT NOT NULL DEFAULT '',
            fields_json TEXT NOT NULL,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        );

        CREATE VIRTUAL TABLE IF NOT EXISTS documents_fts USING fts5(
            label,
            default_text,
            content='documents',
            tokenize='unicode61 remove_diacritics 2'
        );

        CREATE INDEX IF NOT EXISTS idx_documents_parent_pi ON documents(parent_pi, position);
        CREATE INDEX IF NOT EXISTS idx_documents_root_pi ON documents(root_pi);
        CREATE INDEX IF NOT EXISTS idx_documents_anchor_pi ON documents(anchor_pi);

        CREATE TRIGGER IF NOT EXISTS documents_ai AFTER INSERT ON documents BEGIN
            INSERT INTO documents_fts(rowid, label, default_text)
            VALUES (new.rowid, new.label, new.default_text);
        END;

        CREATE TRIGGER IF NOT EXISTS documents_ad AFTER DELETE ON documents BEGIN
            INSERT INTO documents_fts(documents_fts, rowid, label, default_text)
            VALUES ('delete', old.rowid, old.label, old.default_text);
        END;

        CREATE TRIGGER IF NOT EXISTS documents_au AFTER UPDATE ON documents BEGIN
            INSERT INTO documents_fts(documents_fts, rowid, label, default_text)
            VALUES ('delete', old.rowid, old.label, old.default_text);
            INSERT INTO documents_fts(rowid, label, default_text)
            VALUES (new.rowid, new.label, new.default_text);
        END;
        """
    )


def optimize_fts(connection: sqlite3.Connection) -> None:
    """Run FTS optimize maintenance command."""

    connection.execute("INSERT INTO documents_fts(documents_fts) VALUES ('optimize');")


def rebuild_fts(connection: sqlite3.Connection) -> None:
    """Run FTS rebuild maintenance command."""

    connection.execute("INSERT INTO documents_fts(documents_fts) VALUES ('rebuild');")
