"""Forward-only migration runner for the metastore database schema."""

from __future__ import annotations

import sqlite3

# schema_version is the bootstrap table, created before migrations run.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

_V1_SQL = """
CREATE TABLE IF NOT EXISTS metastore_items (
    schema_id           TEXT NOT NULL,
    identifier          TEXT NOT NULL,
    published_revision  INTEGER,
    created_at          DATETIME NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (schema_id, identifier)
);

CREATE TABLE IF NOT EXISTS metastore_revisions (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    schema_id   TEXT NOT NULL,
    identifier  TEXT NOT NULL,
    revision    INTEGER NOT NULL,
    body        TEXT NOT NULL,
    created_at  DATETIME NOT NULL DEFAULT (datetime('now')),
    UNIQUE (schema_id, identifier, revision),
    FOREIGN KEY (schema_id, identifier)
        REFERENCES metastore_items (schema_id, identifier) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS resource_mapper (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    identifier      TEXT NOT NULL,
    version         INTEGER NOT NULL,
    perspective     TEXT NOT NULL,
    file_path       TEXT NOT NULL,
    mime_type       TEXT NOT NULL DEFAULT '',
    registered_at   DATETIME NOT NULL DEFAULT (datetime('now')),
    UNIQUE (identifier, perspective, version)
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_resource_mapper_file_path
    ON resource_mapper (file_path);
"""

# Append-only. Each entry: (version: int, sql: str).
# executescript() issues an implicit COMMIT before running.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
]


def run_migrations(conn: sqlite3.Connection) -> None:
    """Apply all pending migrations in ascending version order.

    Idempotent: safe to call on a database at any version.
    """
    conn.execute(_CREATE_SCHEMA_VERSION)
    conn.commit()

    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    current = row[0] if row[0] is not None else 0

    for version, sql in MIGRATIONS:
        if version > current:
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )
            conn.commit()
