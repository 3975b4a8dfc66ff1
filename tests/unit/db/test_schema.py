"""Tests for database schema initialization."""

from __future__ import annotations

import sqlite3

import pytest

from metastore.db.schema import CURRENT_VERSION, initialize


def _table_columns(conn, table: str) -> set[str]:
    rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
    return {row["name"] for row in rows}


def test_metastore_items_columns(tmp_db):
    cols = _table_columns(tmp_db, "metastore_items")
    assert cols == {"schema_id", "identifier", "published_revision", "created_at"}


def test_metastore_revisions_columns(tmp_db):
    cols = _table_columns(tmp_db, "metastore_revisions")
    assert cols == {"id", "schema_id", "identifier", "revision", "body", "created_at"}


def test_resource_mapper_columns(tmp_db):
    cols = _table_columns(tmp_db, "resource_mapper")
    assert cols == {"id", "identifier", "version", "perspective", "file_path", "mime_type", "registered_at"}


def test_schema_version_recorded(tmp_db):
    version = tmp_db.execute("SELECT version FROM schema_version").fetchone()[0]
    assert version == CURRENT_VERSION


def test_initialize_idempotent(tmp_db):
    initialize(tmp_db)
    rows = tmp_db.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]
    assert rows == 1


def test_revisions_cascade_with_item(tmp_db):
    tmp_db.execute("INSERT INTO metastore_items (schema_id, identifier) VALUES ('dataset', 'a')")
    tmp_db.execute(
        "INSERT INTO metastore_revisions (schema_id, identifier, revision, body) VALUES ('dataset', 'a', 1, '{}')"
    )
    tmp_db.execute("DELETE FROM metastore_items WHERE identifier = 'a'")
    tmp_db.commit()
    count = tmp_db.execute("SELECT COUNT(*) FROM metastore_revisions").fetchone()[0]
    assert count == 0


def test_resource_mapper_file_path_unique(tmp_db):
    tmp_db.execute(
        "INSERT INTO resource_mapper (identifier, version, perspective, file_path) VALUES ('a', 1, 'source', 'x.csv')"
    )
    with pytest.raises(sqlite3.IntegrityError):
        tmp_db.execute(
            "INSERT INTO resource_mapper (identifier, version, perspective, file_path) VALUES ('b', 1, 'source', 'x.csv')"
        )


def test_resource_mapper_triple_unique(tmp_db):
    tmp_db.execute(
        "INSERT INTO resource_mapper (identifier, version, perspective, file_path) VALUES ('a', 1, 'source', 'x.csv')"
    )
    with pytest.raises(sqlite3.IntegrityError):
        tmp_db.execute(
            "INSERT INTO resource_mapper (identifier, version, perspective, file_path) VALUES ('a', 1, 'source', 'y.csv')"
        )
