"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from metastore.bootstrap import build_metastore
from metastore.db.connection import Database
from metastore.db.schema import initialize


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".metastore.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def metastore(tmp_db):
    """Fully wired Metastore (service, resource mapper, API) over tmp_db."""
    return build_metastore(tmp_db)


@pytest.fixture
def service(metastore):
    return metastore.service


@pytest.fixture
def factory(service):
    return service.valid_metadata_factory
