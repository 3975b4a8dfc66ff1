"""Metastore database layer."""

from metastore.db.connection import Database
from metastore.db.migrations import MIGRATIONS, run_migrations
from metastore.db.schema import initialize

__all__ = [
    "Database",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
]
