"""Wire a request-scoped metastore around one database connection."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from metastore.api import MetastoreApi
from metastore.config import MetastoreConfig
from metastore.db.connection import Database
from metastore.db.repository import DataFactory
from metastore.db.schema import initialize
from metastore.document import ValidMetadataFactory
from metastore.events import EventDispatcher
from metastore.referencer import DistributionReferencer
from metastore.resource_mapper import ResourceMapper, resource_table
from metastore.schema_retriever import SchemaRetriever
from metastore.service import EVENT_PRE_DELETE, EVENT_PRE_SAVE, Service
from metastore.subscriber import MetastoreSubscriber


@dataclass
class Metastore:
    service: Service
    resource_mapper: ResourceMapper
    api: MetastoreApi
    dispatcher: EventDispatcher


def build_metastore(conn: sqlite3.Connection, cfg: MetastoreConfig | None = None) -> Metastore:
    """Assemble service, resource mapper and API over an initialized connection.

    Registers the distribution referencer on pre-save and the resource
    cleanup subscriber on pre-delete.
    """
    cfg = cfg or MetastoreConfig()
    dispatcher = EventDispatcher()
    retriever = SchemaRetriever(cfg.schemas.directory)
    service = Service(retriever, DataFactory(conn), ValidMetadataFactory(retriever), dispatcher)
    mapper = ResourceMapper(resource_table(conn), dispatcher)

    dispatcher.subscribe(EVENT_PRE_SAVE, DistributionReferencer(mapper).on_pre_save)
    dispatcher.subscribe(EVENT_PRE_DELETE, MetastoreSubscriber(service, mapper).clean_resource_mapper_table)

    api = MetastoreApi(
        service,
        base_path=cfg.api.base_path,
        default_range_length=cfg.api.default_range_length,
    )
    return Metastore(service=service, resource_mapper=mapper, api=api, dispatcher=dispatcher)


@contextmanager
def open_metastore(db_path: Path | str, cfg: MetastoreConfig | None = None) -> Iterator[Metastore]:
    """Open *db_path*, run migrations, and yield a fresh Metastore.

    The connection is closed on exit.
    """
    conn = Database(db_path).connect()
    try:
        initialize(conn)
        yield build_metastore(conn, cfg)
    finally:
        conn.close()
