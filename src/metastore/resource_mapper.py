"""Map resource file paths to versioned, per-perspective registrations.

Each row is one (identifier, perspective, version) registration. The
``source`` perspective at some version must exist before a derived
perspective or a newer version is registered for the same identifier. File
paths are unique across all rows.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import AbstractContextManager, nullcontext
from dataclasses import dataclass, field
from typing import Any

from metastore.db.models import DEFAULT_SOURCE_PERSPECTIVE, Resource
from metastore.db.table import DatabaseTable, KeyedTable, Query
from metastore.events import EventDispatcher
from metastore.exceptions import (
    AlreadyRegistered,
    InvalidResourceException,
    MissingObjectException,
)

logger = logging.getLogger(__name__)

EVENT_REGISTRATION = "metastore_resource_mapper_registration"
EVENT_PRE_REMOVE_SOURCE = "metastore_resource_mapper_pre_remove_source"

RESOURCE_MAPPER_COLUMNS = ("identifier", "version", "perspective", "file_path", "mime_type", "registered_at")

_PROJECTION = ["identifier", "version", "perspective", "file_path", "mime_type", "id"]


@dataclass
class FilePathLookup:
    """Result of a file path check: ``found`` plus the conflicting rows."""

    file_path: str
    records: list[dict[str, Any]] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return bool(self.records)

    def first(self) -> Resource | None:
        return _row_to_resource(self.records[0]) if self.records else None


def resource_table(conn: sqlite3.Connection) -> DatabaseTable:
    """Return the keyed table backing the resource mapper."""
    return DatabaseTable(conn, "resource_mapper", RESOURCE_MAPPER_COLUMNS)


class ResourceMapper:
    """Registration and lookup of file-backed resources."""

    def __init__(self, store: KeyedTable, dispatcher: EventDispatcher | None = None) -> None:
        self._store = store
        self._dispatcher = dispatcher if dispatcher is not None else EventDispatcher()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, resource: Resource) -> bool:
        """Register a new source resource.

        Raises:
            InvalidResourceException: The version is not integer-like.
            AlreadyRegistered: The file path is already registered; the
                message carries the conflicting rows as JSON.
        """
        with self._transaction():
            _require_version(resource)
            lookup = self.file_path_exists(resource.file_path)
            if lookup.found:
                raise AlreadyRegistered(json.dumps(lookup.records))
            self._insert(resource)
        self._dispatcher.dispatch(EVENT_REGISTRATION, resource)
        return True

    def register_new_perspective(self, resource: Resource) -> None:
        """Register a derived perspective of an existing source version.

        Raises:
            InvalidResourceException: The version is not integer-like.
            MissingObjectException: No source row exists at this version.
            AlreadyRegistered: The perspective is already registered.
        """
        identifier = resource.identifier
        perspective = resource.perspective
        with self._transaction():
            _require_version(resource)
            if not self._exists(identifier, DEFAULT_SOURCE_PERSPECTIVE, resource.version):
                raise MissingObjectException(f"A resource with identifier {identifier} was not found.")
            if self._exists(identifier, perspective, resource.version):
                raise AlreadyRegistered(
                    f"A resource with identifier {identifier} and perspective {perspective} already exists."
                )
            self._insert(resource)
        self._dispatcher.dispatch(EVENT_REGISTRATION, resource)

    def register_new_version(self, resource: Resource) -> None:
        """Register a newer version of an existing source resource.

        Raises:
            InvalidResourceException: The resource is not a source perspective
                or its version is not integer-like.
            MissingObjectException: The identifier has no source registration.
            AlreadyRegistered: This exact version is already registered.
        """
        with self._transaction():
            self._validate_new_version(resource)
            self._insert(resource)
        self._dispatcher.dispatch(EVENT_REGISTRATION, resource)

    def _validate_new_version(self, resource: Resource) -> None:
        _require_version(resource)
        if resource.perspective != DEFAULT_SOURCE_PERSPECTIVE:
            raise InvalidResourceException("Only versions of source resources are allowed.")

        identifier = resource.identifier
        if not self._exists(identifier, DEFAULT_SOURCE_PERSPECTIVE):
            raise MissingObjectException(f"A resource with identifier {identifier} was not found.")

        version = resource.version
        if self._exists(identifier, DEFAULT_SOURCE_PERSPECTIVE, version):
            raise AlreadyRegistered(
                f"A resource with identifier {identifier} and version {version} already exists."
            )

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(
        self,
        identifier: str,
        perspective: str = DEFAULT_SOURCE_PERSPECTIVE,
        version: str | int | None = None,
    ) -> Resource | None:
        """Return the newest registration, or the exact *version* if given.

        A version that is not integer-like matches nothing.
        """
        if not version:
            row = self._get_latest_revision(identifier, perspective)
        else:
            row = self._get_revision(identifier, perspective, version)
        return _row_to_resource(row) if row else None

    def file_path_exists(self, file_path: str) -> FilePathLookup:
        """Look up rows registered under *file_path*."""
        query = Query(properties=list(_PROJECTION)).condition_by_is_equal_to("file_path", file_path)
        query.limit_to(1)
        return FilePathLookup(file_path=file_path, records=self._store.query(query))

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def remove(self, resource: Resource) -> None:
        """Delete the registration matching *resource*'s triple, if any.

        Source registrations first dispatch EVENT_PRE_REMOVE_SOURCE so that
        listeners can delete backing files and derived data; a listener that
        raises aborts the removal.
        """
        row = self._get_revision(resource.identifier, resource.perspective, resource.version)
        if row is None:
            return
        if resource.perspective == DEFAULT_SOURCE_PERSPECTIVE:
            self._dispatcher.dispatch(EVENT_PRE_REMOVE_SOURCE, resource)
        self._store.remove(row["id"])
        logger.info(
            "Removed resource %s (%s, version %s)",
            resource.identifier, resource.perspective, resource.version,
        )

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------

    def _get_latest_revision(self, identifier: str, perspective: str) -> dict[str, Any] | None:
        query = self._common_query(identifier, perspective)
        query.sort_by_descending("version")
        items = self._store.query(query)
        return items[0] if items else None

    def _get_revision(self, identifier: str, perspective: str, version: str | int) -> dict[str, Any] | None:
        number = _parse_version(version)
        if number is None:
            return None
        query = self._common_query(identifier, perspective)
        query.condition_by_is_equal_to("version", number)
        items = self._store.query(query)
        return items[0] if items else None

    def _common_query(self, identifier: str, perspective: str) -> Query:
        query = Query(properties=list(_PROJECTION))
        query.condition_by_is_equal_to("identifier", identifier)
        query.condition_by_is_equal_to("perspective", perspective)
        query.limit_to(1)
        return query

    def _exists(self, identifier: str, perspective: str, version: str | int | None = None) -> bool:
        return self.get(identifier, perspective, version) is not None

    def _insert(self, resource: Resource) -> None:
        version = _require_version(resource)
        try:
            resource.id = self._store.store(
                {
                    "identifier": resource.identifier,
                    "version": version,
                    "perspective": resource.perspective,
                    "file_path": resource.file_path,
                    "mime_type": resource.mime_type,
                }
            )
        except sqlite3.IntegrityError as exc:
            raise AlreadyRegistered(
                f"A resource with file path {resource.file_path} or identifier "
                f"{resource.identifier} at version {resource.version} already exists."
            ) from exc

    def _transaction(self) -> AbstractContextManager[None]:
        transaction = getattr(self._store, "transaction", None)
        if transaction is None:
            return nullcontext()
        return transaction()


def _parse_version(version: str | int) -> int | None:
    try:
        return int(version)
    except (TypeError, ValueError):
        return None


def _require_version(resource: Resource) -> int:
    version = _parse_version(resource.version)
    if version is None:
        raise InvalidResourceException(
            f"Resource version must be an integer, got {resource.version!r}."
        )
    return version


def _row_to_resource(row: dict[str, Any]) -> Resource:
    return Resource(
        file_path=row["file_path"],
        mime_type=row["mime_type"],
        perspective=row["perspective"],
        version=str(row["version"]),
        identifier=row["identifier"],
        id=row["id"],
    )
