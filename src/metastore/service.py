"""The metastore service: validated, revisioned CRUD over schema collections.

A Service instance is request-scoped: it memoizes one RecordStorage per
schema id for its own lifetime and must not be shared between concurrent
requests. Construct a fresh one per request or command (see bootstrap).
"""

from __future__ import annotations

import json
import logging
from typing import Any

from metastore.db.repository import DataFactory, RecordStorage
from metastore.document import Json, ValidatedDocument, ValidMetadataFactory, merge_patch
from metastore.events import EventDispatcher
from metastore.exceptions import (
    CannotChangeUuidException,
    ExistingObjectException,
    InvalidJsonException,
    MetastoreException,
    MissingObjectException,
    UnmodifiedObjectException,
)
from metastore.references import remove_references
from metastore.schema_retriever import SchemaRetriever

logger = logging.getLogger(__name__)

EVENT_DATA_GET = "metastore_data_get"
EVENT_DATA_GET_ALL = "metastore_data_get_all"
EVENT_PRE_SAVE = "metastore_pre_save"
EVENT_PRE_DELETE = "metastore_pre_delete"


def _is_document_list(data: Any) -> bool:
    if not isinstance(data, list):
        return False
    return all(isinstance(d, ValidatedDocument) for d in data)


def _is_document(data: Any) -> bool:
    return isinstance(data, ValidatedDocument)


class Service:
    """CRUD, publishing and catalog assembly over validated metadata."""

    def __init__(
        self,
        schema_retriever: SchemaRetriever,
        storage_factory: DataFactory,
        valid_metadata_factory: ValidMetadataFactory,
        dispatcher: EventDispatcher | None = None,
    ) -> None:
        self._schema_retriever = schema_retriever
        self._storage_factory = storage_factory
        self._valid_metadata_factory = valid_metadata_factory
        self._dispatcher = dispatcher if dispatcher is not None else EventDispatcher()
        self._storages: dict[str, RecordStorage] = {}

    @property
    def valid_metadata_factory(self) -> ValidMetadataFactory:
        return self._valid_metadata_factory

    @property
    def dispatcher(self) -> EventDispatcher:
        return self._dispatcher

    # ------------------------------------------------------------------
    # Schemas
    # ------------------------------------------------------------------

    def get_schemas(self) -> dict[str, Json]:
        return {
            schema_id: json.loads(self._schema_retriever.retrieve(schema_id))
            for schema_id in self._schema_retriever.get_all_ids()
        }

    def get_schema(self, schema_id: str) -> Json:
        return json.loads(self._schema_retriever.retrieve(schema_id))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_all(self, schema_id: str) -> list[ValidatedDocument]:
        """Return every published record of *schema_id*.

        Records that fail validation are logged and left out.
        """
        json_strings = self._get_storage(schema_id).retrieve_all()
        objects = self._json_strings_to_objects(json_strings, schema_id)
        return self._dispatcher.dispatch(EVENT_DATA_GET_ALL, objects, _is_document_list, schema_id=schema_id)

    def get_range(self, schema_id: str, start: int, length: int) -> list[ValidatedDocument]:
        """Return up to *length* published records starting at *start*."""
        json_strings = self._get_storage(schema_id).retrieve_range(start, length)
        objects = self._json_strings_to_objects(json_strings, schema_id)
        return self._dispatcher.dispatch(EVENT_DATA_GET_ALL, objects, _is_document_list, schema_id=schema_id)

    def _json_strings_to_objects(self, json_strings: list[str], schema_id: str) -> list[ValidatedDocument]:
        objects: list[ValidatedDocument] = []
        for json_string in json_strings:
            try:
                data = self._valid_metadata_factory.get(json_string, schema_id)
                data = self._dispatcher.dispatch(EVENT_DATA_GET, data, _is_document, schema_id=schema_id)
            except MetastoreException as exc:
                logger.warning(
                    "A JSON string failed validation (schema_id=%s): %s; json=%s",
                    schema_id, exc, json_string,
                )
                continue
            if data:
                objects.append(data)
        return objects

    def get(self, schema_id: str, identifier: str, published: bool = True) -> ValidatedDocument:
        """Return the published record, or the latest revision if *published* is False.

        Raises:
            MissingObjectException: Nothing matches (for the default, no
                revision of the record has been published).
        """
        storage = self._get_storage(schema_id)
        if published:
            json_string = storage.retrieve_published(identifier)
        else:
            json_string = storage.retrieve(identifier)
        data = self._valid_metadata_factory.get(json_string, schema_id)
        return self._dispatcher.dispatch(EVENT_DATA_GET, data, _is_document, schema_id=schema_id)

    def get_resources(self, schema_id: str, identifier: str) -> list[Any]:
        """Return the ``distribution`` list of the latest revision."""
        json_string = self._get_storage(schema_id).retrieve(identifier)
        data = self._valid_metadata_factory.get(json_string, schema_id)
        return data.get("$.distribution", [])

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def post(self, schema_id: str, data: ValidatedDocument) -> str:
        """Create a record and return its identifier.

        Raises:
            ExistingObjectException: The document's identifier is taken.
        """
        identifier = data.get("$.identifier")
        if identifier and self._object_exists(schema_id, identifier):
            raise ExistingObjectException(f"{schema_id}/{identifier} already exists.")
        return self._store(schema_id, data, identifier or None)

    def put(self, schema_id: str, identifier: str, data: ValidatedDocument) -> dict[str, Any]:
        """Create or update the record at *identifier*.

        Returns:
            ``{"identifier": str, "new": bool}``.

        Raises:
            CannotChangeUuidException: The document carries another identifier.
            UnmodifiedObjectException: The record already holds equivalent data.
        """
        embedded = data.get("$.identifier")
        if embedded and embedded != identifier:
            raise CannotChangeUuidException("Identifier cannot be modified")
        if not embedded and isinstance(data.get("$"), dict):
            # Stored revisions always carry their identifier.
            data = data.copy()
            data.set("$.identifier", identifier)
        if self._object_exists(schema_id, identifier):
            if self.object_is_equivalent(schema_id, identifier, data):
                raise UnmodifiedObjectException(f"No changes to {schema_id} with identifier {identifier}.")
            self._store(schema_id, data, identifier)
            return {"identifier": identifier, "new": False}
        self._store(schema_id, data, identifier)
        return {"identifier": identifier, "new": True}

    def patch(self, schema_id: str, identifier: str, json_data: str | dict) -> str:
        """Merge-patch the latest revision and store the result as a new one.

        Raises:
            MissingObjectException: No record exists at *identifier*.
            InvalidJsonException: *json_data* is not valid JSON.
            CannotChangeUuidException: The patch changes the identifier.
            InvalidMetadataException: The merged document fails validation.
        """
        storage = self._get_storage(schema_id)
        if not self._object_exists(schema_id, identifier):
            raise MissingObjectException(f"No data with the identifier {identifier} was found.")

        if isinstance(json_data, str):
            try:
                patch = json.loads(json_data)
            except json.JSONDecodeError as exc:
                raise InvalidJsonException(f"Invalid JSON: {exc.msg}") from exc
        else:
            patch = json_data

        original = json.loads(storage.retrieve(identifier))
        patched = merge_patch(original, patch)
        embedded = patched.get("identifier") if isinstance(patched, dict) else None
        if embedded and embedded != identifier:
            raise CannotChangeUuidException("Identifier cannot be modified")
        new = self._valid_metadata_factory.get(patched, schema_id)
        self._store(schema_id, new, identifier)
        return identifier

    def publish(self, schema_id: str, identifier: str) -> bool:
        """Make the latest revision of *identifier* its published one.

        Raises:
            MissingObjectException: No record exists at *identifier*.
        """
        if self._object_exists(schema_id, identifier):
            return self._get_storage(schema_id).publish(identifier)
        raise MissingObjectException(f"No data with the identifier {identifier} was found.")

    def delete(self, schema_id: str, identifier: str) -> str:
        """Remove every revision of *identifier* after notifying listeners."""
        self._dispatcher.dispatch(EVENT_PRE_DELETE, identifier, schema_id=schema_id)
        self._get_storage(schema_id).remove(identifier)
        return identifier

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def get_catalog(self) -> dict[str, Any]:
        """Assemble the catalog skeleton with every published dataset."""
        catalog = self.get_schema("catalog")
        catalog["dataset"] = [d.get("$") for d in self.get_all("dataset")]
        return catalog

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def object_is_equivalent(self, schema_id: str, identifier: str, metadata: ValidatedDocument) -> bool:
        """Compare the reference-stripped latest revision with *metadata*.

        Comparison is on parsed values, so formatting and property order of
        the stored text do not matter.
        """
        existing_json = self._get_storage(schema_id).retrieve(identifier)
        existing = self._valid_metadata_factory.get(existing_json, schema_id)
        existing = remove_references(existing)
        incoming = remove_references(metadata.copy())
        return incoming.get("$") == existing.get("$")

    def _object_exists(self, schema_id: str, identifier: str) -> bool:
        return self._get_storage(schema_id).exists(identifier)

    def _store(self, schema_id: str, data: ValidatedDocument, identifier: str | None) -> str:
        data = self._dispatcher.dispatch(EVENT_PRE_SAVE, data, _is_document, schema_id=schema_id)
        return self._get_storage(schema_id).store(data, identifier)

    def storage(self, schema_id: str) -> RecordStorage:
        """Return the memoized storage handle for *schema_id*."""
        return self._get_storage(schema_id)

    def _get_storage(self, schema_id: str) -> RecordStorage:
        if schema_id not in self._storages:
            self._storages[schema_id] = self._storage_factory.get_instance(schema_id)
        return self._storages[schema_id]
