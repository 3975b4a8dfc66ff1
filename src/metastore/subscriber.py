"""Resource mapper cleanup when metadata records are deleted."""

from __future__ import annotations

import json
import logging
from typing import Any

from metastore.db.models import DEFAULT_SOURCE_PERSPECTIVE
from metastore.db.repository import RecordStorage
from metastore.events import Event
from metastore.exceptions import MissingObjectException
from metastore.referencer import DOWNLOAD_URL_REFERENCE
from metastore.resource_mapper import ResourceMapper
from metastore.service import Service

logger = logging.getLogger(__name__)

_REFERENCING_SCHEMAS = ("distribution", "dataset")


class MetastoreSubscriber:
    """Pre-delete listener that removes resources nobody else references."""

    def __init__(self, service: Service, resource_mapper: ResourceMapper) -> None:
        self._service = service
        self._resource_mapper = resource_mapper

    def clean_resource_mapper_table(self, event: Event) -> None:
        """Remove the source resources of the record named by *event*.

        A resource whose file path is still referenced by any other
        distribution or dataset, draft or published, is kept. Errors raised while removing a
        resource propagate and abort the delete.
        """
        schema_id = event.schema_id
        identifier = event.data
        if schema_id not in _REFERENCING_SCHEMAS:
            return
        try:
            document = self._service.get(schema_id, identifier, published=False)
        except MissingObjectException:
            return

        for ref in _resource_references(schema_id, document.get("$")):
            resource = self._resource_mapper.get(
                ref.get("identifier", ""), DEFAULT_SOURCE_PERSPECTIVE, ref.get("version")
            )
            if resource is None:
                continue
            if self._in_use_elsewhere(resource.file_path, schema_id, identifier):
                logger.info(
                    "Resource %s is still referenced elsewhere; keeping it", resource.file_path
                )
                continue
            self._resource_mapper.remove(resource)

    def _in_use_elsewhere(self, file_path: str, schema_id: str, identifier: str) -> bool:
        for other_schema in _REFERENCING_SCHEMAS:
            storage = self._service.storage(other_schema)
            for other_id in storage.list_identifiers():
                if other_schema == schema_id and other_id == identifier:
                    continue
                for root in _stored_roots(storage, other_id):
                    if file_path in _file_paths(other_schema, root):
                        return True
        return False


def _stored_roots(storage: RecordStorage, identifier: str) -> list[Any]:
    """Latest and published bodies of *identifier*, parsed without validation."""
    bodies = [storage.retrieve(identifier)]
    try:
        published = storage.retrieve_published(identifier)
    except MissingObjectException:
        published = None
    if published is not None and published != bodies[0]:
        bodies.append(published)
    return [json.loads(b) for b in bodies]


def _distributions(schema_id: str, root: Any) -> list[dict[str, Any]]:
    if not isinstance(root, dict):
        return []
    if schema_id == "distribution":
        return [root]
    return [d for d in root.get("distribution", []) if isinstance(d, dict)]


def _resource_references(schema_id: str, root: Any) -> list[dict[str, Any]]:
    refs = []
    for distribution in _distributions(schema_id, root):
        ref = distribution.get(DOWNLOAD_URL_REFERENCE)
        if isinstance(ref, dict):
            refs.append(ref)
    return refs


def _file_paths(schema_id: str, root: Any) -> set[str]:
    paths: set[str] = set()
    for distribution in _distributions(schema_id, root):
        ref = distribution.get(DOWNLOAD_URL_REFERENCE)
        if isinstance(ref, dict) and ref.get("filePath"):
            paths.add(ref["filePath"])
        elif isinstance(distribution.get("downloadURL"), str):
            paths.add(distribution["downloadURL"])
    return paths
