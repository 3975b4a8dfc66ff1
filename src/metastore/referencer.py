"""Attach resource references to distributions before they are stored.

Each ``downloadURL`` is registered with the resource mapper as a ``source``
resource (an existing registration of the same path is reused) and the
resource record is attached under ``%Ref:downloadURL``.
"""

from __future__ import annotations

import copy
import logging
import mimetypes
from typing import Any

from metastore.db.models import Resource
from metastore.events import Event
from metastore.resource_mapper import ResourceMapper

logger = logging.getLogger(__name__)

DOWNLOAD_URL_REFERENCE = "%Ref:downloadURL"
DEFAULT_MIME_TYPE = "text/plain"


class DistributionReferencer:
    def __init__(self, resource_mapper: ResourceMapper) -> None:
        self._resource_mapper = resource_mapper

    def on_pre_save(self, event: Event) -> None:
        """Pre-save listener: reference distributions and dataset distributions."""
        root = event.data.get("$")
        if not isinstance(root, dict):
            return
        if event.schema_id == "distribution":
            new_root = self.reference_distribution(root)
        elif event.schema_id == "dataset" and isinstance(root.get("distribution"), list):
            new_root = copy.deepcopy(root)
            new_root["distribution"] = [
                self.reference_distribution(d) if isinstance(d, dict) else d
                for d in root["distribution"]
            ]
        else:
            return
        event.data.set("$", new_root)

    def reference_distribution(self, distribution: dict[str, Any]) -> dict[str, Any]:
        """Return a copy of *distribution* with its download URL referenced."""
        out = copy.deepcopy(distribution)
        url = out.get("downloadURL")
        if not isinstance(url, str) or not url:
            return out
        resource = self._resource_for(url, out.get("mediaType"))
        out[DOWNLOAD_URL_REFERENCE] = resource.to_dict()
        return out

    def _resource_for(self, url: str, media_type: str | None) -> Resource:
        lookup = self._resource_mapper.file_path_exists(url)
        existing = lookup.first()
        if existing is not None:
            return existing
        resource = Resource(file_path=url, mime_type=media_type or _guess_mime_type(url))
        self._resource_mapper.register(resource)
        logger.info("Registered resource %s for %s", resource.identifier, url)
        return resource


def _guess_mime_type(url: str) -> str:
    mime_type, _ = mimetypes.guess_type(url)
    return mime_type or DEFAULT_MIME_TYPE
