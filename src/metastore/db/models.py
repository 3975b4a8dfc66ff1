"""Domain models for the metastore database layer."""

from __future__ import annotations

import hashlib
import time
from dataclasses import dataclass, field, replace
from typing import Any

from metastore.exceptions import InvalidResourceException

DEFAULT_SOURCE_PERSPECTIVE = "source"


def _path_identifier(file_path: str) -> str:
    return hashlib.md5(file_path.encode("utf-8")).hexdigest()


@dataclass
class Resource:
    """A file-backed resource registered with the resource mapper.

    The identifier is stable across versions and perspectives; by default it
    is derived from the file path of the source registration. Versions are
    integer-like strings so that "newest" has a numeric meaning.
    """

    file_path: str
    mime_type: str = ""
    perspective: str = DEFAULT_SOURCE_PERSPECTIVE
    version: str = field(default_factory=lambda: str(int(time.time())))
    identifier: str = ""
    id: int | None = None  # set by storage; None for unsaved resources

    def __post_init__(self) -> None:
        if not self.identifier:
            self.identifier = _path_identifier(self.file_path)
        try:
            self.version = str(int(self.version))
        except (TypeError, ValueError) as exc:
            raise InvalidResourceException(
                f"Resource version must be an integer, got {self.version!r}."
            ) from exc

    def create_new_version(self, file_path: str | None = None, version: str | None = None) -> Resource:
        """Return an unsaved source resource for the next version of this identifier."""
        next_version = version if version is not None else str(max(int(time.time()), int(self.version) + 1))
        return replace(
            self,
            file_path=file_path or self.file_path,
            perspective=DEFAULT_SOURCE_PERSPECTIVE,
            version=next_version,
            id=None,
        )

    def create_new_perspective(self, perspective: str, file_path: str) -> Resource:
        """Return an unsaved resource for *perspective* at this resource's version."""
        return replace(self, perspective=perspective, file_path=file_path, id=None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "identifier": self.identifier,
            "version": self.version,
            "perspective": self.perspective,
            "filePath": self.file_path,
            "mimeType": self.mime_type,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Resource:
        return cls(
            file_path=data["filePath"],
            mime_type=data.get("mimeType", ""),
            perspective=data.get("perspective", DEFAULT_SOURCE_PERSPECTIVE),
            version=str(data["version"]),
            identifier=data.get("identifier", ""),
        )


@dataclass
class RecordRevision:
    schema_id: str
    identifier: str
    revision: int
    body: str
    created_at: str | None = None
    published: bool = False
