"""Metastore exception hierarchy.

Every domain exception carries the transport status code the boundary layer
should answer with. Anything that is not a MetastoreException is treated as
unexpected by the API layer.
"""

from __future__ import annotations


class MetastoreException(Exception):
    """Base class for metastore domain errors."""

    http_code: int = 500

    def __init__(self, message: str = "", http_code: int | None = None) -> None:
        super().__init__(message)
        if http_code is not None:
            self.http_code = http_code


# ---------------------------------------------------------------------------
# Conflict (409)
# ---------------------------------------------------------------------------


class AlreadyRegistered(MetastoreException):
    """A resource with the same file path, version or perspective exists."""

    http_code = 409


class ExistingObjectException(MetastoreException):
    """A record with the client-supplied identifier already exists."""

    http_code = 409


class UnmodifiedObjectException(MetastoreException):
    """An update would not change the stored record."""

    http_code = 409


# ---------------------------------------------------------------------------
# Not found (404)
# ---------------------------------------------------------------------------


class MissingObjectException(MetastoreException):
    """The requested record, revision, resource or schema does not exist."""

    http_code = 404


# ---------------------------------------------------------------------------
# Invalid input (400)
# ---------------------------------------------------------------------------


class CannotChangeUuidException(MetastoreException):
    http_code = 400


class InvalidJsonException(MetastoreException):
    http_code = 400


class MissingPayloadException(MetastoreException):
    http_code = 400


class InvalidMetadataException(MetastoreException):
    """A document failed validation against its schema."""

    http_code = 400

    def __init__(self, message: str = "", errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class InvalidResourceException(MetastoreException):
    http_code = 400


# ---------------------------------------------------------------------------
# Unexpected (500)
# ---------------------------------------------------------------------------


class UnexpectedEventDataException(MetastoreException):
    """An event listener returned data of the wrong shape."""

    http_code = 500
