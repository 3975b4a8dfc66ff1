"""Framework-free serving boundary for the metastore.

Each method takes the pieces of a request it needs (path values, query
parameters, raw body text) and returns an ApiResponse. Domain exceptions
answer with their own status code; anything else falls back to the
per-operation default.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from metastore.exceptions import (
    CannotChangeUuidException,
    InvalidJsonException,
    MetastoreException,
    MissingPayloadException,
)
from metastore.references import shape_for_output, want_references
from metastore.service import Service

logger = logging.getLogger(__name__)


@dataclass
class ApiResponse:
    status: int
    body: Any

    @property
    def ok(self) -> bool:
        return self.status < 400

    def to_json(self, indent: int | None = None) -> str:
        return json.dumps(self.body, indent=indent, ensure_ascii=False)


class MetastoreApi:
    def __init__(
        self,
        service: Service,
        base_path: str = "/api/1/metastore/schemas",
        default_range_length: int = 25,
    ) -> None:
        self._service = service
        self._base_path = base_path.rstrip("/")
        self._default_range_length = default_range_length

    # ------------------------------------------------------------------
    # Schemas
    # ------------------------------------------------------------------

    def get_schemas(self) -> ApiResponse:
        return ApiResponse(200, self._service.get_schemas())

    def get_schema(self, schema_id: str) -> ApiResponse:
        try:
            return ApiResponse(200, self._service.get_schema(schema_id))
        except Exception as exc:
            return _response_from_exception(exc, 404)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_all(self, schema_id: str, params: Mapping[str, Any] | None = None) -> ApiResponse:
        """List published records; ``start``/``length`` select a range."""
        params = params or {}
        try:
            if "start" in params or "length" in params:
                start = int(params.get("start") or 0)
                length = int(params.get("length") or self._default_range_length)
                objects = self._service.get_range(schema_id, max(start, 0), max(length, 0))
            else:
                objects = self._service.get_all(schema_id)
        except ValueError as exc:
            return _response_from_exception(exc, 400)
        except Exception as exc:
            return _response_from_exception(exc, 500)
        keep_refs = want_references(params)
        return ApiResponse(200, [shape_for_output(o, keep_refs) for o in objects])

    def get(self, schema_id: str, identifier: str, params: Mapping[str, Any] | None = None) -> ApiResponse:
        try:
            document = self._service.get(schema_id, identifier)
            return ApiResponse(200, shape_for_output(document, want_references(params or {})))
        except Exception as exc:
            return _response_from_exception(exc, 404)

    def get_resources(self, schema_id: str, identifier: str) -> ApiResponse:
        try:
            return ApiResponse(200, self._service.get_resources(schema_id, identifier))
        except Exception as exc:
            return _response_from_exception(exc, 404)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def post(self, schema_id: str, body: str | None) -> ApiResponse:
        try:
            data = _require_body(body)
            _check_identifier(data)
            document = self._service.valid_metadata_factory.get(data, schema_id, method="POST")
            identifier = self._service.post(schema_id, document)
            return ApiResponse(
                201,
                {"endpoint": f"{self._items_uri(schema_id)}/{identifier}", "identifier": identifier},
            )
        except Exception as exc:
            return _response_from_exception(exc, 400)

    def put(self, schema_id: str, identifier: str, body: str | None) -> ApiResponse:
        try:
            data = _require_body(body)
            _check_identifier(data, identifier)
            document = self._service.valid_metadata_factory.get(data, schema_id)
            info = self._service.put(schema_id, identifier, document)
            status = 201 if info["new"] else 200
            return ApiResponse(
                status,
                {"endpoint": f"{self._items_uri(schema_id)}/{identifier}", "identifier": info["identifier"]},
            )
        except Exception as exc:
            return _response_from_exception(exc, 400)

    def patch(self, schema_id: str, identifier: str, body: str | None) -> ApiResponse:
        try:
            data = _require_body(body)
            try:
                obj = json.loads(data)
            except json.JSONDecodeError as exc:
                raise InvalidJsonException("Invalid JSON") from exc
            if not obj:
                raise InvalidJsonException("Invalid JSON")
            _check_identifier(data, identifier)
            self._service.patch(schema_id, identifier, obj)
            return ApiResponse(
                200,
                {"endpoint": f"{self._items_uri(schema_id)}/{identifier}", "identifier": identifier},
            )
        except Exception as exc:
            return _response_from_exception(exc, 400)

    def publish(self, schema_id: str, identifier: str) -> ApiResponse:
        try:
            self._service.publish(schema_id, identifier)
            return ApiResponse(
                200,
                {"endpoint": f"{self._items_uri(schema_id)}/{identifier}/publish", "identifier": identifier},
            )
        except Exception as exc:
            return _response_from_exception(exc, 400)

    def delete(self, schema_id: str, identifier: str) -> ApiResponse:
        try:
            self._service.delete(schema_id, identifier)
            return ApiResponse(200, {"message": f"Dataset {identifier} has been deleted."})
        except Exception as exc:
            return _response_from_exception(exc, 500)

    def get_catalog(self) -> ApiResponse:
        try:
            return ApiResponse(200, self._service.get_catalog())
        except Exception as exc:
            return _response_from_exception(exc, 500)

    def _items_uri(self, schema_id: str) -> str:
        return f"{self._base_path}/{schema_id}/items"


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _require_body(body: str | None) -> str:
    if body is None or not body.strip():
        raise MissingPayloadException("Empty body")
    return body


def _check_identifier(data: str, identifier: str | None = None) -> None:
    try:
        obj = json.loads(data)
    except json.JSONDecodeError as exc:
        raise InvalidJsonException(f"Invalid JSON: {exc.msg}") from exc
    if identifier is not None and isinstance(obj, dict) and "identifier" in obj and obj["identifier"] != identifier:
        raise CannotChangeUuidException("Identifier cannot be modified")


def _response_from_exception(exc: Exception, default_status: int = 500) -> ApiResponse:
    status = exc.http_code if isinstance(exc, MetastoreException) else default_status
    if status >= 500:
        logger.error("Metastore request failed: %s", exc, exc_info=exc)
    else:
        logger.debug("Metastore request rejected (%s): %s", status, exc)
    return ApiResponse(
        status,
        {
            "message": str(exc),
            "status": status,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )
