"""Schema-validated JSON documents and the factory that builds them."""

from __future__ import annotations

import copy
import json
import re
import uuid
from typing import Any, Union

from jsonschema import Draft7Validator

from metastore.exceptions import InvalidJsonException, InvalidMetadataException
from metastore.schema_retriever import SchemaRetriever

Json = Union[dict, list, str, int, float, bool, None]

_PATH_TOKEN_RE = re.compile(r"\.([^.\[\]]+)|\[(\d+)\]")


def parse_path(path: str) -> list[str | int]:
    """Split a ``$.a.b[0].c`` path into keys and list indexes.

    Raises:
        ValueError: If *path* does not start at the root or is malformed.
    """
    if not path.startswith("$"):
        raise ValueError(f"Path must start with '$': {path!r}")
    tokens: list[str | int] = []
    pos = 1
    while pos < len(path):
        match = _PATH_TOKEN_RE.match(path, pos)
        if match is None:
            raise ValueError(f"Malformed path: {path!r}")
        key, index = match.groups()
        tokens.append(int(index) if index is not None else key)
        pos = match.end()
    return tokens


def strip_reference_properties(value: Json, prefix: str = "%") -> Json:
    """Return a copy of *value* without reference artifacts.

    Top-level keys containing *prefix* are dropped, and so are such keys in
    the dict elements of list-valued top-level properties.
    """
    if not isinstance(value, dict):
        return copy.deepcopy(value)
    out: dict[str, Any] = {}
    for key, item in value.items():
        if prefix in key:
            continue
        if isinstance(item, list):
            item = [
                {k: v for k, v in el.items() if prefix not in k} if isinstance(el, dict) else el
                for el in item
            ]
        out[key] = copy.deepcopy(item)
    return out


def merge_patch(target: Json, patch: Json) -> Json:
    """Apply an RFC 7396 JSON Merge Patch and return the merged value.

    Objects merge recursively, ``null`` deletes a key, and any non-object
    patch replaces the target wholesale. *target* is not modified.
    """
    if not isinstance(patch, dict):
        return copy.deepcopy(patch)
    out = copy.deepcopy(target) if isinstance(target, dict) else {}
    for key, value in patch.items():
        if value is None:
            out.pop(key, None)
        else:
            out[key] = merge_patch(out.get(key), value)
    return out


class ValidatedDocument:
    """A JSON value that has passed validation against ``schema_id``.

    A ``schema_id`` of None means validation was skipped. Path writes are
    re-validated so the invariant holds for the whole lifetime of the object.
    """

    def __init__(self, root: Json, schema_id: str | None = None, validator: Draft7Validator | None = None) -> None:
        self.schema_id = schema_id
        self._validator = validator
        self.root = root
        self._validate(root)

    def get(self, path: str = "$", default: Any = None) -> Any:
        node: Any = self.root
        for token in parse_path(path):
            try:
                node = node[token]
            except (KeyError, IndexError, TypeError):
                return default
        return node

    def has(self, path: str) -> bool:
        sentinel = object()
        return self.get(path, sentinel) is not sentinel

    def set(self, path: str, value: Any) -> None:
        """Write *value* at *path*, creating intermediate objects as needed.

        Raises:
            InvalidMetadataException: If the result fails schema validation;
                the document is left unchanged.
        """
        tokens = parse_path(path)
        if not tokens:
            self._validate(value)
            self.root = value
            return
        candidate = copy.deepcopy(self.root)
        node = candidate
        for token in tokens[:-1]:
            if isinstance(token, str) and isinstance(node, dict) and not isinstance(node.get(token), (dict, list)):
                node[token] = {}
            node = node[token]
        node[tokens[-1]] = value
        self._validate(candidate)
        self.root = candidate

    def copy(self) -> ValidatedDocument:
        return ValidatedDocument(copy.deepcopy(self.root), self.schema_id, self._validator)

    def _validate(self, root: Json) -> None:
        if self._validator is None:
            return
        errors = sorted(
            self._validator.iter_errors(strip_reference_properties(root)),
            key=lambda e: list(e.absolute_path),
        )
        if errors:
            messages = [
                f"{'/'.join(str(p) for p in e.absolute_path) or '$'}: {e.message}" for e in errors
            ]
            raise InvalidMetadataException(
                f"JSON object failed validation against schema '{self.schema_id}': "
                + "; ".join(messages),
                errors=messages,
            )

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ValidatedDocument):
            return self.root == other.root
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __str__(self) -> str:
        return json.dumps(self.root, separators=(",", ":"), ensure_ascii=False)

    def __repr__(self) -> str:
        return f"ValidatedDocument(schema_id={self.schema_id!r}, root={self.root!r})"


class ValidMetadataFactory:
    """Builds ValidatedDocuments from raw JSON text or parsed values."""

    def __init__(self, schema_retriever: SchemaRetriever) -> None:
        self._schema_retriever = schema_retriever
        self._validators: dict[str, Draft7Validator] = {}

    def get(self, data: str | Json, schema_id: str | None, method: str | None = None) -> ValidatedDocument:
        """Parse and validate *data* against *schema_id*.

        With ``method="POST"`` a missing top-level identifier is generated
        before validation, so schemas that require one accept new records.

        Raises:
            InvalidJsonException: *data* is a string that is not valid JSON.
            InvalidMetadataException: The document fails schema validation.
            MissingObjectException: *schema_id* is unknown.
        """
        if isinstance(data, (str, bytes)):
            try:
                root = json.loads(data)
            except json.JSONDecodeError as exc:
                raise InvalidJsonException(f"Invalid JSON: {exc.msg}") from exc
        else:
            root = copy.deepcopy(data)

        if method == "POST" and isinstance(root, dict) and not root.get("identifier"):
            root["identifier"] = str(uuid.uuid4())

        validator = self._validator(schema_id) if schema_id is not None else None
        return ValidatedDocument(root, schema_id, validator)

    def _validator(self, schema_id: str) -> Draft7Validator:
        if schema_id not in self._validators:
            schema = json.loads(self._schema_retriever.retrieve(schema_id))
            self._validators[schema_id] = Draft7Validator(schema)
        return self._validators[schema_id]
