"""Reference artifacts: stripping, swapping and content hashing.

A property named ``%Ref:<name>`` sitting next to ``<name>`` carries the
expanded record that ``<name>`` points at (for example the resource behind a
``downloadURL``). Any property whose name contains ``%`` is a reference
artifact and never part of a document's public shape.
"""

from __future__ import annotations

import copy
import hashlib
import json
from collections.abc import Mapping
from typing import Any

from metastore.document import ValidatedDocument, strip_reference_properties

REFERENCE_PREFIX = "%Ref:"
SHOW_REFERENCE_PARAMS = ("show-reference-ids", "show_reference_ids")


def remove_references(document: ValidatedDocument, prefix: str = "%") -> ValidatedDocument:
    """Strip reference artifacts from *document* in place and return it.

    Removes top-level properties whose name contains *prefix*, and the same
    properties inside every dict element of list-valued top-level properties
    (for example each ``distribution[i]["%Ref:downloadURL"]``).
    """
    document.set("$", strip_reference_properties(document.get("$"), prefix))
    return document


def swap_references(document: ValidatedDocument) -> ValidatedDocument:
    """Return a schema-less copy of *document* with references dereferenced.

    Every ``%Ref:<name>`` value replaces ``<name>`` where ``<name>`` exists,
    at the top level and inside dict elements of list-valued properties;
    afterwards all ``%Ref`` properties are removed.
    """
    root = copy.deepcopy(document.get("$"))
    if isinstance(root, dict):
        _swap_in_object(root)
        for value in root.values():
            if isinstance(value, list):
                for element in value:
                    if isinstance(element, dict):
                        _swap_in_object(element)
    return remove_references(ValidatedDocument(root, None), "%Ref")


def _swap_in_object(obj: dict[str, Any]) -> None:
    for prop, value in list(obj.items()):
        if REFERENCE_PREFIX in prop:
            original = prop.replace(REFERENCE_PREFIX, "")
            if original in obj:
                obj[original] = value


def want_references(params: Mapping[str, Any]) -> bool:
    """True when either spelling of the show-reference-ids flag is present."""
    return any(name in params for name in SHOW_REFERENCE_PARAMS)


def shape_for_output(document: ValidatedDocument, with_references: bool) -> Any:
    """Return the root value to serve: dereferenced or reference-stripped."""
    if with_references:
        return swap_references(document).get("$")
    return remove_references(document.copy()).get("$")


def metadata_hash(data: ValidatedDocument | dict | list | str) -> str:
    """Return an md5 hex digest of *data* without reference artifacts.

    Validated documents and parsed JSON values are stripped and serialized
    with sorted keys, so property order does not affect the hash. Raw JSON
    strings are hashed verbatim: they are neither parsed nor stripped, and
    whitespace or key order differences change the hash.

    Raises:
        TypeError: *data* is none of the accepted forms.
    """
    if isinstance(data, ValidatedDocument):
        normalized = _canonical(strip_reference_properties(data.get("$")))
    elif isinstance(data, (dict, list)):
        normalized = _canonical(strip_reference_properties(data))
    elif isinstance(data, str):
        normalized = data
    else:
        raise TypeError("Invalid metadata argument.")
    return hashlib.md5(normalized.encode("utf-8")).hexdigest()


def _canonical(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
