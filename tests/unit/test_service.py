"""Tests for the metastore service."""

from __future__ import annotations

import json
import logging

import pytest

from metastore.bootstrap import build_metastore
from metastore.config import MetastoreConfig, SchemasCfg
from metastore.exceptions import (
    CannotChangeUuidException,
    ExistingObjectException,
    InvalidJsonException,
    InvalidMetadataException,
    MissingObjectException,
    UnexpectedEventDataException,
    UnmodifiedObjectException,
)
from metastore.service import EVENT_DATA_GET, EVENT_PRE_SAVE


def _dataset(factory, identifier="ds-1", title="Trees", **extra):
    return factory.get({"identifier": identifier, "title": title, **extra}, "dataset")


def _post_published(service, factory, identifier="ds-1", **extra):
    service.post("dataset", _dataset(factory, identifier, **extra))
    service.publish("dataset", identifier)


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


def test_get_schemas(service):
    schemas = service.get_schemas()
    assert "dataset" in schemas
    assert schemas["dataset"]["title"] == "Dataset"


def test_get_schema_missing(service):
    with pytest.raises(MissingObjectException):
        service.get_schema("nope")


# ---------------------------------------------------------------------------
# post / get / publish
# ---------------------------------------------------------------------------


def test_post_then_get_requires_publish(service, factory):
    service.post("dataset", _dataset(factory))
    with pytest.raises(MissingObjectException):
        service.get("dataset", "ds-1")
    assert service.get("dataset", "ds-1", published=False).get("$.title") == "Trees"
    assert service.publish("dataset", "ds-1") is True
    assert service.get("dataset", "ds-1").get("$.title") == "Trees"


def test_post_existing_identifier_rejected(service, factory):
    service.post("dataset", _dataset(factory))
    with pytest.raises(ExistingObjectException):
        service.post("dataset", _dataset(factory, title="Other"))


def test_post_generates_identifier(service, factory):
    doc = factory.get({"title": "T"}, "dataset", method="POST")
    identifier = service.post("dataset", doc)
    assert service.get("dataset", identifier, published=False).get("$.identifier") == identifier


def test_publish_unchanged_returns_false(service, factory):
    _post_published(service, factory)
    assert service.publish("dataset", "ds-1") is False


def test_publish_missing(service):
    with pytest.raises(MissingObjectException):
        service.publish("dataset", "nope")


def test_published_revision_stable_until_republished(service, factory):
    _post_published(service, factory)
    service.put("dataset", "ds-1", _dataset(factory, title="Draft"))
    assert service.get("dataset", "ds-1").get("$.title") == "Trees"
    service.publish("dataset", "ds-1")
    assert service.get("dataset", "ds-1").get("$.title") == "Draft"


# ---------------------------------------------------------------------------
# put / patch
# ---------------------------------------------------------------------------


def test_put_new_and_existing(service, factory):
    assert service.put("dataset", "ds-1", _dataset(factory)) == {"identifier": "ds-1", "new": True}
    assert service.put("dataset", "ds-1", _dataset(factory, title="T2")) == {"identifier": "ds-1", "new": False}


def test_put_unchanged_rejected(service, factory):
    service.put("dataset", "ds-1", _dataset(factory))
    with pytest.raises(UnmodifiedObjectException):
        service.put("dataset", "ds-1", _dataset(factory))


def test_put_unchanged_ignores_key_order(service, factory):
    service.put("dataset", "ds-1", _dataset(factory, description="d"))
    reordered = factory.get('{"description": "d", "title": "Trees", "identifier": "ds-1"}', "dataset")
    with pytest.raises(UnmodifiedObjectException):
        service.put("dataset", "ds-1", reordered)


def test_put_without_embedded_identifier_unchanged_rejected(tmp_db, tmp_path):
    schemas = tmp_path / "schemas"
    schemas.mkdir()
    (schemas / "note.json").write_text('{"type": "object"}', encoding="utf-8")
    ms = build_metastore(tmp_db, MetastoreConfig(schemas=SchemasCfg(directory=str(schemas))))
    factory = ms.service.valid_metadata_factory

    note = factory.get({"text": "hi"}, "note")
    assert ms.service.put("note", "n-1", note)["new"] is True
    assert note.get("$") == {"text": "hi"}
    with pytest.raises(UnmodifiedObjectException):
        ms.service.put("note", "n-1", factory.get({"text": "hi"}, "note"))
    assert len(ms.service.storage("note").list_revisions("n-1")) == 1


def test_put_cannot_change_identifier(service, factory):
    with pytest.raises(CannotChangeUuidException):
        service.put("dataset", "ds-1", _dataset(factory, identifier="other"))


def test_patch_merges_and_deletes(service, factory):
    service.post("dataset", _dataset(factory, description="d", keyword=["a"]))
    service.patch("dataset", "ds-1", '{"title": "New", "description": null}')
    doc = service.get("dataset", "ds-1", published=False)
    assert doc.get("$.title") == "New"
    assert not doc.has("$.description")
    assert doc.get("$.keyword") == ["a"]


def test_patch_accepts_dict(service, factory):
    service.post("dataset", _dataset(factory))
    service.patch("dataset", "ds-1", {"keyword": ["x"]})
    assert service.get("dataset", "ds-1", published=False).get("$.keyword") == ["x"]


def test_patch_missing(service):
    with pytest.raises(MissingObjectException):
        service.patch("dataset", "nope", "{}")


def test_patch_invalid_json(service, factory):
    service.post("dataset", _dataset(factory))
    with pytest.raises(InvalidJsonException):
        service.patch("dataset", "ds-1", "{bad")


def test_patch_cannot_change_identifier(service, factory):
    service.post("dataset", _dataset(factory))
    with pytest.raises(CannotChangeUuidException):
        service.patch("dataset", "ds-1", {"identifier": "other"})
    assert len(service.storage("dataset").list_revisions("ds-1")) == 1


def test_patch_invalid_result_not_stored(service, factory):
    service.post("dataset", _dataset(factory))
    with pytest.raises(InvalidMetadataException):
        service.patch("dataset", "ds-1", '{"title": null}')
    assert len(service.storage("dataset").list_revisions("ds-1")) == 1


# ---------------------------------------------------------------------------
# get_all / range
# ---------------------------------------------------------------------------


def test_get_all_published_only(service, factory):
    _post_published(service, factory, "ds-1")
    service.post("dataset", _dataset(factory, "ds-2"))
    assert [d.get("$.identifier") for d in service.get_all("dataset")] == ["ds-1"]


def test_get_range(service, factory):
    for i in range(4):
        _post_published(service, factory, f"ds-{i}")
    ids = [d.get("$.identifier") for d in service.get_range("dataset", 2, 5)]
    assert ids == ["ds-2", "ds-3"]


def test_get_all_drops_invalid_records(service, factory, caplog):
    _post_published(service, factory, "ds-1")
    # Bypass validation to simulate a record stored under an older schema.
    storage = service.storage("dataset")
    storage.store(factory.get({"identifier": "bad"}, None))
    storage.publish("bad")
    with caplog.at_level(logging.WARNING, logger="metastore.service"):
        docs = service.get_all("dataset")
    assert [d.get("$.identifier") for d in docs] == ["ds-1"]
    assert "failed validation" in caplog.text


def test_data_get_listener_transforms(service, factory):
    _post_published(service, factory)

    def retitle(event):
        event.data.set("$.title", "Listened")

    service.dispatcher.subscribe(EVENT_DATA_GET, retitle)
    assert service.get("dataset", "ds-1").get("$.title") == "Listened"


def test_pre_save_listener_wrong_type_aborts(service, factory):
    service.dispatcher.subscribe(EVENT_PRE_SAVE, lambda e: setattr(e, "data", "not a document"))
    with pytest.raises(UnexpectedEventDataException):
        service.post("dataset", _dataset(factory))
    assert not service.storage("dataset").exists("ds-1")


# ---------------------------------------------------------------------------
# delete / resources / catalog
# ---------------------------------------------------------------------------


def test_delete_removes_all_revisions(service, factory):
    _post_published(service, factory)
    service.delete("dataset", "ds-1")
    with pytest.raises(MissingObjectException):
        service.get("dataset", "ds-1", published=False)


def test_get_resources(service, factory):
    service.post("dataset", _dataset(factory, distribution=[{"title": "CSV"}]))
    assert service.get_resources("dataset", "ds-1") == [{"title": "CSV"}]


def test_get_resources_none(service, factory):
    service.post("dataset", _dataset(factory))
    assert service.get_resources("dataset", "ds-1") == []


def test_catalog_contains_published_datasets(service, factory):
    _post_published(service, factory, "ds-1")
    service.post("dataset", _dataset(factory, "ds-2"))
    catalog = service.get_catalog()
    assert catalog["@type"] == "dcat:Catalog"
    assert [d["identifier"] for d in catalog["dataset"]] == ["ds-1"]
    json.dumps(catalog)


def test_catalog_excludes_other_schemas(service, factory):
    _post_published(service, factory, "ds-1")
    service.post("distribution", factory.get({"identifier": "dist-1", "title": "CSV"}, "distribution"))
    service.publish("distribution", "dist-1")
    service.post("publisher", factory.get({"identifier": "p-1", "name": "Agency"}, "publisher"))
    service.publish("publisher", "p-1")
    catalog = service.get_catalog()
    assert [d["identifier"] for d in catalog["dataset"]] == ["ds-1"]


def test_storage_is_memoized(service):
    assert service.storage("dataset") is service.storage("dataset")
