"""Tests for the synchronous event dispatcher."""

from __future__ import annotations

import pytest

from metastore.events import Event, EventDispatcher
from metastore.exceptions import UnexpectedEventDataException


def test_dispatch_without_listeners_returns_data():
    assert EventDispatcher().dispatch("x", {"a": 1}) == {"a": 1}


def test_listeners_run_in_subscription_order():
    dispatcher = EventDispatcher()
    calls = []
    dispatcher.subscribe("x", lambda e: calls.append("first"))
    dispatcher.subscribe("x", lambda e: calls.append("second"))
    dispatcher.dispatch("x", None)
    assert calls == ["first", "second"]


def test_listener_can_replace_data():
    dispatcher = EventDispatcher()

    @dispatcher.on("x")
    def double(event: Event) -> None:
        event.data = event.data * 2

    dispatcher.subscribe("x", lambda e: setattr(e, "data", e.data + 1))
    assert dispatcher.dispatch("x", 5) == 11


def test_listener_sees_schema_id():
    dispatcher = EventDispatcher()
    seen = []
    dispatcher.subscribe("x", lambda e: seen.append((e.name, e.schema_id)))
    dispatcher.dispatch("x", None, schema_id="dataset")
    assert seen == [("x", "dataset")]


def test_listener_exception_propagates():
    dispatcher = EventDispatcher()

    def veto(event):
        raise RuntimeError("no")

    dispatcher.subscribe("x", veto)
    with pytest.raises(RuntimeError, match="no"):
        dispatcher.dispatch("x", None)


def test_validator_rejects_unexpected_data():
    dispatcher = EventDispatcher()
    dispatcher.subscribe("x", lambda e: setattr(e, "data", "oops"))
    with pytest.raises(UnexpectedEventDataException):
        dispatcher.dispatch("x", [], validator=lambda d: isinstance(d, list))


def test_has_listeners():
    dispatcher = EventDispatcher()
    assert not dispatcher.has_listeners("x")
    dispatcher.subscribe("x", lambda e: None)
    assert dispatcher.has_listeners("x")
