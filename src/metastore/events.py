"""Synchronous, ordered event dispatch for metastore lifecycle hooks.

Listeners receive an Event and may replace ``event.data`` to transform the
payload, or raise to abort the operation that dispatched it. Listeners run in
subscription order; there is no asynchronous delivery.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable

from metastore.exceptions import UnexpectedEventDataException

Listener = Callable[["Event"], None]


@dataclass
class Event:
    name: str
    data: Any
    schema_id: str | None = None


class EventDispatcher:
    """Registry of listeners keyed by event name."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def subscribe(self, event_name: str, listener: Listener) -> None:
        """Append *listener* to the handlers for *event_name*."""
        self._listeners[event_name].append(listener)

    def on(self, event_name: str) -> Callable[[Listener], Listener]:
        """Decorator form of subscribe()."""

        def decorator(func: Listener) -> Listener:
            self.subscribe(event_name, func)
            return func

        return decorator

    def has_listeners(self, event_name: str) -> bool:
        return bool(self._listeners.get(event_name))

    def dispatch(
        self,
        event_name: str,
        data: Any,
        validator: Callable[[Any], bool] | None = None,
        *,
        schema_id: str | None = None,
    ) -> Any:
        """Run every listener for *event_name* and return the resulting data.

        Raises:
            UnexpectedEventDataException: If *validator* rejects the data left
                by the listeners.
        """
        event = Event(name=event_name, data=data, schema_id=schema_id)
        for listener in list(self._listeners.get(event_name, ())):
            listener(event)
        if validator is not None and not validator(event.data):
            raise UnexpectedEventDataException(
                f"Listeners of '{event_name}' returned unexpected data."
            )
        return event.data
