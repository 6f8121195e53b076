"""
Synchronous event bus for session events.

Events are delivered to every registered sink in registration order, on the
caller's thread. The bus keeps a tally of delivered events per event type
so hosts can summarize a run without a recording sink.
"""
from __future__ import annotations

from collections import Counter
from typing import Any, Iterable

from darts_training.core.events.event_sink import EventSink


class EventBus:
    """Fans session events out to sinks; closing it finalizes them."""

    def __init__(self, sinks: Iterable[EventSink] | None = None) -> None:
        self._sinks: list[EventSink] = list(sinks) if sinks is not None else []
        self._emitted: Counter[str] = Counter()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def emitted(self) -> dict[str, int]:
        """Delivered events per event type name."""
        return dict(self._emitted)

    def register(self, sink: EventSink) -> None:
        if self._closed:
            raise RuntimeError("cannot register a sink on a closed EventBus")
        self._sinks.append(sink)

    def emit(self, event: Any) -> None:
        """Deliver ``event`` to all sinks; dropped silently once closed."""
        if self._closed:
            return
        self._emitted[type(event).__name__] += 1
        for sink in self._sinks:
            sink.on_event(event)

    def close(self) -> None:
        """Close every sink exposing ``close()``; idempotent."""
        if self._closed:
            return
        self._closed = True
        for sink in self._sinks:
            close_sink = getattr(sink, "close", None)
            if callable(close_sink):
                close_sink()

    def __enter__(self) -> EventBus:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
