"""
Event bus that drops every event.
"""
from __future__ import annotations

from typing import Any

from darts_training.core.events.event_bus import EventBus


class NullEventBus(EventBus):
    """EventBus without sinks; events are counted and dropped (used for tests)."""

    def __init__(self) -> None:
        super().__init__(sinks=())
        self.dropped = 0

    def emit(self, event: Any) -> None:
        self.dropped += 1
