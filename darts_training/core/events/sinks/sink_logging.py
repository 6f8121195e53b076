"""
Logging event sink.
"""
from __future__ import annotations

import logging
from typing import Any


class LoggingEventSink:
    """Logs session events using the standard logging module."""

    def __init__(self, logger: logging.Logger, level: int = logging.INFO) -> None:
        self._logger = logger
        self._level = level

    def on_event(self, event: Any) -> None:
        self._logger.log(
            self._level,
            "session_event %s",
            type(event).__name__,
            extra={"event": event},
        )
