"""Transcript source protocol.

The speech parser is pure; recognized utterances reach it through a
TranscriptSource. Platform speech recognizers implement this protocol in the
host application. ``ScriptedTranscriptSource`` replays a fixed list of
utterances (CLI replays and tests).
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from typing import Protocol


class TranscriptSource(Protocol):
    """Supplier of recognized utterances, one full visit per utterance."""

    def next_transcript(self) -> str | None:
        """Return the next utterance, or None when nothing was recognized."""
        ...


class ScriptedTranscriptSource:
    """Replays a fixed sequence of utterances in order."""

    def __init__(self, transcripts: Iterable[str]) -> None:
        self._pending: deque[str] = deque(transcripts)

    def push(self, transcript: str) -> None:
        """Queue one more utterance."""
        self._pending.append(transcript)

    def next_transcript(self) -> str | None:
        if not self._pending:
            return None
        return self._pending.popleft()

    @property
    def exhausted(self) -> bool:
        return not self._pending
