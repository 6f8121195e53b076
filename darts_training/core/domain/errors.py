"""Error taxonomy for the training-session engine.

``DataError`` is the only error the data service is expected to raise on
purpose. Everything the orchestrator raises derives from
``TrainingSessionError`` so hosts can catch a single type.
"""

from __future__ import annotations

from typing import Literal

DataErrorCode = Literal["FORBIDDEN", "NOT_FOUND", "VALIDATION", "CONFLICT", "NETWORK"]


class DataError(Exception):
    """Distinguishable data-service failure with a human-readable message."""

    def __init__(self, message: str, code: DataErrorCode | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code

    def __repr__(self) -> str:
        return f"DataError({self.message!r}, code={self.code!r})"


def is_data_error(exc: BaseException) -> bool:
    """Return True if ``exc`` is a DataError."""
    return isinstance(exc, DataError)


def user_message(exc: BaseException, default: str) -> str:
    """Map any exception to a user-facing message.

    DataError messages are safe to show; anything else is replaced by ``default``.
    """
    if isinstance(exc, DataError):
        return exc.message
    return default


class InvalidSegmentError(ValueError):
    """Raised by strict segment parsing for text that is not a segment code."""

    def __init__(self, text: object) -> None:
        super().__init__(f"Not a dart segment: {text!r}")
        self.text = text


class TrainingSessionError(Exception):
    """Base class for errors raised by the session orchestrator."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class StartSessionError(TrainingSessionError):
    """Start/resume failed; the orchestrator stays in the ready phase."""


class SubmissionError(TrainingSessionError):
    """A persistence call failed during a submission.

    The orchestrator state is left at its pre-submission position; the same
    submission may be retried.
    """


class SubmissionInFlightError(TrainingSessionError):
    """A mutating operation was attempted while another one is in flight."""


class AggregationOrderError(TrainingSessionError):
    """An aggregate score was requested before all of its inputs exist."""
