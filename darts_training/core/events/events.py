"""
Domain event models.

These events represent immutable facts observed while a session runs.
They are consumed by loggers and recorders.
"""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class PhaseTransitionEvent:
    ts_ns_local: int
    run_id: str | None
    prev_phase: str
    next_phase: str


@dataclass(slots=True)
class DartRecordedEvent:
    ts_ns_local: int
    run_id: str
    routine_no: int
    step_no: int
    dart_no: int

    # Checkout steps only.
    attempt_index: int | None

    target: str
    actual: str
    result: str


@dataclass(slots=True)
class AttemptResolvedEvent:
    ts_ns_local: int
    run_id: str
    routine_no: int
    step_no: int
    attempt_index: int

    finished: bool
    bust_reason: str | None
    darts_thrown: int
    cum_successes: int | None


@dataclass(slots=True)
class RoundScoredEvent:
    ts_ns_local: int
    run_id: str
    routine_no: int
    step_no: int
    visit_no: int

    hits: int
    expected_hits: float | None
    round_score: float


@dataclass(slots=True)
class RoutineScoredEvent:
    ts_ns_local: int
    run_id: str
    routine_id: str
    routine_no: int

    routine_score: float


@dataclass(slots=True)
class SessionCompletedEvent:
    ts_ns_local: int
    run_id: str

    session_score: float
    routine_scores: tuple[float, ...]
    is_assessment: bool
