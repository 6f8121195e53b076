"""Core shared data models and schemas.

This module defines the canonical Pydantic models exchanged with the data
service: reference content (routines, level requirements, sessions),
run bookkeeping (session runs, per-step checkout runs) and the write
payloads persisted per dart and per routine. Payload models mirror the JSON
schemas under ``core/schemas`` and are treated as the source of truth for
the wire shape.
"""

# pylint: disable=line-too-long,missing-class-docstring,missing-function-docstring
from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

RoutineType = Literal["SS", "SD", "ST", "C"]
ROUTINE_TYPES: tuple[RoutineType, ...] = ("SS", "SD", "ST", "C")

PlayerRole = Literal["player", "admin"]
RunType = Literal["scheduled", "free"]
DartResult = Literal["H", "M"]
CalendarStatus = Literal["planned", "completed"]


# ---------------------------------------------------------------------------
# Player context
# ---------------------------------------------------------------------------


class Player(BaseModel):
    id: str = Field(..., min_length=1)
    role: PlayerRole = "player"

    baseline_rating: float | None = Field(default=None, ge=0)
    training_rating: float | None = Field(default=None, ge=0)

    # Set once the initial training assessment has been completed.
    assessment_completed_at: datetime | None = None

    model_config = ConfigDict(extra="forbid", frozen=True)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def has_completed_assessment(self) -> bool:
        return self.assessment_completed_at is not None

    @property
    def rating(self) -> float:
        """Training rating, falling back to the baseline rating, else 0."""
        if self.training_rating is not None:
            return self.training_rating
        if self.baseline_rating is not None:
            return self.baseline_rating
        return 0.0


class Cohort(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    level: int = Field(..., ge=0)

    model_config = ConfigDict(extra="forbid", frozen=True)


# ---------------------------------------------------------------------------
# Routine content (reference data)
# ---------------------------------------------------------------------------


class RoutineStep(BaseModel):
    """One ordered element of a routine.

    ``target`` is a segment code for accuracy drills (SS/SD/ST) and a numeric
    string for checkout drills (C).
    """

    id: str | None = Field(default=None, min_length=1)
    step_no: int = Field(..., ge=1)
    target: str = Field(..., min_length=1)
    routine_type: RoutineType = "SS"

    model_config = ConfigDict(extra="forbid", frozen=True)

    @property
    def is_checkout(self) -> bool:
        return self.routine_type == "C"


class RoutineRef(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)

    model_config = ConfigDict(extra="forbid", frozen=True)


class RoutineWithSteps(BaseModel):
    routine: RoutineRef
    steps: tuple[RoutineStep, ...] = Field(..., min_length=1)

    model_config = ConfigDict(extra="forbid", frozen=True)

    @model_validator(mode="after")
    def validate_unique_step_numbers(self) -> RoutineWithSteps:
        step_numbers = [step.step_no for step in self.steps]
        if len(step_numbers) != len(set(step_numbers)):
            raise ValueError(f"duplicate step_no in routine {self.routine.id}")
        return self

    @property
    def has_checkout_step(self) -> bool:
        return any(step.is_checkout for step in self.steps)


class LevelRequirement(BaseModel):
    """Per-decade drill configuration, one row per (min_level, routine_type)."""

    id: str | None = Field(default=None, min_length=1)
    min_level: int = Field(..., ge=0)
    routine_type: RoutineType
    tgt_hits: float = Field(..., ge=0)
    darts_allowed: int = Field(..., ge=1)

    # Checkout (C) only.
    attempt_count: int | None = Field(default=None, ge=1)
    allowed_throws_per_attempt: int | None = Field(default=None, ge=1)

    model_config = ConfigDict(extra="forbid", frozen=True)


class LevelAverage(BaseModel):
    """Reference accuracy statistics for a level band (inclusive bounds)."""

    level_min: int = Field(..., ge=0)
    level_max: int = Field(..., ge=0)
    three_dart_avg: float = Field(..., gt=0)

    single_acc_pct: float | None = Field(default=None, ge=0, le=100)
    double_acc_pct: float | None = Field(default=None, ge=0, le=100)
    treble_acc_pct: float | None = Field(default=None, ge=0, le=100)

    model_config = ConfigDict(extra="forbid", frozen=True)

    @model_validator(mode="after")
    def validate_band(self) -> LevelAverage:
        if self.level_max < self.level_min:
            raise ValueError("level_max must be >= level_min")
        return self

    def contains(self, level: float) -> bool:
        return self.level_min <= level <= self.level_max


class CheckoutCombination(BaseModel):
    total: int = Field(..., ge=2, le=170)
    dart1: str | None = None
    dart2: str | None = None
    dart3: str | None = None

    model_config = ConfigDict(extra="forbid", frozen=True)


# ---------------------------------------------------------------------------
# Sessions and calendar
# ---------------------------------------------------------------------------


class SessionRef(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)

    model_config = ConfigDict(extra="forbid", frozen=True)


class SessionRoutine(BaseModel):
    routine_id: str = Field(..., min_length=1)
    routine_no: int = Field(..., ge=1)

    model_config = ConfigDict(extra="forbid", frozen=True)


class SessionWithRoutines(BaseModel):
    session: SessionRef
    routines: tuple[SessionRoutine, ...] = ()

    model_config = ConfigDict(extra="forbid", frozen=True)

    def ordered_routine_ids(self) -> list[str]:
        return [r.routine_id for r in sorted(self.routines, key=lambda r: r.routine_no)]


class CalendarEntry(BaseModel):
    id: str = Field(..., min_length=1)
    session_id: str = Field(..., min_length=1)
    session_name: str | None = None
    cohort_id: str | None = None
    scheduled_at: datetime | None = None

    model_config = ConfigDict(extra="forbid", frozen=True)


class PlayerSession(BaseModel):
    """A calendar session available to a player."""

    calendar_id: str = Field(..., min_length=1)
    session_id: str = Field(..., min_length=1)
    session_name: str | None = None

    model_config = ConfigDict(extra="forbid", frozen=True)


class PlayerCalendarEntry(BaseModel):
    id: str = Field(..., min_length=1)
    player_id: str = Field(..., min_length=1)
    calendar_id: str = Field(..., min_length=1)
    status: CalendarStatus = "planned"

    model_config = ConfigDict(extra="forbid")


# ---------------------------------------------------------------------------
# Runs
# ---------------------------------------------------------------------------


class SessionRun(BaseModel):
    id: str = Field(..., min_length=1)
    player_id: str = Field(..., min_length=1)
    run_type: RunType = "scheduled"

    calendar_id: str | None = None
    # Free-training runs are bound to a single routine.
    routine_id: str | None = None

    started_at: datetime | None = None
    completed_at: datetime | None = None
    session_score: float | None = None
    player_level_snapshot: float | None = None

    model_config = ConfigDict(extra="forbid")

    @property
    def is_complete(self) -> bool:
        return self.completed_at is not None


class PlayerStepRun(BaseModel):
    """Per-step aggregate for checkout steps; one per (training_id, routine_id, step_no)."""

    id: str = Field(..., min_length=1)
    player_id: str = Field(..., min_length=1)
    training_id: str = Field(..., min_length=1)
    routine_id: str = Field(..., min_length=1)
    routine_no: int = Field(..., ge=1)
    step_no: int = Field(..., ge=1)
    routine_step_id: str | None = None

    checkout_target: int = Field(..., ge=2)
    expected_successes: float = Field(..., ge=0)
    expected_successes_int: int = Field(..., ge=0)

    actual_successes: int = Field(default=0, ge=0)
    step_score: float | None = Field(default=None, ge=0)
    completed_at: datetime | None = None

    model_config = ConfigDict(extra="forbid")


class RoutineScoreSummary(BaseModel):
    routine_id: str = Field(..., min_length=1)
    routine_name: str = Field(..., min_length=1)
    routine_score: float = Field(..., ge=0)

    model_config = ConfigDict(extra="forbid", frozen=True)


class ExpectedCheckout(BaseModel):
    expected_successes: float = Field(..., ge=0)
    expected_successes_int: int = Field(..., ge=0)

    model_config = ConfigDict(extra="forbid", frozen=True)


# ---------------------------------------------------------------------------
# Write payloads (mirrored by core/schemas/*.schema.json)
# ---------------------------------------------------------------------------


class DartScorePayload(BaseModel):
    """One thrown dart. Append-only; never mutated after insertion."""

    player_id: str = Field(..., min_length=1)
    training_id: str = Field(..., min_length=1, description="Session run id.")
    routine_id: str = Field(..., min_length=1)
    routine_no: int = Field(..., ge=1)
    step_no: int = Field(..., ge=1)
    dart_no: int = Field(..., ge=1)
    attempt_index: int | None = Field(
        default=None,
        ge=1,
        description="Checkout steps only: 1..attempt_count within the step.",
    )
    target: str = Field(
        ...,
        min_length=1,
        description="Step target, or the recommended aim for checkout darts.",
    )
    actual: str = Field(..., min_length=1)
    result: DartResult

    model_config = ConfigDict(extra="forbid", frozen=True)


class CreatePlayerStepRunPayload(BaseModel):
    player_id: str = Field(..., min_length=1)
    training_id: str = Field(..., min_length=1)
    routine_id: str = Field(..., min_length=1)
    routine_no: int = Field(..., ge=1)
    step_no: int = Field(..., ge=1)
    routine_step_id: str | None = None
    checkout_target: int = Field(..., ge=2)
    expected_successes: float = Field(..., ge=0)
    expected_successes_int: int = Field(..., ge=0)

    model_config = ConfigDict(extra="forbid", frozen=True)


class PlayerRoutineScorePayload(BaseModel):
    player_id: str = Field(..., min_length=1)
    training_id: str = Field(..., min_length=1)
    routine_id: str = Field(..., min_length=1)
    routine_score: float = Field(..., ge=0)

    model_config = ConfigDict(extra="forbid", frozen=True)
