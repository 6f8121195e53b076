"""Session game state.

The orchestrator state is an explicit sum type with one frozen variant per
phase. Each variant carries only the fields meaningful in that phase, so a
``running`` field can never be read while ``loading``. Transitions build a new
variant (``dataclasses.replace`` for in-run updates); a failed operation
simply never assigns its new state.

The module also holds the small pure helpers used to resolve per-step
configuration from level requirements.
"""

# pylint: disable=too-many-instance-attributes
from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import ClassVar, Literal, Union

from darts_training.core.domain.types import (
    CalendarEntry,
    LevelRequirement,
    RoutineStep,
    RoutineType,
    RoutineWithSteps,
    SessionRun,
)

DEFAULT_ACCURACY_DARTS: int = 3
DEFAULT_CHECKOUT_DARTS: int = 9
DEFAULT_CHECKOUT_ATTEMPTS: int = 3

LevelReqsByType = Mapping[RoutineType, LevelRequirement]


# ---------------------------------------------------------------------------
# Phase variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class LoadingState:
    phase: ClassVar[str] = "loading"

    generation: int = 0


@dataclass(frozen=True, slots=True)
class InvalidState:
    phase: ClassVar[str] = "invalid"

    message: str
    # Set when the host should send the player elsewhere instead of retrying.
    redirect: Literal["assessment"] | None = None


@dataclass(frozen=True, slots=True)
class ReadyState:
    phase: ClassVar[str] = "ready"

    session_name: str
    routines: tuple[RoutineWithSteps, ...]
    level_reqs_by_type: LevelReqsByType
    existing_run: SessionRun | None
    is_assessment: bool = False

    # Omitted for free-training runs.
    calendar_id: str | None = None
    calendar_entry: CalendarEntry | None = None

    @property
    def is_free_run(self) -> bool:
        return self.calendar_id is None

    @property
    def can_resume(self) -> bool:
        return self.existing_run is not None and not self.existing_run.is_complete


@dataclass(frozen=True, slots=True)
class RunningState:
    phase: ClassVar[str] = "running"

    run_id: str
    session_name: str
    routines: tuple[RoutineWithSteps, ...]
    level_reqs_by_type: LevelReqsByType
    is_assessment: bool = False

    calendar_id: str | None = None
    calendar_entry: CalendarEntry | None = None

    routine_index: int = 0
    step_index: int = 0
    attempt_index: int = 1

    # Open visit: darts entered but not yet submitted.
    visit: tuple[str, ...] = ()

    # Non-checkout steps: visits already persisted for the current step.
    completed_visits_in_step: int = 0

    # (step_index, round score) for accuracy visits of the current routine.
    routine_round_scores: tuple[tuple[int, float], ...] = ()
    all_round_scores: tuple[float, ...] = ()
    routine_scores: tuple[float, ...] = ()

    @property
    def current_routine(self) -> RoutineWithSteps:
        return self.routines[self.routine_index]

    @property
    def current_step(self) -> RoutineStep:
        return self.current_routine.steps[self.step_index]

    @property
    def is_last_step(self) -> bool:
        return self.step_index + 1 >= len(self.current_routine.steps)

    @property
    def is_last_routine(self) -> bool:
        return self.routine_index + 1 >= len(self.routines)

    def round_scores_for_step(self, step_index: int) -> list[float]:
        return [score for idx, score in self.routine_round_scores if idx == step_index]


@dataclass(frozen=True, slots=True)
class EndedState:
    phase: ClassVar[str] = "ended"

    final_session_score: float
    routine_scores: tuple[float, ...]
    session_name: str
    run_id: str | None = None


SessionGameState = Union[LoadingState, InvalidState, ReadyState, RunningState, EndedState]


# ---------------------------------------------------------------------------
# Level requirement helpers
# ---------------------------------------------------------------------------


def level_to_decade(level: float | None) -> int:
    """Floor a skill rating to its decade (``45`` -> ``40``); None/NaN -> 0."""
    if level is None:
        return 0
    try:
        value = float(level)
    except (TypeError, ValueError):
        return 0
    if math.isnan(value):
        return 0
    return int(math.floor(value / 10.0) * 10)


def level_req_for_step(
    level_reqs_by_type: LevelReqsByType,
    routine_type: RoutineType,
) -> LevelRequirement | None:
    """Level requirement for a routine type, falling back to the SS row."""
    if routine_type in level_reqs_by_type:
        return level_reqs_by_type[routine_type]
    return level_reqs_by_type.get("SS")


def darts_per_step(
    level_req: LevelRequirement | None,
    routine_type: RoutineType,
    *,
    default_accuracy: int = DEFAULT_ACCURACY_DARTS,
    default_checkout: int = DEFAULT_CHECKOUT_DARTS,
) -> int:
    """Darts allowed per step (accuracy) or per attempt (checkout)."""
    if level_req is None:
        return default_checkout if routine_type == "C" else default_accuracy
    if routine_type == "C":
        if level_req.allowed_throws_per_attempt is not None:
            return level_req.allowed_throws_per_attempt
        return level_req.darts_allowed
    return level_req.darts_allowed


def attempt_count_for(
    level_req: LevelRequirement | None,
    *,
    default: int = DEFAULT_CHECKOUT_ATTEMPTS,
) -> int:
    """Number of checkout attempts per step."""
    if level_req is None or level_req.attempt_count is None:
        return default
    return level_req.attempt_count


def has_any_checkout_step(routines: Iterable[RoutineWithSteps]) -> bool:
    """Return True if any step of any routine is a checkout step."""
    return any(routine.has_checkout_step for routine in routines)
