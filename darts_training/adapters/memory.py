"""In-memory data service and progression collaborator.

Implements ``TrainingDataService`` and ``ProgressionService`` over plain
dictionaries. Used by the semantic tests and by the ``darts-session`` CLI to
replay a session from a JSON fixture.

Failures can be injected per method with ``fail_next`` to exercise the
orchestrator's retry semantics.

Fixture example (every key optional):
    {
      "routines": [{"routine": {"id": "r1", "name": "Twenties"},
                    "steps": [{"step_no": 1, "target": "S20", "routine_type": "SS"}]}],
      "sessions": [{"session": {"id": "s1", "name": "Week 1"},
                    "routines": [{"routine_id": "r1", "routine_no": 1}]}],
      "calendar": [{"id": "c1", "session_id": "s1"}],
      "player_sessions": {"p1": [{"calendar_id": "c1", "session_id": "s1"}]},
      "player_calendar": [{"id": "pc1", "player_id": "p1", "calendar_id": "c1"}],
      "level_requirements": [{"min_level": 0, "routine_type": "SS", "tgt_hits": 1, "darts_allowed": 3}],
      "level_averages": [{"level_min": 0, "level_max": 99, "three_dart_avg": 45, "single_acc_pct": 33.33}],
      "checkout_combinations": [{"total": 40, "dart1": "D20"}],
      "cohorts": {"p1": {"id": "k1", "name": "Juniors", "level": 20}},
      "runs": []
    }
"""

# pylint: disable=too-many-instance-attributes,too-many-public-methods,too-many-arguments
from __future__ import annotations

import logging
from collections import Counter, defaultdict
from datetime import datetime, timezone
from typing import Any

from pydantic import TypeAdapter

from darts_training.core.domain.errors import DataError
from darts_training.core.domain.types import (
    CalendarEntry,
    CalendarStatus,
    CheckoutCombination,
    Cohort,
    CreatePlayerStepRunPayload,
    DartScorePayload,
    ExpectedCheckout,
    LevelAverage,
    LevelRequirement,
    PlayerCalendarEntry,
    PlayerRoutineScorePayload,
    PlayerSession,
    PlayerStepRun,
    RoutineScoreSummary,
    RoutineType,
    RoutineWithSteps,
    SessionRun,
    SessionWithRoutines,
)
from darts_training.core.rules.checkout_routes import recommended_segment
from darts_training.core.scoring.expectation import (
    compute_expected_checkout_successes,
    expected_hits,
)
from darts_training.core.scoring.normalizer import level_change_from_session_score

LOGGER = logging.getLogger(__name__)


class FailureInjector:
    """Raises queued failures on the next calls of named methods."""

    def __init__(self) -> None:
        self._failures: dict[str, list[BaseException]] = defaultdict(list)
        self._skips: dict[str, int] = defaultdict(int)
        self.calls: Counter[str] = Counter()

    def fail_next(
        self,
        method: str,
        error: BaseException | None = None,
        *,
        times: int = 1,
        after: int = 0,
    ) -> None:
        """Make ``times`` calls of ``method`` raise ``error``, once ``after`` more calls succeeded."""
        exc = error if error is not None else DataError(f"{method} failed", code="NETWORK")
        self._failures[method].extend([exc] * times)
        self._skips[method] = after

    def _enter(self, method: str) -> None:
        self.calls[method] += 1
        queued = self._failures.get(method)
        if not queued:
            return
        if self._skips[method] > 0:
            self._skips[method] -= 1
            return
        raise queued.pop(0)


def _by_id(items: list[Any]) -> dict[str, Any]:
    return {item.id: item for item in items}


class InMemoryTrainingData(FailureInjector):
    """Dictionary-backed TrainingDataService."""

    def __init__(
        self,
        *,
        routines: list[RoutineWithSteps] | None = None,
        sessions: list[SessionWithRoutines] | None = None,
        calendar: list[CalendarEntry] | None = None,
        player_sessions: dict[str, list[PlayerSession]] | None = None,
        player_calendar: list[PlayerCalendarEntry] | None = None,
        level_requirements: list[LevelRequirement] | None = None,
        level_averages: list[LevelAverage] | None = None,
        checkout_combinations: list[CheckoutCombination] | None = None,
        cohorts: dict[str, Cohort] | None = None,
        runs: list[SessionRun] | None = None,
    ) -> None:
        super().__init__()
        self.routines: dict[str, RoutineWithSteps] = {r.routine.id: r for r in routines or []}
        self.sessions: dict[str, SessionWithRoutines] = {s.session.id: s for s in sessions or []}
        self.calendar: dict[str, CalendarEntry] = _by_id(calendar or [])
        self.player_sessions: dict[str, list[PlayerSession]] = dict(player_sessions or {})
        self.player_calendar: dict[str, PlayerCalendarEntry] = _by_id(player_calendar or [])
        self.level_requirements: list[LevelRequirement] = list(level_requirements or [])
        self.level_averages: list[LevelAverage] = list(level_averages or [])
        self.checkout_combinations: dict[int, CheckoutCombination] = {
            c.total: c for c in checkout_combinations or []
        }
        self.cohorts: dict[str, Cohort] = dict(cohorts or {})
        self.runs: dict[str, SessionRun] = _by_id(runs or [])

        # Written records.
        self.dart_scores: list[DartScorePayload] = []
        self.step_runs: dict[tuple[str, str, int], PlayerStepRun] = {}
        self.routine_scores: dict[tuple[str, str], PlayerRoutineScorePayload] = {}

        self._next_id = 0

    @classmethod
    def from_json_obj(cls, obj: dict[str, Any]) -> InMemoryTrainingData:
        """Build the service from a JSON-compatible fixture object."""

        def many(key: str, model: Any) -> list[Any]:
            return TypeAdapter(list[model]).validate_python(obj.get(key, []))

        return cls(
            routines=many("routines", RoutineWithSteps),
            sessions=many("sessions", SessionWithRoutines),
            calendar=many("calendar", CalendarEntry),
            player_sessions=TypeAdapter(dict[str, list[PlayerSession]]).validate_python(
                obj.get("player_sessions", {})
            ),
            player_calendar=many("player_calendar", PlayerCalendarEntry),
            level_requirements=many("level_requirements", LevelRequirement),
            level_averages=many("level_averages", LevelAverage),
            checkout_combinations=many("checkout_combinations", CheckoutCombination),
            cohorts=TypeAdapter(dict[str, Cohort]).validate_python(obj.get("cohorts", {})),
            runs=many("runs", SessionRun),
        )

    def _new_id(self, prefix: str) -> str:
        self._next_id += 1
        return f"{prefix}-{self._next_id}"

    def _level_average(self, level: float) -> LevelAverage | None:
        return next((la for la in self.level_averages if la.contains(level)), None)

    # ------------------------------------------------------------------
    # Content reads
    # ------------------------------------------------------------------

    async def get_routine_with_steps(self, routine_id: str) -> RoutineWithSteps | None:
        self._enter("get_routine_with_steps")
        rws = self.routines.get(routine_id)
        if rws is None:
            return None
        return rws.model_copy(update={"steps": tuple(sorted(rws.steps, key=lambda s: s.step_no))})

    async def get_level_requirement(self, min_level: int, routine_type: RoutineType) -> LevelRequirement | None:
        """Row for ``routine_type`` with the greatest ``min_level`` not above the requested one."""
        self._enter("get_level_requirement")
        candidates = [
            lr for lr in self.level_requirements
            if lr.routine_type == routine_type and lr.min_level <= min_level
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda lr: lr.min_level)

    async def get_calendar_entry(self, calendar_id: str) -> CalendarEntry | None:
        self._enter("get_calendar_entry")
        return self.calendar.get(calendar_id)

    async def list_player_sessions(self, player_id: str) -> list[PlayerSession]:
        self._enter("list_player_sessions")
        return list(self.player_sessions.get(player_id, []))

    async def get_session_with_routines(self, session_id: str) -> SessionWithRoutines | None:
        self._enter("get_session_with_routines")
        return self.sessions.get(session_id)

    async def get_session_run(self, run_id: str) -> SessionRun | None:
        self._enter("get_session_run")
        return self.runs.get(run_id)

    async def get_session_run_for_calendar(self, player_id: str, calendar_id: str) -> SessionRun | None:
        self._enter("get_session_run_for_calendar")
        matching = [
            run for run in self.runs.values()
            if run.player_id == player_id and run.calendar_id == calendar_id
        ]
        # Most recently created run wins.
        return matching[-1] if matching else None

    async def create_session_run(
        self,
        player_id: str,
        calendar_id: str | None,
        *,
        player_level_snapshot: float | None = None,
    ) -> SessionRun:
        self._enter("create_session_run")
        run = SessionRun(
            id=self._new_id("run"),
            player_id=player_id,
            run_type="scheduled" if calendar_id is not None else "free",
            calendar_id=calendar_id,
            started_at=datetime.now(timezone.utc),
            player_level_snapshot=player_level_snapshot,
        )
        self.runs[run.id] = run
        return run

    async def get_current_cohort(self, player_id: str) -> Cohort | None:
        self._enter("get_current_cohort")
        return self.cohorts.get(player_id)

    async def list_routine_scores(self, run_id: str) -> list[RoutineScoreSummary]:
        self._enter("list_routine_scores")
        summaries: list[RoutineScoreSummary] = []
        for (training_id, routine_id), payload in self.routine_scores.items():
            if training_id != run_id:
                continue
            rws = self.routines.get(routine_id)
            summaries.append(
                RoutineScoreSummary(
                    routine_id=routine_id,
                    routine_name=rws.routine.name if rws is not None else routine_id,
                    routine_score=payload.routine_score,
                )
            )
        return summaries

    # ------------------------------------------------------------------
    # Expectation lookups
    # ------------------------------------------------------------------

    async def get_expected_hits(self, player_level: float, routine_type: RoutineType, dart_count: int) -> float | None:
        self._enter("get_expected_hits")
        level_average = self._level_average(player_level)
        if level_average is None:
            return None
        return expected_hits(level_average, routine_type, dart_count)

    async def get_expected_checkout_successes(
        self,
        player_level: float,
        target: int,
        allowed_throws_per_attempt: int,
        attempt_count: int,
    ) -> ExpectedCheckout | None:
        self._enter("get_expected_checkout_successes")
        level_average = self._level_average(player_level)
        if level_average is None or level_average.double_acc_pct is None:
            return None
        return compute_expected_checkout_successes(
            level_average,
            target,
            allowed_throws_per_attempt=allowed_throws_per_attempt,
            attempt_count=attempt_count,
        )

    async def get_recommended_segment(self, remaining: int, position: int) -> str | None:
        self._enter("get_recommended_segment")
        combination = self.checkout_combinations.get(remaining)
        if combination is not None:
            return (combination.dart1, combination.dart2, combination.dart3)[position - 1] if 1 <= position <= 3 else None
        return recommended_segment(remaining, position)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert_dart_score(self, payload: DartScorePayload) -> None:
        self._enter("insert_dart_score")
        self.dart_scores.append(payload)

    async def get_step_run(self, run_id: str, routine_id: str, step_no: int) -> PlayerStepRun | None:
        self._enter("get_step_run")
        return self.step_runs.get((run_id, routine_id, step_no))

    async def create_step_run(self, payload: CreatePlayerStepRunPayload) -> PlayerStepRun:
        self._enter("create_step_run")
        key = (payload.training_id, payload.routine_id, payload.step_no)
        if key in self.step_runs:
            raise DataError("Step run already exists.", code="CONFLICT")
        step_run = PlayerStepRun(id=self._new_id("step-run"), **payload.model_dump())
        self.step_runs[key] = step_run
        return step_run

    async def update_step_run(
        self,
        step_run_id: str,
        *,
        actual_successes: int,
        step_score: float,
        completed_at: datetime | None = None,
    ) -> None:
        self._enter("update_step_run")
        for key, step_run in self.step_runs.items():
            if step_run.id == step_run_id:
                update: dict[str, Any] = {"actual_successes": actual_successes, "step_score": step_score}
                if completed_at is not None:
                    update["completed_at"] = completed_at
                self.step_runs[key] = step_run.model_copy(update=update)
                return
        raise DataError("Step run not found.", code="NOT_FOUND")

    async def upsert_routine_score(self, payload: PlayerRoutineScorePayload) -> None:
        self._enter("upsert_routine_score")
        self.routine_scores[(payload.training_id, payload.routine_id)] = payload

    async def complete_session_run(self, run_id: str, session_score: float) -> None:
        self._enter("complete_session_run")
        run = self.runs.get(run_id)
        if run is None:
            raise DataError("Session run not found.", code="NOT_FOUND")
        self.runs[run_id] = run.model_copy(
            update={"completed_at": datetime.now(timezone.utc), "session_score": session_score}
        )

    async def list_player_calendar(self, player_id: str) -> list[PlayerCalendarEntry]:
        self._enter("list_player_calendar")
        return [row for row in self.player_calendar.values() if row.player_id == player_id]

    async def update_player_calendar_status(self, player_calendar_id: str, status: CalendarStatus) -> None:
        self._enter("update_player_calendar_status")
        row = self.player_calendar.get(player_calendar_id)
        if row is None:
            raise DataError("Calendar entry not found.", code="NOT_FOUND")
        self.player_calendar[player_calendar_id] = row.model_copy(update={"status": status})


class InMemoryProgression(FailureInjector):
    """Records post-session processing instead of changing ratings remotely."""

    def __init__(self) -> None:
        super().__init__()
        # (player_id, session_score, level change)
        self.progressions: list[tuple[str, float, int]] = []
        # (run_id, player_id)
        self.completed_assessments: list[tuple[str, str]] = []

    async def apply_training_rating_progression(self, player_id: str, session_score: float) -> None:
        self._enter("apply_training_rating_progression")
        change = level_change_from_session_score(session_score)
        LOGGER.info("training rating progression player=%s score=%.1f change=%+d", player_id, session_score, change)
        self.progressions.append((player_id, session_score, change))

    async def complete_assessment(self, run_id: str, player_id: str) -> None:
        self._enter("complete_assessment")
        self.completed_assessments.append((run_id, player_id))
