"""Builders for orchestrator scenarios.

Every scenario plays against ``InMemoryTrainingData``. The default level
averages make expected hits exactly 1.0 for a three-dart SS visit
(33.33% single accuracy) and 0.6 for SD (20% double accuracy).
"""

from __future__ import annotations

from darts_training.adapters.memory import InMemoryTrainingData
from darts_training.core.domain.types import (
    CalendarEntry,
    LevelAverage,
    LevelRequirement,
    PlayerCalendarEntry,
    PlayerSession,
    RoutineRef,
    RoutineStep,
    RoutineWithSteps,
    SessionRef,
    SessionRoutine,
    SessionRun,
    SessionWithRoutines,
)

PLAYER_ID = "player-1"

DEFAULT_LEVEL_AVERAGES = [
    LevelAverage(
        level_min=0,
        level_max=99,
        three_dart_avg=45.0,
        single_acc_pct=33.33,
        double_acc_pct=20.0,
        treble_acc_pct=10.0,
    )
]


def routine(routine_id: str, name: str, *steps: tuple[str, str]) -> RoutineWithSteps:
    """Routine from (routine_type, target) pairs, numbered from 1."""
    return RoutineWithSteps(
        routine=RoutineRef(id=routine_id, name=name),
        steps=tuple(
            RoutineStep(id=f"{routine_id}-step-{no}", step_no=no, target=target, routine_type=rt)
            for no, (rt, target) in enumerate(steps, start=1)
        ),
    )


def level_req(routine_type: str, darts_allowed: int = 3, **extra: int) -> LevelRequirement:
    return LevelRequirement(
        min_level=20,
        routine_type=routine_type,
        tgt_hits=1,
        darts_allowed=darts_allowed,
        **extra,
    )


def build_data(
    *routines: RoutineWithSteps,
    session_name: str = "Week 1",
    calendar_ids: tuple[str, ...] = ("cal-1",),
    level_requirements: list[LevelRequirement] | None = None,
    level_averages: list[LevelAverage] | None = None,
    runs: list[SessionRun] | None = None,
    available_to_player: bool = True,
) -> InMemoryTrainingData:
    """One session per calendar id, each holding all ``routines`` in order."""
    sessions = []
    calendar = []
    player_sessions = []
    player_calendar = []
    for calendar_id in calendar_ids:
        session_id = f"sess-{calendar_id}"
        sessions.append(
            SessionWithRoutines(
                session=SessionRef(id=session_id, name=session_name),
                routines=tuple(
                    SessionRoutine(routine_id=r.routine.id, routine_no=no)
                    for no, r in enumerate(routines, start=1)
                ),
            )
        )
        calendar.append(CalendarEntry(id=calendar_id, session_id=session_id))
        player_sessions.append(PlayerSession(calendar_id=calendar_id, session_id=session_id))
        player_calendar.append(
            PlayerCalendarEntry(id=f"pc-{calendar_id}", player_id=PLAYER_ID, calendar_id=calendar_id)
        )

    return InMemoryTrainingData(
        routines=list(routines),
        sessions=sessions,
        calendar=calendar,
        player_sessions={PLAYER_ID: player_sessions} if available_to_player else {},
        player_calendar=player_calendar,
        level_requirements=level_requirements if level_requirements is not None else [level_req("SS")],
        level_averages=level_averages if level_averages is not None else DEFAULT_LEVEL_AVERAGES,
        runs=runs,
    )
