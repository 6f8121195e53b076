"""
Semantic test: start and resume are idempotent.

Invariant:
At most one incomplete run exists per player and calendar entry. Starting a
session that already has an incomplete run reuses it, and checkout baselines
are created once per step no matter how often the session is started.
"""

# pylint: disable=redefined-outer-name
from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Callable

import pytest
from session_builders import PLAYER_ID, build_data, level_req, routine

from darts_training.core.domain.game_state import ReadyState, RunningState
from darts_training.core.domain.types import Cohort, LevelAverage, SessionRun
from darts_training.session.orchestrator import SessionOrchestrator

MIXED = routine("r1", "Mixed", ("SS", "S20"), ("C", "40"))
REQS = [level_req("SS"), level_req("C", darts_allowed=3, attempt_count=2, allowed_throws_per_attempt=3)]


def test_second_orchestrator_resumes_the_same_run(
    make_orchestrator: Callable[..., SessionOrchestrator],
) -> None:
    data = build_data(MIXED, level_requirements=REQS)
    first = make_orchestrator(data)
    second = make_orchestrator(data)

    async def scenario() -> None:
        await first.load_session("cal-1")
        await first.start_resume()
        # Repeated start on a running session is a no-op.
        await first.start_resume()

        ready = await second.load_session("cal-1")
        assert isinstance(ready, ReadyState)
        assert ready.can_resume
        await second.start_resume()

    asyncio.run(scenario())

    first_state = first.state
    second_state = second.state
    assert isinstance(first_state, RunningState)
    assert isinstance(second_state, RunningState)
    assert first_state.run_id == second_state.run_id == "run-1"

    assert data.calls["create_session_run"] == 1
    assert data.calls["create_step_run"] == 1
    assert list(data.step_runs) == [("run-1", "r1", 2)]


def test_run_hint_must_match_player_and_calendar(
    make_orchestrator: Callable[..., SessionOrchestrator],
) -> None:
    runs = [
        SessionRun(id="theirs", player_id="someone-else", calendar_id="cal-1"),
        SessionRun(id="mine", player_id=PLAYER_ID, calendar_id="cal-1"),
    ]
    data = build_data(MIXED, level_requirements=REQS, runs=runs)
    orch = make_orchestrator(data)

    async def scenario() -> ReadyState:
        state = await orch.load_session("cal-1", run_id_hint="theirs")
        assert isinstance(state, ReadyState)
        return state

    ready = asyncio.run(scenario())

    assert ready.existing_run is not None
    assert ready.existing_run.id == "mine"


def test_completed_run_is_not_resumed(
    make_orchestrator: Callable[..., SessionOrchestrator],
) -> None:
    done = SessionRun(
        id="old",
        player_id=PLAYER_ID,
        calendar_id="cal-1",
        completed_at=datetime(2026, 2, 1, tzinfo=timezone.utc),
        session_score=90.0,
    )
    data = build_data(routine("r1", "Twenties", ("SS", "S20")), runs=[done])
    orch = make_orchestrator(data)

    async def scenario() -> None:
        state = await orch.load_session("cal-1")
        assert isinstance(state, ReadyState)
        assert not state.can_resume
        await orch.start_resume()

    asyncio.run(scenario())

    state = orch.state
    assert isinstance(state, RunningState)
    assert state.run_id != "old"
    assert data.calls["create_session_run"] == 1


def test_cohort_level_drives_checkout_baseline(
    make_orchestrator: Callable[..., SessionOrchestrator],
) -> None:
    data = build_data(
        routine("r1", "Forty", ("C", "40")),
        level_requirements=REQS,
        level_averages=[
            LevelAverage(level_min=0, level_max=49, three_dart_avg=30.0, double_acc_pct=20.0),
            LevelAverage(level_min=50, level_max=99, three_dart_avg=60.0, double_acc_pct=50.0),
        ],
    )
    data.cohorts[PLAYER_ID] = Cohort(id="k1", name="Advanced", level=60)
    orch = make_orchestrator(data)

    async def scenario() -> None:
        await orch.load_session("cal-1")
        await orch.start_resume()

    asyncio.run(scenario())

    (baseline,) = data.step_runs.values()
    # 2 attempts x (1 - 0.5 ** 3) at the cohort's band.
    assert baseline.expected_successes == pytest.approx(2 * (1 - 0.5 ** 3))
    assert baseline.expected_successes_int == 2
    assert data.runs["run-1"].player_level_snapshot == 60.0


def test_checkout_baseline_falls_back_to_accuracy_row_like_play(
    make_orchestrator: Callable[..., SessionOrchestrator],
) -> None:
    data = build_data(
        routine("r1", "Forty", ("C", "40")),
        level_requirements=[level_req("SS", darts_allowed=3, attempt_count=2)],
        level_averages=[
            LevelAverage(level_min=0, level_max=99, three_dart_avg=60.0, double_acc_pct=50.0),
        ],
    )
    data.cohorts[PLAYER_ID] = Cohort(id="k1", name="Advanced", level=60)
    orch = make_orchestrator(data)

    async def scenario() -> None:
        await orch.load_session("cal-1")
        await orch.start_resume()

    asyncio.run(scenario())

    # No C row: play and baseline both use the SS row's 3 darts x 2 attempts.
    assert orch.visit_capacity() == 3
    (baseline,) = data.step_runs.values()
    assert baseline.expected_successes == pytest.approx(2 * (1 - 0.5 ** 3))
    assert baseline.expected_successes_int == 2
