"""
Semantic test: checkout steps.

Invariant:
Each checkout attempt is submitted with the full allowance or as an early
valid finish. Darts carry the attempt index and the recommended aim; only the
finishing dart is a hit. The step run accumulates successes and its score,
and the last attempt completes the step.
"""

# pylint: disable=redefined-outer-name
from __future__ import annotations

import asyncio
from typing import Callable

import pytest
from session_builders import build_data, level_req, routine

from darts_training.core.domain.game_state import EndedState, RunningState
from darts_training.core.events.event_sink import CollectingSink
from darts_training.core.events.events import AttemptResolvedEvent
from darts_training.session.orchestrator import SessionOrchestrator, SubmitVisitResult

CHECKOUT_REQS = [
    level_req("SS"),
    level_req("C", darts_allowed=3, attempt_count=2, allowed_throws_per_attempt=3),
]


def test_two_attempts_with_early_finish(
    make_orchestrator: Callable[..., SessionOrchestrator],
    sink: CollectingSink,
) -> None:
    data = build_data(routine("r1", "Forty", ("C", "40")), level_requirements=CHECKOUT_REQS)
    orch = make_orchestrator(data)

    async def scenario() -> None:
        await orch.load_session("cal-1")
        await orch.start_resume()

        # Baseline: 2 attempts x (1 - 0.8 ** 3) rounds to 1 expected success.
        (baseline,) = data.step_runs.values()
        assert baseline.checkout_target == 40
        assert baseline.expected_successes_int == 1
        assert baseline.routine_step_id == "r1-step-1"

        assert orch.add_segment_to_visit("D20")
        assert orch.remaining() == 0
        assert orch.bust_reason() is None
        first = await orch.submit_visit()
        assert first == SubmitVisitResult(step_complete=False, session_complete=False, next_attempt_index=2)

        state = orch.state
        assert isinstance(state, RunningState)
        assert state.attempt_index == 2
        assert state.visit == ()
        assert orch.remaining() == 40

        assert orch.set_visit_from_segments(["S20", "S10", "M"])
        assert orch.remaining() == 10
        last = await orch.submit_visit()
        assert last == SubmitVisitResult(step_complete=True, session_complete=True)

    asyncio.run(scenario())

    assert [(d.attempt_index, d.dart_no) for d in data.dart_scores] == [(1, 1), (2, 1), (2, 2), (2, 3)]
    assert [d.result for d in data.dart_scores] == ["H", "M", "M", "M"]
    # Darts are labelled with the recommended aim; no route position means the target itself.
    assert [d.target for d in data.dart_scores] == ["D20", "D20", "40", "40"]

    (step_run,) = data.step_runs.values()
    assert step_run.actual_successes == 1
    assert step_run.step_score == pytest.approx(100.0)
    assert step_run.completed_at is not None

    state = orch.state
    assert isinstance(state, EndedState)
    assert state.final_session_score == pytest.approx(100.0)

    resolved = sink.of_type(AttemptResolvedEvent)
    assert [(e.attempt_index, e.finished, e.cum_successes) for e in resolved] == [(1, True, 1), (2, False, 1)]


def test_partial_unfinished_attempt_is_not_submittable(
    make_orchestrator: Callable[..., SessionOrchestrator],
) -> None:
    data = build_data(routine("r1", "Forty", ("C", "40")), level_requirements=CHECKOUT_REQS)
    orch = make_orchestrator(data)

    async def scenario() -> None:
        await orch.load_session("cal-1")
        await orch.start_resume()
        assert orch.add_segment_to_visit("S20")
        assert await orch.submit_visit() is None
        # Zero on a single is not a finish either.
        assert orch.add_segment_to_visit("S20")
        assert orch.bust_reason() == "invalid_finish"
        assert await orch.submit_visit() is None

    asyncio.run(scenario())

    assert data.dart_scores == []
    state = orch.state
    assert isinstance(state, RunningState)
    assert state.visit == ("S20", "S20")


def test_bust_is_reported_and_counts_as_no_success(
    make_orchestrator: Callable[..., SessionOrchestrator],
) -> None:
    data = build_data(routine("r1", "Thirty-two", ("C", "32")), level_requirements=CHECKOUT_REQS)
    orch = make_orchestrator(data)

    async def scenario() -> None:
        await orch.load_session("cal-1")
        await orch.start_resume()
        assert orch.set_visit_from_segments(["S20", "S11"])
        assert orch.remaining() == 1
        assert orch.bust_reason() == "one"
        assert orch.add_segment_to_visit("M")
        await orch.submit_visit()

    asyncio.run(scenario())

    (step_run,) = data.step_runs.values()
    assert step_run.actual_successes == 0
    assert all(d.result == "M" for d in data.dart_scores)


def test_checkout_step_without_numeric_target_scores_zero(
    make_orchestrator: Callable[..., SessionOrchestrator],
) -> None:
    reqs = [level_req("C", darts_allowed=3, attempt_count=1, allowed_throws_per_attempt=3)]
    data = build_data(routine("r1", "Broken", ("C", "X")), level_requirements=reqs)
    orch = make_orchestrator(data)

    async def scenario() -> None:
        await orch.load_session("cal-1")
        await orch.start_resume()
        assert orch.remaining() == 0
        assert orch.set_visit_from_segments(["M", "M", "M"])
        await orch.submit_visit()

    asyncio.run(scenario())

    assert data.step_runs == {}
    state = orch.state
    assert isinstance(state, EndedState)
    assert state.routine_scores == (0.0,)


def test_accuracy_submit_is_ignored_on_checkout_steps(
    make_orchestrator: Callable[..., SessionOrchestrator],
) -> None:
    data = build_data(routine("r1", "Forty", ("C", "40")), level_requirements=CHECKOUT_REQS)
    orch = make_orchestrator(data)

    async def scenario() -> None:
        await orch.load_session("cal-1")
        await orch.start_resume()
        assert orch.visit_capacity() == 3
        assert orch.set_visit_from_segments(["S20", "S10", "M"])
        assert await orch.submit_current_visit() is None

    asyncio.run(scenario())

    assert data.dart_scores == []
