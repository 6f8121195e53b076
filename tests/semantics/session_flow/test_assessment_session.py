"""
Semantic test: initial training assessment.

Invariant:
Assessment rounds are scored as straight hit rates instead of against
level expectations. Finishing the assessment marks it complete and does
not apply training-rating progression.
"""

# pylint: disable=redefined-outer-name
from __future__ import annotations

import asyncio
from typing import Callable

import pytest
from session_builders import PLAYER_ID, build_data, routine

from darts_training.adapters.memory import InMemoryProgression
from darts_training.core.config.engine_config import EngineConfig
from darts_training.core.domain.game_state import EndedState, ReadyState
from darts_training.core.domain.types import Player
from darts_training.core.events.event_sink import CollectingSink
from darts_training.core.events.events import RoundScoredEvent, SessionCompletedEvent
from darts_training.session.orchestrator import SessionOrchestrator

TWENTIES = routine("r1", "Twenties", ("SS", "S20"))
NEWCOMER = Player(id=PLAYER_ID, baseline_rating=25.0)


def test_assessment_scores_hit_rate_and_completes_assessment(
    make_orchestrator: Callable[..., SessionOrchestrator],
    progression: InMemoryProgression,
    sink: CollectingSink,
) -> None:
    data = build_data(TWENTIES, session_name="ITA")
    orch = make_orchestrator(data, as_player=NEWCOMER)

    async def scenario() -> None:
        state = await orch.load_session("cal-1")
        assert isinstance(state, ReadyState)
        assert state.is_assessment
        await orch.start_resume()
        assert orch.set_visit_from_segments(["S20", "S20", "M"])
        await orch.submit_visit()

    asyncio.run(scenario())

    state = orch.state
    assert isinstance(state, EndedState)
    assert state.final_session_score == pytest.approx(66.6667, rel=1e-4)
    assert data.calls["get_expected_hits"] == 0

    assert progression.completed_assessments == [("run-1", PLAYER_ID)]
    assert progression.progressions == []
    assert data.player_calendar["pc-cal-1"].status == "completed"

    (round_event,) = sink.of_type(RoundScoredEvent)
    assert round_event.expected_hits is None
    assert round_event.hits == 2
    (completed,) = sink.of_type(SessionCompletedEvent)
    assert completed.is_assessment


def test_assessment_names_are_configurable(
    make_orchestrator: Callable[..., SessionOrchestrator],
) -> None:
    config = EngineConfig(assessment_session_names=("Baseline Check",))
    data = build_data(TWENTIES, session_name="baseline check")
    orch = make_orchestrator(data, as_player=NEWCOMER, config=config)

    state = asyncio.run(orch.load_session("cal-1"))

    assert isinstance(state, ReadyState)
    assert state.is_assessment
