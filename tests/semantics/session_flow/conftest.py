"""Fixtures for orchestrator scenarios."""

# pylint: disable=redefined-outer-name
from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

import pytest
from session_builders import PLAYER_ID

from darts_training.adapters.memory import InMemoryProgression, InMemoryTrainingData
from darts_training.core.config.engine_config import EngineConfig
from darts_training.core.domain.types import Player
from darts_training.core.events.event_bus import EventBus
from darts_training.core.events.event_sink import CollectingSink
from darts_training.session.orchestrator import SessionOrchestrator


@pytest.fixture
def player() -> Player:
    return Player(
        id=PLAYER_ID,
        baseline_rating=25.0,
        assessment_completed_at=datetime(2026, 1, 5, tzinfo=timezone.utc),
    )


@pytest.fixture
def sink() -> CollectingSink:
    return CollectingSink()


@pytest.fixture
def progression() -> InMemoryProgression:
    return InMemoryProgression()


@pytest.fixture
def make_orchestrator(
    player: Player,
    progression: InMemoryProgression,
    sink: CollectingSink,
) -> Callable[..., SessionOrchestrator]:
    def _make(
        data: InMemoryTrainingData,
        *,
        as_player: Player | None = None,
        config: EngineConfig | None = None,
    ) -> SessionOrchestrator:
        return SessionOrchestrator(
            data=data,
            progression=progression,
            player=as_player if as_player is not None else player,
            config=config,
            event_bus=EventBus([sink]),
        )

    return _make
