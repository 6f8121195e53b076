"""Data-service protocols for the session orchestrator.

This module defines the remote-service boundary consumed by the
orchestrator. Concrete implementations adapt a specific data store (or the
in-memory adapter used by tests and the CLI) to these protocols.

Every call is a suspension point. Implementations signal expected failures
with ``DataError``; anything else is treated as an opaque failure.
"""

# pylint: disable=too-many-arguments
from __future__ import annotations

from datetime import datetime
from typing import Protocol

from darts_training.core.domain.types import (
    CalendarEntry,
    CalendarStatus,
    Cohort,
    CreatePlayerStepRunPayload,
    DartScorePayload,
    ExpectedCheckout,
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


class TrainingDataService(Protocol):
    """Content reads, expectation lookups and score writes.

    The orchestrator must not depend on store-specific APIs.
    """

    # ------------------------------------------------------------------
    # Content reads
    # ------------------------------------------------------------------

    async def get_routine_with_steps(self, routine_id: str) -> RoutineWithSteps | None:
        """Return a routine and its ordered steps."""

    async def get_level_requirement(
        self,
        min_level: int,
        routine_type: RoutineType,
    ) -> LevelRequirement | None:
        """Return the level requirement for a decade and routine type."""

    async def get_calendar_entry(self, calendar_id: str) -> CalendarEntry | None:
        """Return a scheduled calendar entry."""

    async def list_player_sessions(self, player_id: str) -> list[PlayerSession]:
        """Return the calendar sessions available to a player."""

    async def get_session_with_routines(self, session_id: str) -> SessionWithRoutines | None:
        """Return session content with its routine references."""

    async def get_session_run(self, run_id: str) -> SessionRun | None:
        """Return a session run by id."""

    async def get_session_run_for_calendar(
        self,
        player_id: str,
        calendar_id: str,
    ) -> SessionRun | None:
        """Return the player's most recent run for a calendar entry."""

    async def create_session_run(
        self,
        player_id: str,
        calendar_id: str | None,
        *,
        player_level_snapshot: float | None = None,
    ) -> SessionRun:
        """Create and return a new scheduled run."""

    async def get_current_cohort(self, player_id: str) -> Cohort | None:
        """Return the player's current cohort (skill tier)."""

    async def list_routine_scores(self, run_id: str) -> list[RoutineScoreSummary]:
        """Return persisted routine scores for a run, in routine order."""

    # ------------------------------------------------------------------
    # Expectation lookups
    # ------------------------------------------------------------------

    async def get_expected_hits(
        self,
        player_level: float,
        routine_type: RoutineType,
        dart_count: int,
    ) -> float | None:
        """Expected hits for ``dart_count`` darts at an accuracy drill."""

    async def get_expected_checkout_successes(
        self,
        player_level: float,
        target: int,
        allowed_throws_per_attempt: int,
        attempt_count: int,
    ) -> ExpectedCheckout | None:
        """Expected successful finishes of ``target`` over all attempts."""

    async def get_recommended_segment(self, remaining: int, position: int) -> str | None:
        """Recommended aim with ``remaining`` to score at dart ``position`` (1-3)."""

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert_dart_score(self, payload: DartScorePayload) -> None:
        """Append one dart record."""

    async def get_step_run(
        self,
        run_id: str,
        routine_id: str,
        step_no: int,
    ) -> PlayerStepRun | None:
        """Return the checkout step run for (run, routine, step)."""

    async def create_step_run(self, payload: CreatePlayerStepRunPayload) -> PlayerStepRun:
        """Create a checkout step run with its expected-success baseline."""

    async def update_step_run(
        self,
        step_run_id: str,
        *,
        actual_successes: int,
        step_score: float,
        completed_at: datetime | None = None,
    ) -> None:
        """Update the cumulative successes and score of a checkout step run."""

    async def upsert_routine_score(self, payload: PlayerRoutineScorePayload) -> None:
        """Insert or replace the routine score of a run."""

    async def complete_session_run(self, run_id: str, session_score: float) -> None:
        """Mark a run complete with its final session score."""

    async def list_player_calendar(self, player_id: str) -> list[PlayerCalendarEntry]:
        """Return the player's calendar rows."""

    async def update_player_calendar_status(
        self,
        player_calendar_id: str,
        status: CalendarStatus,
    ) -> None:
        """Set the status of a player's calendar row."""


class ProgressionService(Protocol):
    """Post-session processing, invoked once per completed scheduled run."""

    async def apply_training_rating_progression(self, player_id: str, session_score: float) -> None:
        """Adjust the player's training rating after a regular session."""

    async def complete_assessment(self, run_id: str, player_id: str) -> None:
        """Finalize the initial assessment and set the baseline rating."""
