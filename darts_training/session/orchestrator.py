"""Session orchestrator.

Drives one player through a training session or a free-training run:

    loading -> {invalid | ready} -> running -> ended

The orchestrator owns a ``SessionGameState`` (one frozen variant per phase)
and replaces it wholesale on every transition. Transitions are validated
against ``core/domain/phase_machine.py``; a refused transition is logged and
the current state is kept.

Submissions persist darts one at a time in throw order, then the step-run
aggregate, then (at routine and session boundaries) the routine score, run
completion, calendar status and post-processing. A submission either fully
completes and advances the position, or raises ``SubmissionError`` and leaves
the state exactly as it was. Writes that became durable before the failure
are recorded in a ``SubmissionJournal`` and skipped on retry.
"""

# pylint: disable=line-too-long,too-many-instance-attributes,too-many-public-methods
# pylint: disable=too-many-locals,too-many-arguments,too-many-return-statements
# pylint: disable=too-many-lines
from __future__ import annotations

import asyncio
import logging
import math
import time
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime, timezone

from darts_training.core.config.engine_config import EngineConfig
from darts_training.core.domain.errors import (
    AggregationOrderError,
    StartSessionError,
    SubmissionError,
    SubmissionInFlightError,
    TrainingSessionError,
    user_message,
)
from darts_training.core.domain.game_state import (
    EndedState,
    InvalidState,
    LoadingState,
    ReadyState,
    RunningState,
    SessionGameState,
    attempt_count_for,
    darts_per_step,
    has_any_checkout_step,
    level_req_for_step,
    level_to_decade,
)
from darts_training.core.domain.phase_machine import is_valid_transition
from darts_training.core.domain.segments import (
    is_hit_for_target,
    normalize_segment,
    parse_segment,
)
from darts_training.core.domain.types import (
    ROUTINE_TYPES,
    CreatePlayerStepRunPayload,
    DartScorePayload,
    LevelRequirement,
    Player,
    PlayerRoutineScorePayload,
    RoutineStep,
    RoutineType,
    RoutineWithSteps,
    SessionRun,
)
from darts_training.core.events.event_bus import EventBus
from darts_training.core.events.events import (
    AttemptResolvedEvent,
    DartRecordedEvent,
    PhaseTransitionEvent,
    RoundScoredEvent,
    RoutineScoredEvent,
    SessionCompletedEvent,
)
from darts_training.core.events.sinks.null_event_bus import NullEventBus
from darts_training.core.ports.training_data import ProgressionService, TrainingDataService
from darts_training.core.rules.checkout import (
    BustReason,
    CheckoutOutcome,
    compute_bust_reason,
    compute_remaining,
    evaluate_attempt,
    is_early_finish,
    parse_checkout_target,
)
from darts_training.core.scoring.normalizer import (
    checkout_routine_score,
    hit_rate,
    round_score,
    routine_score,
    session_score,
    step_score,
)
from darts_training.core.speech.parser import parse_visit_from_transcript
from darts_training.core.speech.transcript_source import TranscriptSource
from darts_training.session.journal import SubmissionJournal, SubmissionKey, submission_key

LOGGER = logging.getLogger(__name__)

MUST_COMPLETE_ASSESSMENT_MESSAGE: str = (
    "You must complete your Initial Training Assessment before you can start training."
)
GENERIC_LOAD_MESSAGE: str = "Something went wrong."
FREE_TRAINING_PREFIX: str = "Free Training - "

# Checkout darts are labelled with the recommended aim for positions 1-3.
_MAX_ROUTE_POSITION: int = 3


@dataclass(frozen=True, slots=True)
class SubmitVisitResult:
    """Outcome of an accepted submission, for host navigation."""

    step_complete: bool
    session_complete: bool
    next_attempt_index: int | None = None


def _now_ns() -> int:
    return time.time_ns()


def _run_id_of(state: SessionGameState) -> str | None:
    if isinstance(state, RunningState):
        return state.run_id
    if isinstance(state, EndedState):
        return state.run_id
    if isinstance(state, ReadyState) and state.existing_run is not None:
        return state.existing_run.id
    return None


class SessionOrchestrator:
    """State machine for one session or free-training run of one player."""

    def __init__(
        self,
        *,
        data: TrainingDataService,
        progression: ProgressionService,
        player: Player | None,
        config: EngineConfig | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._data = data
        self._progression = progression
        self._player = player
        self._config = config if config is not None else EngineConfig()
        self._event_bus = event_bus if event_bus is not None else NullEventBus()

        self._state: SessionGameState = LoadingState()
        self._generation = 0
        self._busy = False

        # Navigation context of the most recent load.
        self._calendar_id: str | None = None
        self._free_run_id: str | None = None

        # Run created by a start_resume that failed afterwards; reused on retry.
        self._pending_run_id: str | None = None
        self._journal: SubmissionJournal | None = None

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionGameState:
        return self._state

    @property
    def phase(self) -> str:
        return self._state.phase

    @property
    def config(self) -> EngineConfig:
        return self._config

    def _set_state(self, next_state: SessionGameState) -> bool:
        prev_state = self._state
        if not is_valid_transition(prev_state.phase, next_state.phase):
            LOGGER.warning(
                "refused session transition %s -> %s",
                prev_state.phase,
                next_state.phase,
            )
            return False

        self._state = next_state
        if prev_state.phase != next_state.phase:
            LOGGER.info("session phase %s -> %s", prev_state.phase, next_state.phase)
            self._event_bus.emit(
                PhaseTransitionEvent(
                    ts_ns_local=_now_ns(),
                    run_id=_run_id_of(next_state),
                    prev_phase=prev_state.phase,
                    next_phase=next_state.phase,
                )
            )
        return True

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        if self._busy:
            raise SubmissionInFlightError("Another submission is still in progress.")
        self._busy = True
        try:
            yield
        finally:
            self._busy = False

    def _ensure_idle(self) -> None:
        if self._busy:
            raise SubmissionInFlightError("Another submission is still in progress.")

    def _require_player(self) -> Player:
        if self._player is None:
            raise StartSessionError("Missing player.")
        return self._player

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _begin_load(self, *, calendar_id: str | None, free_run_id: str | None) -> int | None:
        """Enter ``loading`` for a new load; None when the machine cannot reload."""
        if not is_valid_transition(self._state.phase, "loading"):
            LOGGER.warning("load ignored in phase %s", self._state.phase)
            return None

        self._generation += 1
        self._calendar_id = calendar_id
        self._free_run_id = free_run_id
        self._pending_run_id = None
        self._journal = None
        self._set_state(LoadingState(generation=self._generation))
        return self._generation

    def _is_stale(self, generation: int) -> bool:
        return generation != self._generation or not isinstance(self._state, LoadingState)

    def _finish_load(self, generation: int, next_state: SessionGameState | None) -> None:
        if next_state is None or self._is_stale(generation):
            LOGGER.debug(
                "discarding result of superseded load generation=%s (current=%s, phase=%s)",
                generation,
                self._generation,
                self._state.phase,
            )
            return
        self._set_state(next_state)

    async def load_session(self, calendar_id: str, run_id_hint: str | None = None) -> SessionGameState:
        """Load a scheduled session for the player.

        ``run_id_hint`` names a run to resume; it is honoured only when it
        belongs to this player and calendar entry.
        """
        generation = self._begin_load(calendar_id=calendar_id, free_run_id=None)
        if generation is None:
            return self._state

        try:
            next_state = await self._load_scheduled(generation, calendar_id, run_id_hint)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            LOGGER.warning("session load failed calendar_id=%s: %r", calendar_id, exc)
            next_state = InvalidState(message=user_message(exc, GENERIC_LOAD_MESSAGE))

        self._finish_load(generation, next_state)
        return self._state

    async def load_free_run(self, run_id: str) -> SessionGameState:
        """Load a free-training run (one routine, created by the host)."""
        generation = self._begin_load(calendar_id=None, free_run_id=run_id)
        if generation is None:
            return self._state

        try:
            next_state = await self._load_free(generation, run_id)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            LOGGER.warning("free run load failed run_id=%s: %r", run_id, exc)
            next_state = InvalidState(message=user_message(exc, GENERIC_LOAD_MESSAGE))

        self._finish_load(generation, next_state)
        return self._state

    async def _load_scheduled(
        self,
        generation: int,
        calendar_id: str,
        run_id_hint: str | None,
    ) -> SessionGameState | None:
        player = self._player
        if player is None:
            return InvalidState(message="Missing player.")

        sessions, calendar_entry = await asyncio.gather(
            self._data.list_player_sessions(player.id),
            self._data.get_calendar_entry(calendar_id),
        )
        if self._is_stale(generation):
            return None

        available = any(s.calendar_id == calendar_id for s in sessions)
        if calendar_entry is None or not (available or player.is_admin):
            return InvalidState(message="Session not found or you don't have access to it.")

        session_data = await self._data.get_session_with_routines(calendar_entry.session_id)
        if self._is_stale(generation):
            return None
        if session_data is None:
            return InvalidState(message="Session content not found.")

        session_name = calendar_entry.session_name or session_data.session.name
        is_assessment = self._config.is_assessment_session(session_name)
        if not player.has_completed_assessment and not player.is_admin and not is_assessment:
            return InvalidState(message=MUST_COMPLETE_ASSESSMENT_MESSAGE, redirect="assessment")

        routines: list[RoutineWithSteps] = []
        for routine_id in session_data.ordered_routine_ids():
            rws = await self._data.get_routine_with_steps(routine_id)
            if self._is_stale(generation):
                return None
            if rws is None:
                LOGGER.warning("routine %s of session %s not found; skipped", routine_id, session_data.session.id)
                continue
            routines.append(rws)
        if not routines:
            return InvalidState(message="Session has no routines.")

        level_reqs = await self._load_level_reqs(player)
        if self._is_stale(generation):
            return None

        existing_run = await self._find_existing_run(player, calendar_id, run_id_hint)
        if self._is_stale(generation):
            return None

        return ReadyState(
            session_name=session_name,
            routines=tuple(routines),
            level_reqs_by_type=level_reqs,
            existing_run=existing_run,
            is_assessment=is_assessment,
            calendar_id=calendar_id,
            calendar_entry=calendar_entry,
        )

    async def _load_free(self, generation: int, run_id: str) -> SessionGameState | None:
        player = self._player
        if player is None:
            return InvalidState(message="Missing player.")

        run = await self._data.get_session_run(run_id)
        if self._is_stale(generation):
            return None
        if run is None or run.player_id != player.id or run.run_type != "free" or not run.routine_id:
            return InvalidState(message="Free training run not found or not yours.")

        if run.is_complete:
            summaries = await self._data.list_routine_scores(run.id)
            if self._is_stale(generation):
                return None
            routine_name = summaries[0].routine_name if summaries else "Routine"
            return EndedState(
                final_session_score=run.session_score or 0.0,
                routine_scores=tuple(s.routine_score for s in summaries),
                session_name=f"{FREE_TRAINING_PREFIX}{routine_name}",
                run_id=run.id,
            )

        rws = await self._data.get_routine_with_steps(run.routine_id)
        if self._is_stale(generation):
            return None
        if rws is None:
            return InvalidState(message="Routine not found.")

        level_reqs = await self._load_level_reqs(player)
        if self._is_stale(generation):
            return None

        return ReadyState(
            session_name=f"{FREE_TRAINING_PREFIX}{rws.routine.name}",
            routines=(rws,),
            level_reqs_by_type=level_reqs,
            existing_run=run,
        )

    async def _load_level_reqs(self, player: Player) -> dict[RoutineType, LevelRequirement]:
        decade = level_to_decade(player.rating)
        found = await asyncio.gather(
            *(self._data.get_level_requirement(decade, routine_type) for routine_type in ROUTINE_TYPES)
        )
        return {
            routine_type: level_req
            for routine_type, level_req in zip(ROUTINE_TYPES, found)
            if level_req is not None
        }

    async def _find_existing_run(
        self,
        player: Player,
        calendar_id: str,
        run_id_hint: str | None,
    ) -> SessionRun | None:
        if run_id_hint:
            hinted = await self._data.get_session_run(run_id_hint)
            if hinted is not None and hinted.calendar_id == calendar_id and hinted.player_id == player.id:
                return hinted
            LOGGER.debug("run hint %s does not match calendar %s; falling back", run_id_hint, calendar_id)
        return await self._data.get_session_run_for_calendar(player.id, calendar_id)

    # ------------------------------------------------------------------
    # Start / resume
    # ------------------------------------------------------------------

    async def start_resume(self) -> SessionGameState:
        """Enter ``running``: reuse the incomplete run or create one.

        For sessions with checkout steps the player's level is resolved and an
        expected-success baseline is created for every checkout step that does
        not have one yet. Calling this again is a no-op once running.
        """
        state = self._state
        if not isinstance(state, ReadyState):
            LOGGER.debug("start_resume ignored in phase %s", state.phase)
            return state

        with self._exclusive():
            player = self._require_player()
            has_checkout = has_any_checkout_step(state.routines)
            try:
                player_level = await self._resolve_player_level(player) if has_checkout else None
                run_id = await self._resolve_run(state, player, player_level)
                if has_checkout and player_level is not None:
                    await self._ensure_checkout_baselines(run_id, state, player, player_level)
            except TrainingSessionError:
                raise
            except Exception as exc:
                LOGGER.warning("start_resume failed: %r", exc)
                raise StartSessionError(user_message(exc, "Failed to start session.")) from exc

            self._pending_run_id = None
            self._set_state(
                RunningState(
                    run_id=run_id,
                    session_name=state.session_name,
                    routines=state.routines,
                    level_reqs_by_type=state.level_reqs_by_type,
                    is_assessment=state.is_assessment,
                    calendar_id=state.calendar_id,
                    calendar_entry=state.calendar_entry,
                )
            )
        return self._state

    async def _resolve_player_level(self, player: Player) -> float:
        cohort = await self._data.get_current_cohort(player.id)
        if cohort is not None:
            return float(cohort.level)
        return player.rating

    async def _resolve_run(self, state: ReadyState, player: Player, player_level: float | None) -> str:
        if state.can_resume and state.existing_run is not None:
            return state.existing_run.id
        if state.is_free_run:
            raise StartSessionError("Free training run not found or not yours.")
        if self._pending_run_id is not None:
            return self._pending_run_id

        run = await self._data.create_session_run(
            player.id,
            state.calendar_id,
            player_level_snapshot=player_level,
        )
        self._pending_run_id = run.id
        LOGGER.info("created session run %s for calendar %s", run.id, state.calendar_id)
        return run.id

    async def _ensure_checkout_baselines(
        self,
        run_id: str,
        state: ReadyState,
        player: Player,
        player_level: float,
    ) -> None:
        level_req = level_req_for_step(state.level_reqs_by_type, "C")
        allowed_throws = darts_per_step(
            level_req,
            "C",
            default_accuracy=self._config.default_accuracy_darts,
            default_checkout=self._config.default_checkout_darts,
        )
        attempt_count = attempt_count_for(level_req, default=self._config.default_checkout_attempts)

        for routine_index, rws in enumerate(state.routines):
            for step in rws.steps:
                if not step.is_checkout:
                    continue
                target = parse_checkout_target(step.target)
                if target is None or target < 2:
                    LOGGER.warning(
                        "checkout step %s of routine %s has non-numeric target %r; no baseline",
                        step.step_no,
                        rws.routine.id,
                        step.target,
                    )
                    continue

                existing = await self._data.get_step_run(run_id, rws.routine.id, step.step_no)
                if existing is not None:
                    continue

                expected = await self._data.get_expected_checkout_successes(
                    player_level,
                    target,
                    allowed_throws,
                    attempt_count,
                )
                if expected is None:
                    LOGGER.warning("no checkout expectation for level=%s target=%s", player_level, target)
                    continue

                await self._data.create_step_run(
                    CreatePlayerStepRunPayload(
                        player_id=player.id,
                        training_id=run_id,
                        routine_id=rws.routine.id,
                        routine_no=routine_index + 1,
                        step_no=step.step_no,
                        routine_step_id=step.id,
                        checkout_target=target,
                        expected_successes=expected.expected_successes,
                        expected_successes_int=expected.expected_successes_int,
                    )
                )

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    def _level_req(self, state: RunningState, step: RoutineStep) -> LevelRequirement | None:
        return level_req_for_step(state.level_reqs_by_type, step.routine_type)

    def _darts_per_step(self, level_req: LevelRequirement | None, step: RoutineStep) -> int:
        return darts_per_step(
            level_req,
            step.routine_type,
            default_accuracy=self._config.default_accuracy_darts,
            default_checkout=self._config.default_checkout_darts,
        )

    def _accuracy_visit_size(self, darts_in_step: int) -> int:
        """Darts every visit of an accuracy step holds, the last one included."""
        return max(0, min(self._config.darts_per_visit, darts_in_step))

    def current_step(self) -> RoutineStep | None:
        if not isinstance(self._state, RunningState):
            return None
        return self._state.current_step

    def visit_capacity(self) -> int:
        """Darts the open visit may hold at the current position (0 when not running)."""
        state = self._state
        if not isinstance(state, RunningState):
            return 0
        step = state.current_step
        darts = self._darts_per_step(self._level_req(state, step), step)
        if step.is_checkout:
            return darts
        return self._accuracy_visit_size(darts)

    def remaining(self) -> int | None:
        """Checkout remainder of the open visit; None on accuracy steps."""
        state = self._state
        if not isinstance(state, RunningState) or not state.current_step.is_checkout:
            return None
        return compute_remaining(state.current_step.target, state.visit)

    def bust_reason(self) -> BustReason | None:
        state = self._state
        if not isinstance(state, RunningState) or not state.current_step.is_checkout:
            return None
        return compute_bust_reason(state.current_step.target, state.visit)

    def get_back_href(self) -> str:
        if self._free_run_id is not None:
            return self._config.free_training_href
        return f"{self._config.session_href_prefix}{self._calendar_id or ''}"

    def get_summary_url(self) -> str:
        if self._free_run_id is not None:
            return f"{self._config.free_run_href_prefix}{self._free_run_id}/summary"
        return f"{self._config.session_href_prefix}{self._calendar_id or ''}/summary"

    def get_redirect_href(self) -> str | None:
        """Where the host should send the player instead of this session, if anywhere."""
        state = self._state
        if isinstance(state, InvalidState) and state.redirect == "assessment":
            return self._config.assessment_href
        return None

    # ------------------------------------------------------------------
    # Visit editing
    # ------------------------------------------------------------------

    def _editable_running_state(self) -> RunningState | None:
        self._ensure_idle()
        state = self._state
        if not isinstance(state, RunningState):
            return None
        if self._journal is not None and self._journal.has_durable_writes:
            LOGGER.warning("visit is locked until the failed submission is retried")
            return None
        return state

    def _canonical(self, segment: str) -> str:
        if self._config.strict_segments:
            return parse_segment(segment)
        return normalize_segment(segment)

    def add_segment_to_visit(self, segment: str) -> bool:
        """Append one dart to the open visit; False when full or not running.

        Raises InvalidSegmentError for non-canonical text when strict.
        """
        state = self._editable_running_state()
        if state is None:
            return False
        code = self._canonical(segment)
        if len(state.visit) >= self.visit_capacity():
            return False
        return self._set_state(replace(state, visit=state.visit + (code,)))

    def set_visit_from_segments(self, segments: Sequence[str]) -> bool:
        """Append several darts at once (voice input); all or nothing."""
        state = self._editable_running_state()
        if state is None:
            return False
        codes = tuple(self._canonical(segment) for segment in segments)
        if not codes:
            return False
        if len(state.visit) + len(codes) > self.visit_capacity():
            LOGGER.debug("visit overflow: %d + %d darts", len(state.visit), len(codes))
            return False
        return self._set_state(replace(state, visit=state.visit + codes))

    def clear_visit(self) -> bool:
        state = self._editable_running_state()
        if state is None or not state.visit:
            return False
        return self._set_state(replace(state, visit=()))

    def undo_last(self) -> bool:
        state = self._editable_running_state()
        if state is None or not state.visit:
            return False
        return self._set_state(replace(state, visit=state.visit[:-1]))

    def apply_transcript(self, transcript: str) -> list[str] | None:
        """Parse an utterance for the open visit and append its darts.

        Returns the parsed segments, or None when the utterance was not
        understood (the visit is left untouched).
        """
        state = self._state
        if not isinstance(state, RunningState):
            return None
        free = self.visit_capacity() - len(state.visit)
        visit_size = min(free, self._config.darts_per_visit)
        if visit_size <= 0:
            return None

        segments = parse_visit_from_transcript(transcript, state.current_step.target, visit_size)
        if segments is None:
            return None
        if not self.set_visit_from_segments(segments):
            return None
        return segments

    def apply_next_transcript(self, source: TranscriptSource) -> list[str] | None:
        transcript = source.next_transcript()
        if transcript is None:
            return None
        return self.apply_transcript(transcript)

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def _journal_for(self, key: SubmissionKey) -> SubmissionJournal:
        if self._journal is not None and self._journal.matches(key):
            LOGGER.info("resuming submission: %d darts already written", self._journal.darts_written)
            return self._journal
        self._journal = SubmissionJournal(key=key)
        return self._journal

    def _submission_error(self, exc: Exception, default: str) -> SubmissionError:
        LOGGER.warning("submission failed: %r", exc)
        return SubmissionError(user_message(exc, default))

    async def _write_dart(self, state: RunningState, payload: DartScorePayload) -> None:
        await self._data.insert_dart_score(payload)
        self._event_bus.emit(
            DartRecordedEvent(
                ts_ns_local=_now_ns(),
                run_id=state.run_id,
                routine_no=payload.routine_no,
                step_no=payload.step_no,
                dart_no=payload.dart_no,
                attempt_index=payload.attempt_index,
                target=payload.target,
                actual=payload.actual,
                result=payload.result,
            )
        )

    async def submit_visit(self) -> SubmitVisitResult | None:
        """Submit the open visit as one checkout attempt.

        Accepted when the visit holds the full per-attempt allowance, or fewer
        darts that already finished the target validly. On accuracy steps this
        delegates to ``submit_current_visit``. Returns None when the visit is
        not submittable.
        """
        state = self._state
        if not isinstance(state, RunningState):
            return None
        step = state.current_step
        if not step.is_checkout:
            return await self.submit_current_visit()

        level_req = self._level_req(state, step)
        allowance = self._darts_per_step(level_req, step)
        attempt_count = attempt_count_for(level_req, default=self._config.default_checkout_attempts)
        visit = state.visit
        if len(visit) != allowance and not is_early_finish(step.target, visit, allowance):
            LOGGER.debug("checkout visit not submittable: %d of %d darts", len(visit), allowance)
            return None

        with self._exclusive():
            journal = self._journal_for(
                submission_key("checkout", state.routine_index, state.step_index, state.attempt_index, visit)
            )
            try:
                outcome = evaluate_attempt(step.target, visit)
                await self._persist_checkout_darts(state, step, outcome, journal)
                await self._record_attempt(state, step, outcome, attempt_count, journal)

                next_state: SessionGameState
                if state.attempt_index < attempt_count:
                    next_attempt = state.attempt_index + 1
                    next_state = replace(state, attempt_index=next_attempt, visit=())
                    result = SubmitVisitResult(
                        step_complete=False,
                        session_complete=False,
                        next_attempt_index=next_attempt,
                    )
                else:
                    next_state, result = await self._advance_step(state, journal)
            except TrainingSessionError:
                raise
            except Exception as exc:
                raise self._submission_error(exc, "Failed to save darts.") from exc

            self._journal = None
            self._set_state(next_state)
        return result

    async def _persist_checkout_darts(
        self,
        state: RunningState,
        step: RoutineStep,
        outcome: CheckoutOutcome,
        journal: SubmissionJournal,
    ) -> None:
        visit = state.visit
        for index in range(journal.darts_written, len(visit)):
            remaining_before = compute_remaining(step.target, visit[:index])
            position = min(index + 1, _MAX_ROUTE_POSITION)
            recommended = await self._data.get_recommended_segment(remaining_before, position)
            await self._write_dart(
                state,
                DartScorePayload(
                    player_id=self._require_player().id,
                    training_id=state.run_id,
                    routine_id=state.current_routine.routine.id,
                    routine_no=state.routine_index + 1,
                    step_no=step.step_no,
                    dart_no=index + 1,
                    attempt_index=state.attempt_index,
                    target=recommended or step.target,
                    actual=visit[index],
                    result="H" if index == outcome.finish_dart_index else "M",
                ),
            )
            journal.darts_written = index + 1

    async def _record_attempt(
        self,
        state: RunningState,
        step: RoutineStep,
        outcome: CheckoutOutcome,
        attempt_count: int,
        journal: SubmissionJournal,
    ) -> None:
        if journal.step_run_updated:
            return

        routine_id = state.current_routine.routine.id
        step_run = await self._data.get_step_run(state.run_id, routine_id, step.step_no)
        cum_successes: int | None = None
        if step_run is None:
            LOGGER.warning("no checkout baseline for routine=%s step=%s; attempt not scored", routine_id, step.step_no)
        else:
            cum_successes = step_run.actual_successes + (1 if outcome.finished else 0)
            is_last_attempt = state.attempt_index >= attempt_count
            await self._data.update_step_run(
                step_run.id,
                actual_successes=cum_successes,
                step_score=step_score(step_run.expected_successes_int, cum_successes),
                completed_at=datetime.now(timezone.utc) if is_last_attempt else None,
            )

        journal.step_run_updated = True
        journal.cum_successes = cum_successes
        self._event_bus.emit(
            AttemptResolvedEvent(
                ts_ns_local=_now_ns(),
                run_id=state.run_id,
                routine_no=state.routine_index + 1,
                step_no=step.step_no,
                attempt_index=state.attempt_index,
                finished=outcome.finished,
                bust_reason=outcome.bust_reason,
                darts_thrown=outcome.darts_thrown,
                cum_successes=cum_successes,
            )
        )

    async def submit_current_visit(self) -> SubmitVisitResult | None:
        """Submit the open visit of an accuracy step.

        Accepted when the visit holds exactly ``darts_per_visit`` darts (fewer
        only when the whole step allows fewer). A step needs
        ``ceil(darts_allowed / darts_per_visit)`` visits. Returns None when the
        visit is not submittable.
        """
        state = self._state
        if not isinstance(state, RunningState):
            return None
        step = state.current_step
        if step.is_checkout:
            LOGGER.debug("submit_current_visit ignored on checkout step %s", step.step_no)
            return None

        level_req = self._level_req(state, step)
        darts_in_step = self._darts_per_step(level_req, step)
        per_visit = self._config.darts_per_visit
        required_visits = math.ceil(darts_in_step / per_visit)
        visit = state.visit
        if len(visit) != self._accuracy_visit_size(darts_in_step):
            LOGGER.debug("visit not submittable: %d darts", len(visit))
            return None

        visit_no = state.completed_visits_in_step + 1
        with self._exclusive():
            journal = self._journal_for(
                submission_key("visit", state.routine_index, state.step_index, visit_no, visit)
            )
            try:
                dart_no_base = state.completed_visits_in_step * per_visit
                for index in range(journal.darts_written, len(visit)):
                    actual = visit[index]
                    await self._write_dart(
                        state,
                        DartScorePayload(
                            player_id=self._require_player().id,
                            training_id=state.run_id,
                            routine_id=state.current_routine.routine.id,
                            routine_no=state.routine_index + 1,
                            step_no=step.step_no,
                            dart_no=dart_no_base + index + 1,
                            target=step.target,
                            actual=actual,
                            result="H" if is_hit_for_target(actual, step.target) else "M",
                        ),
                    )
                    journal.darts_written = index + 1

                hits = sum(1 for actual in visit if is_hit_for_target(actual, step.target))
                expected, score = await self._score_round(state, step, level_req, hits, len(visit))
                if not journal.round_reported:
                    self._event_bus.emit(
                        RoundScoredEvent(
                            ts_ns_local=_now_ns(),
                            run_id=state.run_id,
                            routine_no=state.routine_index + 1,
                            step_no=step.step_no,
                            visit_no=visit_no,
                            hits=hits,
                            expected_hits=expected,
                            round_score=score,
                        )
                    )
                    journal.round_reported = True

                scored = replace(
                    state,
                    visit=(),
                    completed_visits_in_step=visit_no,
                    routine_round_scores=state.routine_round_scores + ((state.step_index, score),),
                    all_round_scores=state.all_round_scores + (score,),
                )
                next_state: SessionGameState
                if visit_no < required_visits:
                    next_state = scored
                    result = SubmitVisitResult(step_complete=False, session_complete=False)
                else:
                    next_state, result = await self._advance_step(scored, journal)
            except TrainingSessionError:
                raise
            except Exception as exc:
                raise self._submission_error(exc, "Failed to save darts.") from exc

            self._journal = None
            self._set_state(next_state)
        return result

    async def _score_round(
        self,
        state: RunningState,
        step: RoutineStep,
        level_req: LevelRequirement | None,
        hits: int,
        dart_count: int,
    ) -> tuple[float | None, float]:
        """Round score of one visit, with the expected hits it was scored against."""
        if state.is_assessment:
            return None, hit_rate(hits, dart_count)

        expected = await self._data.get_expected_hits(self._require_player().rating, step.routine_type, dart_count)
        if expected is None:
            expected = level_req.tgt_hits if level_req is not None else float(min(1, dart_count))
        return expected, round_score(hits, expected)

    # ------------------------------------------------------------------
    # Advancement
    # ------------------------------------------------------------------

    async def _advance_step(
        self,
        state: RunningState,
        journal: SubmissionJournal,
    ) -> tuple[SessionGameState, SubmitVisitResult]:
        """Move past the current (completed) step, scoring routine and session as needed."""
        step_done = SubmitVisitResult(step_complete=True, session_complete=False)

        if not state.is_last_step:
            return (
                replace(
                    state,
                    step_index=state.step_index + 1,
                    attempt_index=1,
                    visit=(),
                    completed_visits_in_step=0,
                ),
                step_done,
            )

        score = await self._score_routine(state, journal)
        routine_scores = state.routine_scores + (score,)

        if not state.is_last_routine:
            return (
                replace(
                    state,
                    routine_index=state.routine_index + 1,
                    step_index=0,
                    attempt_index=1,
                    visit=(),
                    completed_visits_in_step=0,
                    routine_round_scores=(),
                    routine_scores=routine_scores,
                ),
                step_done,
            )

        final_score = await self._complete_session(state, routine_scores, journal)
        return (
            EndedState(
                final_session_score=final_score,
                routine_scores=routine_scores,
                session_name=state.session_name,
                run_id=state.run_id,
            ),
            SubmitVisitResult(step_complete=True, session_complete=True),
        )

    async def _step_scores(self, state: RunningState) -> list[float]:
        """Per-step scores of the current routine, in step order."""
        rws = state.current_routine
        scores: list[float] = []
        for step_index, step in enumerate(rws.steps):
            if step.is_checkout:
                step_run = await self._data.get_step_run(state.run_id, rws.routine.id, step.step_no)
                if step_run is None:
                    # No baseline could be created for this step; it scores 0.
                    scores.append(0.0)
                    continue
                if step_run.step_score is None:
                    raise AggregationOrderError(
                        f"checkout step {step.step_no} of routine {rws.routine.id} has no step score"
                    )
                scores.append(step_run.step_score)
            else:
                round_scores = state.round_scores_for_step(step_index)
                if not round_scores:
                    raise AggregationOrderError(
                        f"step {step.step_no} of routine {rws.routine.id} has no round score"
                    )
                scores.append(routine_score(round_scores))
        return scores

    async def _score_routine(self, state: RunningState, journal: SubmissionJournal) -> float:
        rws = state.current_routine
        score = checkout_routine_score(await self._step_scores(state))
        if journal.routine_scored:
            return score

        await self._data.upsert_routine_score(
            PlayerRoutineScorePayload(
                player_id=self._require_player().id,
                training_id=state.run_id,
                routine_id=rws.routine.id,
                routine_score=score,
            )
        )
        journal.routine_scored = True
        self._event_bus.emit(
            RoutineScoredEvent(
                ts_ns_local=_now_ns(),
                run_id=state.run_id,
                routine_id=rws.routine.id,
                routine_no=state.routine_index + 1,
                routine_score=score,
            )
        )
        return score

    async def _complete_session(
        self,
        state: RunningState,
        routine_scores: tuple[float, ...],
        journal: SubmissionJournal,
    ) -> float:
        if len(routine_scores) != len(state.routines):
            raise AggregationOrderError(
                f"session score needs {len(state.routines)} routine scores, have {len(routine_scores)}"
            )
        player = self._require_player()
        final_score = session_score(routine_scores)

        if not journal.run_completed:
            await self._data.complete_session_run(state.run_id, final_score)
            journal.run_completed = True

        # Calendar status and progression apply to scheduled runs only.
        if state.calendar_id is not None:
            if not journal.calendar_updated:
                rows = await self._data.list_player_calendar(player.id)
                row = next((r for r in rows if r.calendar_id == state.calendar_id), None)
                if row is not None:
                    await self._data.update_player_calendar_status(row.id, "completed")
                journal.calendar_updated = True

            if not journal.post_processed:
                if state.is_assessment:
                    await self._progression.complete_assessment(state.run_id, player.id)
                else:
                    await self._progression.apply_training_rating_progression(player.id, final_score)
                journal.post_processed = True

        self._event_bus.emit(
            SessionCompletedEvent(
                ts_ns_local=_now_ns(),
                run_id=state.run_id,
                session_score=final_score,
                routine_scores=routine_scores,
                is_assessment=state.is_assessment,
            )
        )
        return final_score
