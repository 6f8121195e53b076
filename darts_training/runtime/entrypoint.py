from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from darts_training.adapters.memory import InMemoryProgression, InMemoryTrainingData
from darts_training.core.config.engine_config import EngineConfig
from darts_training.core.domain.errors import InvalidSegmentError, TrainingSessionError
from darts_training.core.domain.game_state import EndedState, InvalidState, RunningState
from darts_training.core.domain.types import Player
from darts_training.core.events.event_bus import EventBus
from darts_training.core.events.sinks.file_recorder import FileRecorderSink
from darts_training.core.events.sinks.sink_logging import LoggingEventSink
from darts_training.core.speech.transcript_source import ScriptedTranscriptSource
from darts_training.session.orchestrator import SessionOrchestrator

LOGGER = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _load_json(path: Path) -> Any:
    if not path.exists():
        raise FileNotFoundError(path)
    return json.loads(path.read_text(encoding="utf-8"))


def _load_visits(path: Path) -> list[list[str] | str]:
    """
    Visits file: a JSON list whose entries are either a list of segment
    codes (manual entry) or a string (an utterance for the speech parser).
    """
    raw = _load_json(path)
    if not isinstance(raw, list):
        raise ValueError(f"{path}: expected a JSON list of visits")
    visits: list[list[str] | str] = []
    for index, entry in enumerate(raw):
        if isinstance(entry, str):
            visits.append(entry)
        elif isinstance(entry, list) and all(isinstance(seg, str) for seg in entry):
            visits.append(list(entry))
        else:
            raise ValueError(f"{path}: visit {index} must be a string or a list of strings")
    return visits


def _build_event_bus(events_path: Path | None) -> EventBus:
    bus = EventBus([LoggingEventSink(logging.getLogger("session.events"), level=logging.DEBUG)])
    if events_path is not None:
        bus.register(FileRecorderSink(events_path))
    return bus


def _summary(orchestrator: SessionOrchestrator, data: InMemoryTrainingData, bus: EventBus) -> dict[str, Any]:
    state = orchestrator.state
    summary: dict[str, Any] = {
        "phase": state.phase,
        "darts_recorded": len(data.dart_scores),
        "events": bus.emitted,
        "summary_url": orchestrator.get_summary_url(),
    }
    if isinstance(state, EndedState):
        summary.update(
            run_id=state.run_id,
            session_name=state.session_name,
            session_score=round(state.final_session_score, 2),
            routine_scores=[round(score, 2) for score in state.routine_scores],
        )
    elif isinstance(state, InvalidState):
        summary.update(message=state.message, redirect=orchestrator.get_redirect_href())
    elif isinstance(state, RunningState):
        summary.update(
            run_id=state.run_id,
            routine_no=state.routine_index + 1,
            step_no=state.current_step.step_no,
            attempt_index=state.attempt_index,
        )
    return summary


def _enter_visit(orchestrator: SessionOrchestrator, visit: list[str] | str, source: ScriptedTranscriptSource) -> bool:
    if isinstance(visit, str):
        # Voice visits go through the transcript source like a recognizer would.
        source.push(visit)
        if orchestrator.apply_next_transcript(source) is None:
            LOGGER.warning("utterance not understood: %r", visit)
            return False
        return True
    try:
        return orchestrator.set_visit_from_segments(visit)
    except InvalidSegmentError as exc:
        LOGGER.warning("%s", exc)
        return False


async def _run(args: argparse.Namespace) -> dict[str, Any]:
    fixture = _load_json(args.fixture)
    if not isinstance(fixture, dict) or "player" not in fixture:
        raise ValueError(f"{args.fixture}: fixture needs a \"player\" object")
    player = Player.model_validate(fixture["player"])
    data = InMemoryTrainingData.from_json_obj(fixture.get("data", {}))
    progression = InMemoryProgression()
    config = EngineConfig.from_file(args.config) if args.config is not None else EngineConfig()
    visits = _load_visits(args.visits)

    with _build_event_bus(args.events_path) as bus:
        orchestrator = SessionOrchestrator(
            data=data,
            progression=progression,
            player=player,
            config=config,
            event_bus=bus,
        )

        if args.run_id is not None:
            await orchestrator.load_free_run(args.run_id)
        else:
            await orchestrator.load_session(args.calendar_id)

        if orchestrator.phase != "ready":
            return _summary(orchestrator, data, bus)

        await orchestrator.start_resume()

        source = ScriptedTranscriptSource([])
        for number, visit in enumerate(visits, start=1):
            if orchestrator.phase != "running":
                LOGGER.info("session ended; %d visit(s) left unused", len(visits) - number + 1)
                break
            if not _enter_visit(orchestrator, visit, source):
                continue
            # Entries accumulate until the visit (or checkout attempt) is complete.
            if await orchestrator.submit_visit() is None:
                LOGGER.debug("entry %d added; visit still open", number)

        return _summary(orchestrator, data, bus)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Replay a darts training session against an in-memory data fixture"
    )

    parser.add_argument(
        "--fixture",
        type=Path,
        required=True,
        help='JSON file with {"player": {...}, "data": {...}}.',
    )

    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument(
        "--calendar-id",
        help="Scheduled session (calendar entry) to play.",
    )
    target.add_argument(
        "--run-id",
        help="Free-training run to play.",
    )

    parser.add_argument(
        "--visits",
        type=Path,
        required=True,
        help="JSON list of visits: segment lists or spoken utterances.",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional EngineConfig JSON file.",
    )

    parser.add_argument(
        "--events-path",
        type=Path,
        default=None,
        help="Append session events as JSON lines to this file.",
    )

    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level.",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        summary = asyncio.run(_run(args))
    except (FileNotFoundError, ValueError, TrainingSessionError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    print(json.dumps(summary, indent=2))
    return 0 if summary["phase"] == "ended" else 1


if __name__ == "__main__":
    sys.exit(main())
