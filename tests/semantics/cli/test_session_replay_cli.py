"""
Semantic test: session replay command line.

Invariant:
The replay command plays a fixture session from recorded visits (segment
lists or utterances), prints a JSON summary, and exits 0 only when the
session ended.
"""

# pylint: disable=redefined-outer-name
from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from darts_training.runtime.entrypoint import main

FIXTURE: dict[str, Any] = {
    "player": {
        "id": "p1",
        "baseline_rating": 25,
        "assessment_completed_at": "2026-01-05T00:00:00Z",
    },
    "data": {
        "routines": [
            {"routine": {"id": "r1", "name": "Twenties"}, "steps": [{"step_no": 1, "target": "S20"}]},
            {
                "routine": {"id": "r2", "name": "Forty"},
                "steps": [{"step_no": 1, "target": "40", "routine_type": "C"}],
            },
        ],
        "sessions": [
            {
                "session": {"id": "s1", "name": "Week 1"},
                "routines": [{"routine_id": "r1", "routine_no": 1}, {"routine_id": "r2", "routine_no": 2}],
            }
        ],
        "calendar": [{"id": "c1", "session_id": "s1"}],
        "player_sessions": {"p1": [{"calendar_id": "c1", "session_id": "s1"}]},
        "player_calendar": [{"id": "pc1", "player_id": "p1", "calendar_id": "c1"}],
        "level_requirements": [
            {"min_level": 0, "routine_type": "SS", "tgt_hits": 1, "darts_allowed": 3},
            {
                "min_level": 0,
                "routine_type": "C",
                "tgt_hits": 1,
                "darts_allowed": 3,
                "attempt_count": 1,
                "allowed_throws_per_attempt": 3,
            },
        ],
        "level_averages": [
            {
                "level_min": 0,
                "level_max": 99,
                "three_dart_avg": 45,
                "single_acc_pct": 33.33,
                "double_acc_pct": 20,
            }
        ],
    },
}


@pytest.fixture
def fixture_path(tmp_path: Path) -> Path:
    path = tmp_path / "fixture.json"
    path.write_text(json.dumps(FIXTURE), encoding="utf-8")
    return path


def _write(tmp_path: Path, name: str, obj: Any) -> Path:
    path = tmp_path / name
    path.write_text(json.dumps(obj), encoding="utf-8")
    return path


def test_replay_to_the_end(
    tmp_path: Path,
    fixture_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    visits = _write(tmp_path, "visits.json", ["banana", "20, 20, miss", ["D20"]])
    events = tmp_path / "events.jsonl"

    code = main(
        [
            "--fixture", str(fixture_path),
            "--calendar-id", "c1",
            "--visits", str(visits),
            "--events-path", str(events),
        ]
    )

    summary = json.loads(capsys.readouterr().out)
    assert code == 0
    assert summary["phase"] == "ended"
    assert summary["darts_recorded"] == 4
    # Two hits against one expected, then a checkout beyond a zero expectation.
    assert summary["routine_scores"] == [200.0, 200.0]
    assert summary["session_score"] == 200.0
    assert summary["summary_url"] == "/play/session/c1/summary"

    event_types = [json.loads(line)["event_type"] for line in events.read_text(encoding="utf-8").splitlines()]
    assert event_types.count("DartRecordedEvent") == 4
    assert event_types[-1] == "PhaseTransitionEvent"
    assert "SessionCompletedEvent" in event_types
    assert summary["events"]["DartRecordedEvent"] == 4
    assert summary["events"]["RoutineScoredEvent"] == 2


def test_unfinished_replay_reports_position(
    tmp_path: Path,
    fixture_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    visits = _write(tmp_path, "visits.json", [["S20", "S20", "S20"]])

    code = main(["--fixture", str(fixture_path), "--calendar-id", "c1", "--visits", str(visits)])

    summary = json.loads(capsys.readouterr().out)
    assert code == 1
    assert summary["phase"] == "running"
    assert summary["routine_no"] == 2
    assert summary["attempt_index"] == 1


def test_unknown_session_is_reported(
    tmp_path: Path,
    fixture_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    visits = _write(tmp_path, "visits.json", [])

    code = main(["--fixture", str(fixture_path), "--calendar-id", "nope", "--visits", str(visits)])

    summary = json.loads(capsys.readouterr().out)
    assert code == 1
    assert summary["phase"] == "invalid"
    assert summary["message"] == "Session not found or you don't have access to it."


def test_missing_files_exit_with_usage_error(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    code = main(
        [
            "--fixture", str(tmp_path / "missing.json"),
            "--calendar-id", "c1",
            "--visits", str(tmp_path / "visits.json"),
        ]
    )

    assert code == 2
    assert "Error:" in capsys.readouterr().err
