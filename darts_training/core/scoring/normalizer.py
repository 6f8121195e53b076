"""Scoring normalizer.

Turns raw outcomes into percentages that are comparable across players of
different skill:

- round score: hits against the hits expected at the player's level,
- step score: checkout successes against expected successes (capped at 200),
- routine / session score: means of the level below.

Scores may exceed 100%. All functions are pure.
"""

from __future__ import annotations

from collections.abc import Sequence

MAX_CHECKOUT_SCORE: float = 200.0


def round_score(hits: float, expected_hits: float) -> float:
    """Round score as ``hits / expected_hits * 100``.

    An expectation of 0 means any hit scores 100; a negative expectation is
    invalid and scores 0.
    """
    if expected_hits < 0:
        return 0.0
    if expected_hits == 0:
        return 100.0 if hits > 0 else 0.0
    return (hits / expected_hits) * 100.0


def hit_rate(hits: int, darts_thrown: int) -> float:
    """Straight hit percentage, used for initial-assessment sessions."""
    if darts_thrown <= 0:
        return 0.0
    return (hits / darts_thrown) * 100.0


def step_score(expected_successes_int: int, actual_successes: int) -> float:
    """Checkout step score, capped at 200.

    With an expectation of 0: no success scores 100, any success scores 200.
    """
    if expected_successes_int == 0:
        return 100.0 if actual_successes == 0 else MAX_CHECKOUT_SCORE
    raw = (actual_successes / expected_successes_int) * 100.0
    return min(raw, MAX_CHECKOUT_SCORE)


def routine_score(scores: Sequence[float]) -> float:
    """Mean of round or step scores; empty -> 0."""
    if not scores:
        return 0.0
    return sum(scores) / len(scores)


def checkout_routine_score(step_scores: Sequence[float]) -> float:
    """Routine score from per-step scores, capped at 200."""
    if not step_scores:
        return 0.0
    return min(routine_score(step_scores), MAX_CHECKOUT_SCORE)


def session_score(routine_scores: Sequence[float]) -> float:
    """Session score: mean of routine scores; empty -> 0."""
    if not routine_scores:
        return 0.0
    return sum(routine_scores) / len(routine_scores)


def level_change_from_session_score(session_score_pct: float) -> int:
    """Training-rating change for a finished session.

    <50% -> -1, 50-99% -> 0, 100-199% -> +1, 200-299% -> +2, >=300% -> +3.
    """
    if session_score_pct < 50:
        return -1
    if session_score_pct < 100:
        return 0
    if session_score_pct < 200:
        return 1
    if session_score_pct < 300:
        return 2
    return 3
