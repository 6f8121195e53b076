"""Expected-performance baselines.

Reference formulas behind the expectation lookups of the data service:

- expected hits for accuracy drills: darts x accuracy for the routine type,
- expected checkout successes: probability of reaching the double range
  (logistic on available scoring darts vs. darts needed) times the probability
  of hitting a double with the darts left, times the number of attempts.
"""

# pylint: disable=too-many-locals
from __future__ import annotations

import logging
import math

from darts_training.core.domain.types import ExpectedCheckout, LevelAverage, RoutineType

LOGGER = logging.getLogger(__name__)

# Steepness of the reach-probability logistic.
K_REACH: float = 3.0
# Largest remainder that is a one-dart double finish.
DOUBLE_RANGE: int = 40


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def expected_hits(level_average: LevelAverage, routine_type: RoutineType, dart_count: int) -> float | None:
    """Expected hits for ``dart_count`` darts at an accuracy drill, to 2 decimals."""
    accuracy = {
        "SS": level_average.single_acc_pct,
        "SD": level_average.double_acc_pct,
        "ST": level_average.treble_acc_pct,
    }.get(routine_type)
    if accuracy is None:
        return None
    return _round_half_up(dart_count * accuracy) / 100.0


def compute_expected_checkout_successes(
    level_average: LevelAverage,
    target: int,
    allowed_throws_per_attempt: int = 9,
    attempt_count: int = 9,
) -> ExpectedCheckout:
    """Expected number of successful checkouts of ``target`` over all attempts."""
    # Points to score before the double range.
    points_to_range = max(target - DOUBLE_RANGE, 0)
    points_per_dart = level_average.three_dart_avg / 3.0
    darts_to_range = 0.0 if points_to_range == 0 else points_to_range / points_per_dart

    scoring_darts = allowed_throws_per_attempt - 1
    if darts_to_range == 0:
        p_reach = 1.0
    else:
        ratio = scoring_darts / darts_to_range
        p_reach = 1.0 / (1.0 + math.exp(-K_REACH * (ratio - 1.0)))

    darts_at_double = _round_half_up(allowed_throws_per_attempt - min(darts_to_range, scoring_darts))
    darts_at_double = max(1, min(darts_at_double, allowed_throws_per_attempt))

    p_double = (level_average.double_acc_pct or 0.0) / 100.0
    p_finish_given_reach = 1.0 - (1.0 - p_double) ** darts_at_double
    p_checkout = p_reach * p_finish_given_reach

    expected = attempt_count * p_checkout
    expected_int = max(0, min(_round_half_up(expected), attempt_count))

    LOGGER.debug(
        "checkout expectation target=%s W=%s E=%.3f P_reach=%.3f n=%s P_checkout=%.3f expected=%.3f",
        target,
        points_to_range,
        darts_to_range,
        p_reach,
        darts_at_double,
        p_checkout,
        expected,
    )

    return ExpectedCheckout(expected_successes=expected, expected_successes_int=expected_int)
