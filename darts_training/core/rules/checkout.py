"""Checkout rules engine.

Classic double-out rules for a numeric checkout target: the remainder must
reach exactly zero and the dart that reaches zero must be a finishing
segment (any double or the inner bull). Leaving 1, going below zero, or
reaching zero on a non-finishing dart busts the attempt.

The functions are pure and never raise. A target that cannot be parsed as
an integer is treated as 0 remaining.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from darts_training.core.domain.segments import (
    SEGMENT_MISS,
    is_finishing_segment,
    score_of,
)

BustReason = Literal["over", "one", "invalid_finish"]

BUST_OVER: BustReason = "over"
BUST_ONE: BustReason = "one"
BUST_INVALID_FINISH: BustReason = "invalid_finish"


@dataclass(slots=True)
class CheckoutOutcome:
    """Result of replaying one checkout attempt."""

    remaining: int
    bust_reason: BustReason | None
    # Index of the dart that validly finished the attempt, if any.
    finish_dart_index: int | None
    darts_thrown: int

    @property
    def finished(self) -> bool:
        return self.finish_dart_index is not None

    @property
    def resolved(self) -> bool:
        """True once no further dart can change the outcome."""
        return self.finished or self.bust_reason is not None


def parse_checkout_target(target: int | str | None) -> int | None:
    """Parse a checkout target (``"121"`` -> ``121``); None when not an integer."""
    if target is None or isinstance(target, bool):
        return None
    if isinstance(target, int):
        return target
    try:
        return int(str(target).strip(), 10)
    except ValueError:
        return None


def _target_or_zero(target: int | str | None) -> int:
    parsed = parse_checkout_target(target)
    return 0 if parsed is None else parsed


def compute_remaining(target: int | str | None, thrown: Sequence[str | None]) -> int:
    """Target minus the summed dart scores, floored at 0.

    This is the display value; it does not by itself indicate a bust.
    """
    scored = sum(score_of(seg if seg is not None else SEGMENT_MISS) for seg in thrown)
    return max(0, _target_or_zero(target) - scored)


def evaluate_attempt(target: int | str | None, thrown: Sequence[str | None]) -> CheckoutOutcome:
    """Replay darts cumulatively and stop at the first terminal condition."""
    remaining = _target_or_zero(target)

    for index, actual in enumerate(thrown):
        segment = actual if actual is not None else SEGMENT_MISS
        remaining -= score_of(segment)

        if remaining < 0:
            return CheckoutOutcome(0, BUST_OVER, None, len(thrown))
        if remaining == 1:
            return CheckoutOutcome(1, BUST_ONE, None, len(thrown))
        if remaining == 0:
            if is_finishing_segment(segment):
                return CheckoutOutcome(0, None, index, len(thrown))
            return CheckoutOutcome(0, BUST_INVALID_FINISH, None, len(thrown))

    return CheckoutOutcome(max(0, remaining), None, None, len(thrown))


def compute_bust_reason(
    target: int | str | None,
    thrown: Sequence[str | None],
) -> BustReason | None:
    """Return why the attempt busted, or None if it has not (or finished validly)."""
    return evaluate_attempt(target, thrown).bust_reason


def checkout_dart_index(target: int | str | None, thrown: Sequence[str | None]) -> int | None:
    """Index of the dart that achieved a valid finish; None when there is none."""
    return evaluate_attempt(target, thrown).finish_dart_index


def is_early_finish(
    target: int | str | None,
    thrown: Sequence[str | None],
    allowance: int,
) -> bool:
    """True when fewer than ``allowance`` darts validly finished the target."""
    if parse_checkout_target(target) is None:
        return False
    if not thrown or len(thrown) >= allowance:
        return False
    return evaluate_attempt(target, thrown).finished
