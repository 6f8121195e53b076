"""Recommended checkout routes.

Provides the "recommended next segment" reference lookup used to label
persisted checkout darts with the aim a player at that remainder should
have taken. The route table is consulted first; otherwise the shortest
1-3 dart route ending on a double (or Bull) is searched, preferring
treble set-up darts.
"""

from __future__ import annotations

from functools import lru_cache

from darts_training.core.domain.segments import (
    DOUBLES,
    SEGMENT_BULL,
    SEGMENT_OUTER_BULL,
    SINGLES,
    TREBLES,
    score_of,
)

MIN_CHECKOUT_TOTAL: int = 2
MAX_CHECKOUT_TOTAL: int = 170

# Routes that the exhaustive search would otherwise pick differently.
COMMON_ROUTES: dict[int, tuple[str, ...]] = {
    170: ("T20", "T20", "Bull"),
    167: ("T20", "T19", "Bull"),
    164: ("T20", "T18", "Bull"),
    161: ("T20", "T17", "Bull"),
    160: ("T20", "T20", "D20"),
    158: ("T20", "T20", "D19"),
    157: ("T20", "T19", "D20"),
    156: ("T20", "T20", "D18"),
    155: ("T20", "T19", "D19"),
    154: ("T20", "T18", "D20"),
    153: ("T20", "T19", "D18"),
    152: ("T20", "T20", "D16"),
    151: ("T20", "T17", "D20"),
    150: ("T20", "T18", "D18"),
    121: ("T20", "T11", "D14"),
    100: ("T20", "D20"),
    81: ("T19", "D12"),
    61: ("T15", "D8"),
    50: ("Bull",),
    40: ("D20",),
    32: ("D16",),
}

_FINISHERS: tuple[str, ...] = (*reversed(DOUBLES), SEGMENT_BULL)
_SETUP: tuple[str, ...] = (
    *reversed(TREBLES),
    SEGMENT_BULL,
    SEGMENT_OUTER_BULL,
    *reversed(SINGLES),
    *reversed(DOUBLES),
)


@lru_cache(maxsize=None)
def find_checkout_route(total: int) -> tuple[str, ...] | None:
    """Return a 1-3 dart route for ``total`` ending on a finishing segment."""
    if total < MIN_CHECKOUT_TOTAL or total > MAX_CHECKOUT_TOTAL:
        return None
    if total in COMMON_ROUTES:
        return COMMON_ROUTES[total]

    for finisher in _FINISHERS:
        if score_of(finisher) == total:
            return (finisher,)

    for first in _SETUP:
        for finisher in _FINISHERS:
            if score_of(first) + score_of(finisher) == total:
                return (first, finisher)

    for first in _SETUP:
        for second in _SETUP:
            required = total - score_of(first) - score_of(second)
            if required <= 0:
                continue
            for finisher in _FINISHERS:
                if score_of(finisher) == required:
                    return (first, second, finisher)

    return None


def recommended_segment(total: int, position: int) -> str | None:
    """Recommended aim for the dart at ``position`` (1-3) with ``total`` remaining."""
    if position < 1 or position > 3:
        return None
    route = find_checkout_route(total)
    if route is None:
        return None
    if len(route) < position:
        return None
    return route[position - 1]
