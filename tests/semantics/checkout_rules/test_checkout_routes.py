"""
Semantic test: recommended checkout routes.

Invariant:
Every finishable total from 2 to 170 has a route of at most three darts that
sums to the total and ends on a finishing segment; the bogey totals have none.
"""

from __future__ import annotations

from darts_training.core.domain.segments import is_finishing_segment, score_of
from darts_training.core.rules.checkout_routes import (
    COMMON_ROUTES,
    find_checkout_route,
    recommended_segment,
)

BOGEY_TOTALS = {159, 162, 163, 165, 166, 168, 169}


def test_routes_sum_to_total_and_finish_on_a_double() -> None:
    unroutable = set()
    for total in range(2, 171):
        route = find_checkout_route(total)
        if route is None:
            unroutable.add(total)
            continue
        assert 1 <= len(route) <= 3
        assert sum(score_of(seg) for seg in route) == total
        assert is_finishing_segment(route[-1])
    assert unroutable == BOGEY_TOTALS


def test_table_routes_take_precedence() -> None:
    for total, route in COMMON_ROUTES.items():
        assert find_checkout_route(total) == route
    assert find_checkout_route(170) == ("T20", "T20", "Bull")


def test_out_of_range_totals_have_no_route() -> None:
    assert find_checkout_route(1) is None
    assert find_checkout_route(171) is None


def test_recommended_segment_by_position() -> None:
    assert recommended_segment(40, 1) == "D20"
    assert recommended_segment(121, 2) == "T11"
    assert recommended_segment(170, 3) == "Bull"
    assert recommended_segment(40, 2) is None
    assert recommended_segment(40, 4) is None
    assert recommended_segment(169, 1) is None
