"""
Semantic test: training-rating progression bands.

Invariant:
A finished session moves the training rating by -1, 0, +1, +2 or +3
depending on the band its session score falls in.
"""

from __future__ import annotations

import pytest

from darts_training.core.scoring.normalizer import level_change_from_session_score


@pytest.mark.parametrize(
    ("score", "change"),
    [
        (0.0, -1),
        (49.99, -1),
        (50.0, 0),
        (99.9, 0),
        (100.0, 1),
        (199.0, 1),
        (200.0, 2),
        (299.0, 2),
        (300.0, 3),
        (450.0, 3),
    ],
)
def test_bands(score: float, change: int) -> None:
    assert level_change_from_session_score(score) == change
