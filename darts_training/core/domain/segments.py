"""Canonical dart segment codes.

A segment identifies where one dart landed: ``S1``..``S20``, ``D1``..``D20``,
``T1``..``T20``, the outer bull ``25``, the inner ``Bull`` and ``M`` (miss).
The same codes are used for manual grid input, voice input and for the
``actual`` field of persisted dart records.

All functions in this module are total over strings: unrecognized input
never raises, except in :func:`parse_segment` which is the strict variant.
"""

from __future__ import annotations

import re

from darts_training.core.domain.errors import InvalidSegmentError

SEGMENT_MISS: str = "M"
SEGMENT_OUTER_BULL: str = "25"
SEGMENT_BULL: str = "Bull"

SINGLES: tuple[str, ...] = tuple(f"S{n}" for n in range(1, 21))
DOUBLES: tuple[str, ...] = tuple(f"D{n}" for n in range(1, 21))
TREBLES: tuple[str, ...] = tuple(f"T{n}" for n in range(1, 21))

# Grid order: Singles, Doubles, Trebles, 25, Bull, Miss
ALL_SEGMENT_CODES: tuple[str, ...] = (
    *SINGLES,
    *DOUBLES,
    *TREBLES,
    SEGMENT_OUTER_BULL,
    SEGMENT_BULL,
    SEGMENT_MISS,
)

_ALL_SEGMENT_SET: frozenset[str] = frozenset(ALL_SEGMENT_CODES)

SEGMENT_GROUPS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Singles", SINGLES),
    ("Doubles", DOUBLES),
    ("Trebles", TREBLES),
    ("25 / Bull", (SEGMENT_OUTER_BULL, SEGMENT_BULL)),
    ("Miss", (SEGMENT_MISS,)),
)

_SINGLE_RE = re.compile(r"^(?:single\s*|s)(\d{1,2})$", re.IGNORECASE)
_DOUBLE_RE = re.compile(r"^(?:double\s*|d)(\d{1,2})$", re.IGNORECASE)
_TREBLE_RE = re.compile(r"^(?:treble\s*|triple\s*|trouble\s*|t)(\d{1,2})$", re.IGNORECASE)

_CANONICAL_RE = re.compile(r"^([SDT])(\d{1,2})$")


def normalize_segment(text: object) -> str:
    """Map a segment variant to its canonical code.

    ``"single 20"`` -> ``S20``, ``"d16"`` -> ``D16``, ``"Triple 5"`` -> ``T5``,
    ``"MISS"`` -> ``M``, ``"bullseye"`` -> ``Bull``.

    Unrecognized text is returned trimmed but otherwise unchanged; non-string
    or blank input yields ``""``. The function is idempotent.
    """
    if not isinstance(text, str):
        return ""
    s = text.strip()
    if not s:
        return ""
    if s == SEGMENT_MISS or s.upper() == "MISS":
        return SEGMENT_MISS
    if s == SEGMENT_OUTER_BULL:
        return SEGMENT_OUTER_BULL
    if s == SEGMENT_BULL or s.lower() in {"bull", "bullseye"}:
        return SEGMENT_BULL

    for prefix, pattern in (("S", _SINGLE_RE), ("D", _DOUBLE_RE), ("T", _TREBLE_RE)):
        match = pattern.match(s)
        if match is not None:
            return prefix + str(int(match.group(1)))

    return s


def is_valid_segment(code: object) -> bool:
    """Return True if ``code`` is one of the canonical segment codes."""
    return isinstance(code, str) and code in _ALL_SEGMENT_SET


def parse_segment(text: object) -> str:
    """Strict normalization: return a canonical code or raise InvalidSegmentError."""
    code = normalize_segment(text)
    if not is_valid_segment(code):
        raise InvalidSegmentError(text)
    return code


def score_of(segment: object) -> int:
    """Point value of a segment.

    S1..S20 -> 1..20, D1..D20 -> 2..40, T1..T20 -> 3..60, 25 -> 25,
    Bull -> 50. Miss, blank and unrecognized input score 0.
    """
    s = normalize_segment(segment)
    if not s or s == SEGMENT_MISS:
        return 0
    if s == SEGMENT_OUTER_BULL:
        return 25
    if s == SEGMENT_BULL:
        return 50

    match = _CANONICAL_RE.match(s)
    if match is None:
        return 0

    kind, n = match.group(1), int(match.group(2))
    if kind == "S":
        return min(20, max(1, n))
    if kind == "D":
        return min(40, max(2, n * 2))
    return min(60, max(3, n * 3))


def is_finishing_segment(segment: object) -> bool:
    """Return True for a legal checkout dart: Double 1-20 or the inner Bull."""
    s = normalize_segment(segment)
    if s == SEGMENT_BULL:
        return True
    match = _CANONICAL_RE.match(s)
    if match is None or match.group(1) != "D":
        return False
    return 1 <= int(match.group(2)) <= 20


def is_hit_for_target(actual: object, target: object) -> bool:
    """Return True if ``actual`` counts as a hit on an accuracy step ``target``."""
    actual_norm = normalize_segment(actual)
    return bool(actual_norm) and actual_norm == normalize_segment(target)


def segment_to_spoken(code: object) -> str:
    """Spoken form used for prompts (``S20`` -> ``"Single 20"``)."""
    return _spoken(code, short=False)


def segment_to_short_spoken(code: object) -> str:
    """Short spoken form for visit read-back (``S20`` -> ``"20"``, ``T5`` -> ``"Treble 5"``)."""
    return _spoken(code, short=True)


def _spoken(code: object, *, short: bool) -> str:
    s = normalize_segment(code)
    if not s:
        return ""
    if s == SEGMENT_MISS:
        return "Miss"
    if s in {SEGMENT_OUTER_BULL, SEGMENT_BULL}:
        return s

    match = _CANONICAL_RE.match(s)
    if match is None:
        return s

    kind, n = match.group(1), match.group(2)
    if kind == "S":
        return n if short else f"Single {n}"
    if kind == "D":
        return f"Double {n}"
    return f"Treble {n}"
