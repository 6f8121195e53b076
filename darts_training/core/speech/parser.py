"""Speech-to-segment parser.

Maps one recognized utterance (a full visit, e.g. ``"20, treble 5, 1"`` or
``"double 1 double 1 double 1"``) to exactly ``visit_size`` canonical segment
codes in spoken order, or to ``None`` when it cannot do so with confidence.

Grammar:
- declarations are separated by commas, the word "and", or whitespace,
- ``single``/``double``/``treble`` (also ``triple``/``trouble``) + number,
  or compact codes such as ``S20``, ``d16``, ``t5``,
- bare numbers 1-20 are singles; ``25``/"twenty five" is the outer bull;
  ``bull``/``bullseye`` is the inner bull; ``miss`` is a miss,
- number words one..twenty are read as digits.

Recognizer artifacts that are repaired:
- "to"/"too"/"tube"/"tune" read as "two" wherever a number is expected,
- a bare repeated-digit number ("55") is "double <digit>",
- "miss miss" for a 3-dart visit is padded to three misses.

Any token outside this grammar rejects the whole utterance. The parser is
pure; the transcript itself comes from a pluggable TranscriptSource.
"""

from __future__ import annotations

import logging
import re

from darts_training.core.domain.segments import (
    SEGMENT_BULL,
    SEGMENT_MISS,
    SEGMENT_OUTER_BULL,
)

LOGGER = logging.getLogger(__name__)

_MULTIPLIERS: dict[str, str] = {
    "single": "S",
    "double": "D",
    "treble": "T",
    "triple": "T",
    "trouble": "T",
}

_TWO_HOMOPHONES: frozenset[str] = frozenset({"to", "too", "tube", "tune"})

_NUMBER_WORDS: dict[str, str] = {
    "one": "1",
    "two": "2",
    "three": "3",
    "four": "4",
    "five": "5",
    "six": "6",
    "seven": "7",
    "eight": "8",
    "nine": "9",
    "ten": "10",
    "eleven": "11",
    "twelve": "12",
    "thirteen": "13",
    "fourteen": "14",
    "fifteen": "15",
    "sixteen": "16",
    "seventeen": "17",
    "eighteen": "18",
    "nineteen": "19",
    "twenty": "20",
}

_SEPARATOR_WORDS: frozenset[str] = frozenset({"and"})

_TWENTY_FIVE_RE = re.compile(r"\btwenty[- ]five\b")
_BULLSEYE_RE = re.compile(r"\bbull'?s[- ]?eye\b")
_GLUED_MULTIPLIER_RE = re.compile(r"\b(single|double|treble|triple|trouble)(\d)")
_PUNCTUATION_RE = re.compile(r"[,.!?;:]")
_COMPACT_RE = re.compile(r"^([sdt])(\d{1,2})$")
_NUMBER_RE = re.compile(r"^\d{1,2}$")
_REPEATED_DIGIT_RE = re.compile(r"^([1-9])\1$")


def tokenize(transcript: str) -> list[str]:
    """Lower-case word tokens with separators removed."""
    s = transcript.lower()
    s = _TWENTY_FIVE_RE.sub("25", s)
    s = _BULLSEYE_RE.sub("bullseye", s)
    s = _GLUED_MULTIPLIER_RE.sub(r"\1 \2", s)
    s = _PUNCTUATION_RE.sub(" ", s)
    return [tok for tok in s.split() if tok not in _SEPARATOR_WORDS]


def _as_number(token: str) -> int | None:
    if token in _TWO_HOMOPHONES:
        return 2
    if token in _NUMBER_WORDS:
        return int(_NUMBER_WORDS[token])
    if _NUMBER_RE.match(token):
        return int(token)
    return None


def _standalone_segment(token: str) -> str | None:
    if token == "miss":
        return SEGMENT_MISS
    if token in {"bull", "bullseye"}:
        return SEGMENT_BULL
    if token == "25":
        return SEGMENT_OUTER_BULL

    compact = _COMPACT_RE.match(token)
    if compact is not None:
        n = int(compact.group(2))
        return f"{compact.group(1).upper()}{n}" if 1 <= n <= 20 else None

    repeated = _REPEATED_DIGIT_RE.match(token)
    if repeated is not None:
        return f"D{repeated.group(1)}"

    n = _as_number(token)
    if n is not None and 1 <= n <= 20:
        return f"S{n}"
    return None


def _read_segments(tokens: list[str]) -> list[str] | None:
    segments: list[str] = []
    i = 0
    while i < len(tokens):
        token = tokens[i]

        if token in _MULTIPLIERS:
            if i + 1 >= len(tokens):
                LOGGER.debug("speech parse: multiplier %r without a number", token)
                return None
            n = _as_number(tokens[i + 1])
            if n is None or not 1 <= n <= 20:
                LOGGER.debug("speech parse: %r %r is not a segment", token, tokens[i + 1])
                return None
            segments.append(f"{_MULTIPLIERS[token]}{n}")
            i += 2
            continue

        segment = _standalone_segment(token)
        if segment is None:
            LOGGER.debug("speech parse: unrecognized token %r", token)
            return None
        segments.append(segment)
        i += 1

    return segments


def parse_visit_from_transcript(
    transcript: str,
    step_target: str,
    visit_size: int,
) -> list[str] | None:
    """Parse a full-visit utterance into exactly ``visit_size`` segment codes.

    Returns None when the utterance is empty, contains an unrecognized token,
    or yields a different number of segments.
    """
    if not isinstance(transcript, str) or not transcript.strip() or visit_size <= 0:
        return None

    tokens = tokenize(transcript)
    segments = _read_segments(tokens)
    if segments is None:
        return None

    # Recognizers tend to drop one of three repeated "miss" words.
    if visit_size == 3 and segments == [SEGMENT_MISS, SEGMENT_MISS] and tokens == ["miss", "miss"]:
        segments.append(SEGMENT_MISS)

    if len(segments) != visit_size:
        LOGGER.debug(
            "speech parse: %r gave %d segments, expected %d (target %s)",
            transcript,
            len(segments),
            visit_size,
            step_target,
        )
        return None

    LOGGER.debug("speech parse: %r -> %s (target %s)", transcript, segments, step_target)
    return segments


def voice_text_to_segment(text: str, step_target: str) -> str | None:
    """Parse a single-dart utterance; None when not exactly one segment."""
    segments = parse_visit_from_transcript(text, step_target, 1)
    return segments[0] if segments else None
