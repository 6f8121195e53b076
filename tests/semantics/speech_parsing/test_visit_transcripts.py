"""
Semantic test: spoken visit parsing.

Invariant:
A transcript yields exactly visit_size canonical segments in spoken order, or
None. Any token outside the grammar rejects the whole utterance.
"""

from __future__ import annotations

import pytest

from darts_training.core.speech.parser import (
    parse_visit_from_transcript,
    tokenize,
    voice_text_to_segment,
)


@pytest.mark.parametrize(
    ("transcript", "expected"),
    [
        ("20, Treble 5, 1", ["S20", "T5", "S1"]),
        ("double 1 double 1 double 1", ["D1", "D1", "D1"]),
        ("s20 d16 t5", ["S20", "D16", "T5"]),
        ("treble20 triple 19 trouble 18", ["T20", "T19", "T18"]),
        ("twenty five, bull's eye, miss", ["25", "Bull", "M"]),
        ("eleven, twelve and thirteen", ["S11", "S12", "S13"]),
        ("bull bullseye 25", ["Bull", "Bull", "25"]),
    ],
)
def test_three_dart_utterances(transcript: str, expected: list[str]) -> None:
    assert parse_visit_from_transcript(transcript, "S20", 3) == expected


def test_repeated_digit_number_is_a_double() -> None:
    assert parse_visit_from_transcript("55 20 miss", "D5", 3) == ["D5", "S20", "M"]


def test_two_homophones_read_as_two() -> None:
    assert parse_visit_from_transcript("double to", "D2", 1) == ["D2"]
    assert parse_visit_from_transcript("treble too, tube, tune", "T2", 3) == ["T2", "S2", "S2"]


def test_number_words_are_not_repaired_as_repeated_digits() -> None:
    assert parse_visit_from_transcript("eleven", "S11", 1) == ["S11"]


def test_dropped_third_miss_is_padded() -> None:
    assert parse_visit_from_transcript("miss miss", "S20", 3) == ["M", "M", "M"]
    assert parse_visit_from_transcript("miss, miss", "S20", 2) == ["M", "M"]


@pytest.mark.parametrize(
    "transcript",
    [
        "20 20",
        "20 20 20 20",
        "banana",
        "20 banana 20",
        "double",
        "double 25",
        "21 1 1",
        "",
        "   ",
    ],
)
def test_wrong_arity_or_unknown_tokens_reject(transcript: str) -> None:
    assert parse_visit_from_transcript(transcript, "S20", 3) is None


def test_nonpositive_visit_size_rejects() -> None:
    assert parse_visit_from_transcript("20", "S20", 0) is None


def test_single_dart_helper() -> None:
    assert voice_text_to_segment("treble 20", "T20") == "T20"
    assert voice_text_to_segment("20 20", "S20") is None


def test_tokenize_drops_separators() -> None:
    assert tokenize("Twenty, and Double 5!") == ["twenty", "double", "5"]
