"""
Tests for guess evaluation and scoring.
"""

import pytest

from doodlehub.game.scoring import (
    GuessKind,
    evaluate_guess,
    levenshtein,
    similarity,
    time_bonus,
)


@pytest.mark.parametrize(
    "a,b,expected",
    [("", "", 0), ("cat", "cat", 0), ("kat", "cat", 1), ("kitten", "sitting", 3), ("", "abc", 3)],
)
def test_levenshtein(a, b, expected):
    assert levenshtein(a, b) == expected
    assert levenshtein(b, a) == expected


def test_similarity_bounds_and_symmetry():
    assert similarity("", "") == 1.0
    assert similarity("abc", "abc") == 1.0
    assert similarity("abc", "xyz") == 0.0
    assert similarity("elephant", "elephnat") == similarity("elephnat", "elephant")


def test_time_bonus():
    assert time_bonus(40, 80) == 250
    assert time_bonus(80, 80) == 500
    assert time_bonus(1, 80) == 50
    assert time_bonus(0, 80) == 50


def test_exact_guess_is_case_and_space_insensitive():
    result = evaluate_guess("  CaT ", "cat", 40, 80)
    assert result.kind is GuessKind.CORRECT
    assert result.correct
    assert result.score == 250


def test_short_word_typo_is_a_miss():
    # (3 - 1) / 3 is below the close threshold
    result = evaluate_guess("kat", "cat", 40, 80)
    assert result.kind is GuessKind.MISS
    assert result.score == 0


def test_close_guess():
    result = evaluate_guess("elephnt", "elephant", 40, 80)
    assert result.kind is GuessKind.CLOSE
    assert not result.correct
    assert result.score == 0


def test_multi_word_answer():
    assert evaluate_guess("ice cream", "ice cream", 10, 80).correct
