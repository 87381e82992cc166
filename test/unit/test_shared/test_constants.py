"""
Tests for shared constants.
"""

from doodlehub.shared import constants as C


def test_constants_import():
    assert isinstance(C.DEFAULT_REGISTRY_PORT, int)
    assert C.MIN_PLAYERS == 2
    assert C.MAX_PLAYERS > C.MIN_PLAYERS


def test_room_code_alphabet_has_no_ambiguous_characters():
    assert len(C.ROOM_CODE_ALPHABET) == 32
    for ch in "IO01":
        assert ch not in C.ROOM_CODE_ALPHABET
    assert C.ROOM_CODE_LENGTH == 6


def test_game_policy_values():
    assert C.WORD_SELECT_TIME == 15
    assert C.ROUND_END_DELAY == 4
    assert C.DRAWER_BONUS == 25
    assert C.CLOSE_GUESS_THRESHOLD == 0.8
    assert C.FILL_TOLERANCE == 32
    assert C.UNDO_DEPTH == 20
