"""
Tests for the word bank.
"""

import json
import random

from doodlehub.game import words as words_module
from doodlehub.game.models import Settings
from doodlehub.game.session import GameSession
from doodlehub.game.words import FALLBACK_WORDS, WORDS_PATH, WordBank


def test_bundled_word_list_loads():
    assert WORDS_PATH.exists()
    bank = WordBank.load()
    assert "english" in bank.languages
    assert len(bank.pool("english")) >= 30


def test_missing_file_falls_back(tmp_path):
    bank = WordBank.load(tmp_path / "nope.json")
    assert bank.pool("english") == WordBank(FALLBACK_WORDS).pool("english")


def test_corrupt_file_falls_back(tmp_path):
    path = tmp_path / "words.json"
    path.write_text("{not json", encoding="utf-8")
    assert WordBank.load(path).languages == ["english"]


def test_pool_merges_tiers(word_bank):
    pool = word_bank.pool("english")
    assert "cat" in pool and "rainbow" in pool and "lighthouse" in pool


def test_unknown_language_uses_default(word_bank):
    assert word_bank.pool("klingon") == word_bank.pool("english")


def test_candidates_are_distinct_and_sized(word_bank):
    words = word_bank.candidates(Settings(word_choices=3), random.Random(1))
    assert len(words) == 3
    assert len(set(words)) == 3
    assert set(words) <= set(word_bank.pool("english"))


def test_candidates_custom_words_only(word_bank):
    custom = [f"word{i}" for i in range(10)]
    settings = Settings(custom_words=custom, custom_words_only=True, word_choices=5)
    words = word_bank.candidates(settings, random.Random(2))
    assert len(words) == 5
    assert set(words) <= set(custom)


def test_candidates_include_custom_words_in_pool(tmp_path):
    path = tmp_path / "words.json"
    path.write_text(json.dumps({"english": {"easy": ["cat"], "medium": [], "hard": []}}), encoding="utf-8")
    bank = WordBank.load(path)
    words = bank.candidates(Settings(custom_words=["dragon"], word_choices=5), random.Random(3))
    assert sorted(words) == ["cat", "dragon"]


def test_default_bank_is_loaded_once(monkeypatch):
    monkeypatch.setattr(words_module, "_default_bank", None)
    loads = []
    real_load = WordBank.load.__func__

    def counting_load(cls, path=None):
        loads.append(path)
        return real_load(cls, path)

    monkeypatch.setattr(WordBank, "load", classmethod(counting_load))
    first = GameSession("HOST", authoritative=True)
    second = GameSession("OTHER", authoritative=True)
    assert first.word_bank is second.word_bank
    assert WordBank.default() is first.word_bank
    assert len(loads) == 1
