"""
词库

从 JSON 资源加载（语言 -> easy/medium/hard），只加载一次；
文件缺失或损坏时回退到内置的小词库。
"""

from __future__ import annotations

import json
import logging
import random
import threading
from pathlib import Path
from typing import Dict, List, Optional, Union

from doodlehub.shared.constants import DEFAULT_LANGUAGE

from .models import Settings

logger = logging.getLogger(__name__)

WORDS_PATH = Path(__file__).parent / "data" / "words.json"
TIERS = ("easy", "medium", "hard")

FALLBACK_WORDS: Dict[str, Dict[str, List[str]]] = {
    "english": {
        "easy": ["cat", "dog", "sun", "tree", "house"],
        "medium": ["elephant", "computer", "rainbow"],
        "hard": ["encyclopedia", "constellation"],
    }
}


_default_bank: Optional["WordBank"] = None
_default_lock = threading.Lock()


class WordBank:
    """按语言分层的词库"""

    def __init__(self, words: Dict[str, Dict[str, List[str]]]):
        self._words = words

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> "WordBank":
        path = Path(path) if path else WORDS_PATH
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict) or not data:
                raise ValueError("word list must be a non-empty object")
        except (OSError, ValueError) as exc:
            logger.warning("加载词库失败，使用内置词库: %s", exc)
            return cls(FALLBACK_WORDS)
        return cls(data)

    @classmethod
    def default(cls) -> "WordBank":
        """进程内共享的默认词库，首次使用时加载"""
        global _default_bank
        with _default_lock:
            if _default_bank is None:
                _default_bank = cls.load()
            return _default_bank

    @property
    def languages(self) -> List[str]:
        return sorted(self._words)

    def pool(self, language: str) -> List[str]:
        lang = self._words.get(language) or self._words.get(DEFAULT_LANGUAGE)
        if lang is None:
            lang = next(iter(self._words.values()))
        words: List[str] = []
        for tier in TIERS:
            words.extend(lang.get(tier, []))
        return words

    def candidates(self, settings: Settings, rng: Optional[random.Random] = None) -> List[str]:
        """为本回合抽取 word_choices 个互不相同的候选词"""
        rng = rng or random.Random()
        if settings.custom_words_only:
            words = list(settings.custom_words)
        else:
            words = self.pool(settings.language) + list(settings.custom_words)
        # 去重但保持顺序，避免候选列表里出现同一个词
        unique = list(dict.fromkeys(w.strip() for w in words if w.strip()))
        return rng.sample(unique, min(settings.word_choices, len(unique)))


__all__ = ["WordBank", "FALLBACK_WORDS", "WORDS_PATH"]
