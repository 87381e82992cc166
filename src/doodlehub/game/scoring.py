"""
猜词判定与计分

纯函数：不依赖会话状态，由房主在收到猜词时同步调用。
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from doodlehub.shared.constants import (
    CLOSE_GUESS_THRESHOLD,
    MAX_GUESS_SCORE,
    MIN_GUESS_SCORE,
)


class GuessKind(str, Enum):
    CORRECT = "correct"
    CLOSE = "close"
    MISS = "miss"


@dataclass(frozen=True)
class GuessResult:
    kind: GuessKind
    score: int = 0

    @property
    def correct(self) -> bool:
        return self.kind is GuessKind.CORRECT


def levenshtein(a: str, b: str) -> int:
    """编辑距离（两行滚动数组）"""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            cost = 0 if ca == cb else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """(较长长度 - 编辑距离) / 较长长度；两个空串视为完全相同"""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return (longest - levenshtein(a, b)) / longest


def normalize_guess(text: str) -> str:
    return text.strip().lower()


def time_bonus(time_remaining: int, draw_time: int) -> int:
    """猜中得分：max(50, floor(500 * 剩余 / 总时长))"""
    if draw_time <= 0:
        return MIN_GUESS_SCORE
    remaining = max(0, time_remaining)
    return max(MIN_GUESS_SCORE, (MAX_GUESS_SCORE * remaining) // draw_time)


def evaluate_guess(guess: str, word: str, time_remaining: int, draw_time: int) -> GuessResult:
    guess = normalize_guess(guess)
    word = normalize_guess(word)
    if guess == word:
        return GuessResult(GuessKind.CORRECT, time_bonus(time_remaining, draw_time))
    if similarity(guess, word) >= CLOSE_GUESS_THRESHOLD:
        return GuessResult(GuessKind.CLOSE)
    return GuessResult(GuessKind.MISS)


__all__ = [
    "GuessKind",
    "GuessResult",
    "levenshtein",
    "similarity",
    "normalize_guess",
    "time_bonus",
    "evaluate_guess",
]
