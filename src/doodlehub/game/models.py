"""
数据模型

玩家、房间设置与游戏阶段，以及它们在线路上的 dict 表示。
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List

from doodlehub.shared import constants as C
from doodlehub.shared.errors import SettingsError


class Phase(str, Enum):
    LOBBY = "lobby"
    WORD_SELECT = "wordSelect"
    DRAWING = "drawing"
    ROUND_END = "roundEnd"
    GAME_END = "gameEnd"


@dataclass
class Player:
    id: str
    name: str
    score: int = 0
    is_host: bool = False
    has_guessed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "score": self.score,
            "isHost": self.is_host,
            "hasGuessed": self.has_guessed,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Player":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or data["id"]),
            score=int(data.get("score", 0)),
            is_host=bool(data.get("isHost", False)),
            has_guessed=bool(data.get("hasGuessed", False)),
        )


# (字段名, 最小值, 最大值)
_BOUNDS = (
    ("max_players", C.MIN_PLAYERS, 20),
    ("draw_time", 15, 240),
    ("total_rounds", 1, 10),
    ("hint_count", 0, 5),
    ("word_choices", 1, 5),
)

_WIRE_NAMES = {
    "max_players": "maxPlayers",
    "draw_time": "drawTime",
    "total_rounds": "rounds",
    "hint_count": "hints",
    "word_choices": "wordCount",
    "language": "language",
    "custom_words": "customWords",
    "custom_words_only": "customWordsOnly",
}


def clean_custom_words(words: Any) -> List[str]:
    """清理自定义词：支持逗号分隔字符串或列表，去空白并按长度过滤"""
    if isinstance(words, str):
        words = words.split(",")
    cleaned = []
    for w in words or []:
        w = str(w).strip()
        if 1 <= len(w) <= C.MAX_CUSTOM_WORD_LENGTH:
            cleaned.append(w)
    return cleaned


@dataclass
class Settings:
    """房间设置（仅房主可修改）"""

    max_players: int = C.MAX_PLAYERS
    draw_time: int = C.DRAW_TIME
    total_rounds: int = C.TOTAL_ROUNDS
    hint_count: int = C.HINT_COUNT
    word_choices: int = C.WORD_CHOICES
    language: str = C.DEFAULT_LANGUAGE
    custom_words: List[str] = field(default_factory=list)
    custom_words_only: bool = False

    def validate(self) -> None:
        for name, low, high in _BOUNDS:
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or not low <= value <= high:
                raise SettingsError(f"{name} must be an integer in [{low}, {high}], got {value!r}")
        if not self.language:
            raise SettingsError("language must not be empty")
        if self.custom_words_only and len(self.custom_words) < C.MIN_CUSTOM_WORDS:
            raise SettingsError(
                f"need at least {C.MIN_CUSTOM_WORDS} custom words when using only custom words"
            )

    def updated(self, **changes: Any) -> "Settings":
        """返回应用修改并校验后的新设置；失败时原对象不变"""
        if "custom_words" in changes:
            changes["custom_words"] = clean_custom_words(changes["custom_words"])
        unknown = set(changes) - set(_WIRE_NAMES)
        if unknown:
            raise SettingsError(f"unknown settings: {sorted(unknown)}")
        new = replace(self, **changes)
        new.validate()
        return new

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        return {_WIRE_NAMES[k]: v for k, v in data.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        reverse = {v: k for k, v in _WIRE_NAMES.items()}
        kwargs = {reverse[k]: v for k, v in data.items() if k in reverse}
        if "custom_words" in kwargs:
            kwargs["custom_words"] = clean_custom_words(kwargs["custom_words"])
        return cls(**kwargs)


__all__ = ["Phase", "Player", "Settings", "clean_custom_words"]
