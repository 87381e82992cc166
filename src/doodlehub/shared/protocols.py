"""
协议定义

基于 JSON 的消息格式。每条消息为 {"type": ..., "payload": {...}}，
房主收到的消息额外带有隐式的 sender_id（由传输层填写，不上线路）。

消息类型是封闭集合：每种类型在 PAYLOAD_FIELDS 中声明必填字段，
构造时即校验，未知类型或缺字段一律抛出 ProtocolError。
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from . import constants as C
from .errors import ProtocolError


class MessageType(str, Enum):
    PLAYER_INFO = C.MSG_PLAYER_INFO
    GAME_STATE = C.MSG_GAME_STATE
    PLAYERS_UPDATE = C.MSG_PLAYERS_UPDATE
    SETTINGS_UPDATE = C.MSG_SETTINGS_UPDATE
    GAME_START = C.MSG_GAME_START
    WORD_SELECT_PHASE = C.MSG_WORD_SELECT_PHASE
    WORD_CHOSEN = C.MSG_WORD_CHOSEN
    YOUR_WORD = C.MSG_YOUR_WORD
    DRAWING_START = C.MSG_DRAWING_START
    TIMER_UPDATE = C.MSG_TIMER_UPDATE
    HINT_REVEAL = C.MSG_HINT_REVEAL
    DRAW = C.MSG_DRAW
    CHAT = C.MSG_CHAT
    GUESS = C.MSG_GUESS
    CORRECT_GUESS = C.MSG_CORRECT_GUESS
    CLOSE_GUESS = C.MSG_CLOSE_GUESS
    ROUND_END = C.MSG_ROUND_END
    GAME_END = C.MSG_GAME_END
    PLAY_AGAIN = C.MSG_PLAY_AGAIN
    TERMINATE_GAME = C.MSG_TERMINATE_GAME
    ERROR = C.MSG_ERROR


_TURN_FIELDS = ("drawerId", "round", "drawerIndex", "drawingOrder")

# 每种消息的必填字段
PAYLOAD_FIELDS: Dict[MessageType, Tuple[str, ...]] = {
    MessageType.PLAYER_INFO: ("name",),
    MessageType.GAME_STATE: ("state",),
    MessageType.PLAYERS_UPDATE: ("players",),
    MessageType.SETTINGS_UPDATE: ("settings",),
    MessageType.GAME_START: ("state",),
    MessageType.WORD_SELECT_PHASE: _TURN_FIELDS + ("words",),
    MessageType.WORD_CHOSEN: ("word",),
    MessageType.YOUR_WORD: ("word",),
    MessageType.DRAWING_START: _TURN_FIELDS + ("maskedWord",),
    MessageType.TIMER_UPDATE: ("time", "maxTime", "phase"),
    MessageType.HINT_REVEAL: ("maskedWord",),
    MessageType.DRAW: ("operation",),
    MessageType.CHAT: ("playerName", "message"),
    MessageType.GUESS: ("playerName", "message"),
    MessageType.CORRECT_GUESS: ("playerId", "playerName", "score"),
    MessageType.CLOSE_GUESS: ("playerName",),
    MessageType.ROUND_END: ("word", "scores"),
    MessageType.GAME_END: ("standings",),
    MessageType.PLAY_AGAIN: (),
    MessageType.TERMINATE_GAME: (),
    MessageType.ERROR: ("reason",),
}

assert set(PAYLOAD_FIELDS) == set(MessageType), "every message type needs a payload schema"


@dataclass
class Message:
    """协议消息"""

    type: MessageType
    payload: Dict[str, Any] = field(default_factory=dict)
    sender_id: Optional[str] = None

    def __post_init__(self) -> None:
        try:
            self.type = MessageType(self.type)
        except ValueError:
            raise ProtocolError(f"unknown message type: {self.type!r}") from None
        if not isinstance(self.payload, dict):
            raise ProtocolError(f"{self.type.value}: payload must be an object")
        missing = [k for k in PAYLOAD_FIELDS[self.type] if k not in self.payload]
        if missing:
            raise ProtocolError(f"{self.type.value}: missing fields {missing}")

    def to_dict(self) -> Dict[str, Any]:
        # sender_id 由接收方填写，不参与序列化
        return {"type": self.type.value, "payload": self.payload}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, obj: Any, sender_id: Optional[str] = None) -> "Message":
        if not isinstance(obj, dict) or "type" not in obj:
            raise ProtocolError("message must be an object with a type")
        return cls(obj["type"], obj.get("payload") or {}, sender_id)

    @classmethod
    def from_json(cls, json_str: str, sender_id: Optional[str] = None) -> "Message":
        try:
            obj = json.loads(json_str)
        except ValueError as exc:
            raise ProtocolError(f"invalid json: {exc}") from exc
        return cls.from_dict(obj, sender_id)


__all__ = ["MessageType", "Message", "PAYLOAD_FIELDS"]
