"""
传输层公共部分

- 帧格式：按行分隔的 UTF-8 JSON（与消息层相同的约定）
- 传输事件：socket 线程只负责把事件放入队列，由主循环统一取出处理
"""

from __future__ import annotations

import json
import logging
import socket
from dataclasses import dataclass
from queue import Empty, SimpleQueue
from typing import Any, Dict, List, Union

from .constants import FRAME_DATA, MAX_FRAME_SIZE
from .protocols import Message

logger = logging.getLogger(__name__)


def encode_frame(frame: Dict[str, Any]) -> bytes:
    return (json.dumps(frame, ensure_ascii=False) + "\n").encode("utf-8")


def send_frame(sock: socket.socket, frame: Dict[str, Any]) -> None:
    sock.sendall(encode_frame(frame))


def data_frame(message: Message) -> Dict[str, Any]:
    return {"frame": FRAME_DATA, "message": message.to_dict()}


class LineReader:
    """累积收到的字节，按换行符切分出完整的 JSON 帧；超过 max_size 的帧整帧丢弃"""

    def __init__(self, max_size: int = MAX_FRAME_SIZE) -> None:
        self._buf = bytearray()
        self.max_size = max_size
        self._skipping = False

    def feed(self, data: bytes) -> List[Dict[str, Any]]:
        self._buf.extend(data)
        frames: List[Dict[str, Any]] = []
        while True:
            idx = self._buf.find(b"\n")
            if idx < 0:
                if len(self._buf) > self.max_size:
                    # 丢弃已收到的部分，直到下一个换行
                    if not self._skipping:
                        logger.warning(f"帧超过 {self.max_size} 字节，丢弃")
                    self._buf.clear()
                    self._skipping = True
                break
            raw = bytes(self._buf[:idx])
            del self._buf[: idx + 1]
            if self._skipping:
                self._skipping = False
                continue
            if len(raw) > self.max_size:
                logger.warning(f"帧超过 {self.max_size} 字节，丢弃")
                continue
            if not raw.strip():
                continue
            try:
                obj = json.loads(raw.decode("utf-8", errors="replace"))
            except ValueError:
                # 非法帧，丢弃
                logger.debug(f"丢弃无法解析的帧: {raw[:80]!r}")
                continue
            if isinstance(obj, dict):
                frames.append(obj)
        return frames


# 传输事件
@dataclass(frozen=True)
class PeerJoined:
    peer_id: str


@dataclass(frozen=True)
class PeerLeft:
    peer_id: str


@dataclass(frozen=True)
class MessageReceived:
    sender_id: str
    message: Message


@dataclass(frozen=True)
class ConnectionLost:
    reason: str


TransportEvent = Union[PeerJoined, PeerLeft, MessageReceived, ConnectionLost]


class EventQueue:
    """线程安全的事件队列，主循环用 drain() 一次取空"""

    def __init__(self) -> None:
        self._queue: "SimpleQueue[TransportEvent]" = SimpleQueue()

    def put(self, event: TransportEvent) -> None:
        self._queue.put(event)

    def drain(self) -> List[TransportEvent]:
        items: List[TransportEvent] = []
        while True:
            try:
                items.append(self._queue.get_nowait())
            except Empty:
                break
        return items


__all__ = [
    "encode_frame",
    "send_frame",
    "data_frame",
    "LineReader",
    "PeerJoined",
    "PeerLeft",
    "MessageReceived",
    "ConnectionLost",
    "TransportEvent",
    "EventQueue",
]
