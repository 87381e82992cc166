"""
玩家端传输：凭房间号查询房主地址、直连并握手，之后只与房主通信。
"""
from __future__ import annotations

import logging
import socket
import threading
import time
import uuid
from typing import Callable, List, Optional, Tuple

from doodlehub.server.registry import SessionRegistry, normalize_code
from doodlehub.shared.constants import (
    BUFFER_SIZE,
    CONNECT_TIMEOUT,
    FRAME_DATA,
    FRAME_HELLO,
    FRAME_REJECT,
    FRAME_WELCOME,
    JOIN_BACKOFF,
    JOIN_MAX_ATTEMPTS,
)
from doodlehub.shared.errors import (
    ConnectionTimeoutError,
    PeerDisconnectedError,
    ProtocolError,
    SessionNotFoundError,
)
from doodlehub.shared.protocols import Message
from doodlehub.shared.transport import (
    ConnectionLost,
    EventQueue,
    LineReader,
    MessageReceived,
    TransportEvent,
    data_frame,
    encode_frame,
)

logger = logging.getLogger(__name__)


class GuestTransport:
    """线程驱动的玩家端连接；与房主断开对本端是致命的，不自动重连。"""

    def __init__(
        self,
        registry: SessionRegistry,
        peer_id: Optional[str] = None,
        timeout: float = CONNECT_TIMEOUT,
        max_attempts: int = JOIN_MAX_ATTEMPTS,
        backoff: float = JOIN_BACKOFF,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.registry = registry
        self.peer_id = peer_id or uuid.uuid4().hex[:8]
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self.backoff = backoff
        self._sleep = sleep
        self.code: Optional[str] = None
        self.sock: Optional[socket.socket] = None
        self.events = EventQueue()
        self._reader = LineReader()
        self._recv_thread: Optional[threading.Thread] = None
        self._running = threading.Event()
        self._send_lock = threading.Lock()
        self._state_lock = threading.Lock()

    @property
    def connected(self) -> bool:
        return bool(self.sock) and self._running.is_set()

    @property
    def host_id(self) -> Optional[str]:
        # 房主的玩家 ID 即房间号
        return self.code

    def join_session(self, code: str) -> str:
        """加入房间，返回本端的玩家 ID

        房间不存在时立即抛出 SessionNotFoundError；
        超时或被拒绝连接时线性退避重试，最终抛出 ConnectionTimeoutError。
        """
        code = normalize_code(code)
        if not code:
            raise SessionNotFoundError("room code is empty")
        last_error: Optional[BaseException] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                address = self.registry.lookup(code)
                if address is None:
                    raise SessionNotFoundError(f"room {code} does not exist")
                self._connect(address, code)
                logger.info(f"已加入房间 {code}，玩家 ID: {self.peer_id}")
                return self.peer_id
            except OSError as exc:
                last_error = exc
                logger.warning(f"连接房间 {code} 失败 (第{attempt}/{self.max_attempts}次): {exc}")
                if attempt < self.max_attempts:
                    self._sleep(self.backoff * attempt)
        raise ConnectionTimeoutError(
            f"could not reach room {code} after {self.max_attempts} attempts"
        ) from last_error

    def send(self, message: Message) -> None:
        """发往房主；未连接时抛出 PeerDisconnectedError"""
        sock = self.sock
        if sock is None or not self._running.is_set():
            raise PeerDisconnectedError("not connected to the host")
        try:
            with self._send_lock:
                sock.sendall(encode_frame(data_frame(message)))
        except OSError as exc:
            self._lost(f"send failed: {exc}")
            raise PeerDisconnectedError("connection to the host was lost") from exc

    def poll_events(self) -> List[TransportEvent]:
        return self.events.drain()

    def close(self) -> None:
        """主动断开（不会产生 ConnectionLost 事件）"""
        self._running.clear()
        self._close_socket()

    # 内部方法
    def _connect(self, address: Tuple[str, int], code: str) -> None:
        sock = socket.create_connection(address, timeout=self.timeout)
        reader = LineReader()
        try:
            sock.sendall(encode_frame({"frame": FRAME_HELLO, "room": code, "peer_id": self.peer_id}))
            frames: list = []
            while not frames:
                data = sock.recv(BUFFER_SIZE)
                if not data:
                    raise ConnectionError("host closed the connection during handshake")
                frames = reader.feed(data)
        except BaseException:
            sock.close()
            raise

        reply, pending = frames[0], frames[1:]
        kind = reply.get("frame")
        if kind == FRAME_REJECT:
            sock.close()
            raise SessionNotFoundError(f"room {code} does not exist ({reply.get('reason')})")
        if kind != FRAME_WELCOME:
            sock.close()
            raise ConnectionError(f"unexpected handshake reply: {kind!r}")

        self.peer_id = str(reply.get("peer_id") or self.peer_id)
        self.code = code
        # 握手完成后取消超时，阻塞接收
        sock.settimeout(None)
        self.sock = sock
        self._reader = reader
        self._running.set()
        # 与欢迎帧一起到达的数据帧
        for frame in pending:
            self._handle_frame(frame)
        self._recv_thread = threading.Thread(target=self._recv_loop, name="guest-recv", daemon=True)
        self._recv_thread.start()

    def _recv_loop(self) -> None:
        reason = "host closed the connection"
        try:
            while self._running.is_set() and self.sock:
                data = self.sock.recv(BUFFER_SIZE)
                if not data:
                    break
                for frame in self._reader.feed(data):
                    self._handle_frame(frame)
        except OSError as exc:
            reason = str(exc)
        finally:
            self._lost(reason)

    def _handle_frame(self, frame: dict) -> None:
        if frame.get("frame") != FRAME_DATA:
            logger.debug(f"忽略未知帧: {frame.get('frame')!r}")
            return
        try:
            message = Message.from_dict(frame.get("message"), sender_id=self.code)
        except ProtocolError as exc:
            logger.debug(f"丢弃非法消息: {exc}")
            return
        self.events.put(MessageReceived(self.code or "", message))

    def _lost(self, reason: str) -> None:
        with self._state_lock:
            if not self._running.is_set():
                return
            self._running.clear()
        self._close_socket()
        logger.warning(f"与房主的连接已断开: {reason}")
        self.events.put(ConnectionLost(reason))

    def _close_socket(self) -> None:
        sock, self.sock = self.sock, None
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        try:
            sock.close()
        except OSError:
            pass


__all__ = ["GuestTransport"]
