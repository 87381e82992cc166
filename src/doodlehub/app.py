"""
参与者

把传输层、会话状态机与画布连在一起，房主与玩家共用同一个入口：

- host(): 创建房间，本地运行权威状态机，传输层直接充当 outbox
- join(code): 加入房间，本地会话只是房主广播的镜像

所有状态修改都发生在调用 pump() 的线程里：它取出传输事件逐个处理，
再触发到期的计时器。socket 线程从不直接触碰会话或画布。
"""

from __future__ import annotations

import logging
import random
import time
from typing import Any, Callable, Optional, Tuple, Union

from doodlehub.client.network import GuestTransport
from doodlehub.drawing import Canvas, DrawOperation, operation_from_dict
from doodlehub.game import GameSession, Phase, SessionObserver, Settings, WordBank
from doodlehub.server.network import HostTransport
from doodlehub.server.registry import SessionRegistry
from doodlehub.shared.constants import DEFAULT_CANVAS_SIZE, DEFAULT_HOST
from doodlehub.shared.errors import PeerDisconnectedError, ProtocolError
from doodlehub.shared.protocols import Message, MessageType
from doodlehub.shared.transport import (
    ConnectionLost,
    MessageReceived,
    PeerJoined,
    PeerLeft,
    TransportEvent,
)

logger = logging.getLogger(__name__)


class Participant:
    """一个房间参与者（房主或玩家）"""

    def __init__(
        self,
        name: str,
        registry: SessionRegistry,
        observer: Optional[SessionObserver] = None,
        canvas_size: Tuple[int, int] = DEFAULT_CANVAS_SIZE,
        pixel_ratio: float = 1.0,
        word_bank: Optional[WordBank] = None,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ):
        self.name = name
        self.registry = registry
        self.observer = observer or SessionObserver()
        self.canvas = Canvas(canvas_size[0], canvas_size[1], pixel_ratio, on_draw=self._on_local_draw)
        self.word_bank = word_bank
        self.clock = clock
        self.rng = rng
        self.transport: Optional[Union[HostTransport, GuestTransport]] = None
        self.session: Optional[GameSession] = None
        self.lost_reason: Optional[str] = None
        self._turn: Optional[Tuple[Any, ...]] = None
        self._running = False

    @property
    def is_host(self) -> bool:
        return isinstance(self.transport, HostTransport)

    @property
    def player_id(self) -> Optional[str]:
        return self.session.local_id if self.session else None

    # ------------------------------------------------------------------
    # 建立连接
    # ------------------------------------------------------------------
    def host(
        self,
        host: str = DEFAULT_HOST,
        port: int = 0,
        advertise_host: Optional[str] = None,
        settings: Optional[Settings] = None,
    ) -> str:
        """创建房间并返回房间号（同时也是房主的玩家 ID）"""
        transport = HostTransport(self.registry, host, port, advertise_host, rng=self.rng)
        code = transport.create_session()
        self.transport = transport
        self.session = GameSession(
            code,
            authoritative=True,
            outbox=transport,
            observer=self.observer,
            word_bank=self.word_bank,
            settings=settings,
            clock=self.clock,
            rng=self.rng,
        )
        self.session.add_player(code, self.name, is_host=True)
        self._sync_canvas()
        return code

    def join(self, code: str, **transport_options: Any) -> str:
        """加入房间并返回本端的玩家 ID"""
        transport = GuestTransport(self.registry, **transport_options)
        player_id = transport.join_session(code)
        self.transport = transport
        self.session = GameSession(player_id, authoritative=False, observer=self.observer, clock=self.clock)
        transport.send(Message(MessageType.PLAYER_INFO, {"name": self.name}))
        return player_id

    def close(self) -> None:
        self._running = False
        if self.transport is not None:
            self.transport.close()

    # ------------------------------------------------------------------
    # 主循环
    # ------------------------------------------------------------------
    def pump(self) -> int:
        """处理积压的传输事件与到期计时器，返回处理的数量

        与房主断开后抛出 PeerDisconnectedError。
        """
        session, transport = self._require_session()
        handled = 0
        for event in transport.poll_events():
            self._handle_event(event)
            self._sync_canvas()
            handled += 1
        if session.authoritative:
            handled += session.timers.run_due()
            self._sync_canvas()
        if self.lost_reason is not None:
            raise PeerDisconnectedError(self.lost_reason)
        return handled

    def run(self, interval: float = 0.05) -> None:
        self._running = True
        while self._running:
            self.pump()
            time.sleep(interval)

    def stop(self) -> None:
        self._running = False

    # ------------------------------------------------------------------
    # 玩家操作（房主直接调用状态机，玩家发给房主）
    # ------------------------------------------------------------------
    def start_game(self) -> None:
        self._require_session()[0].start_game()
        self._sync_canvas()

    def update_settings(self, **changes: Any) -> Settings:
        return self._require_session()[0].update_settings(**changes)

    def play_again(self) -> None:
        self._require_session()[0].play_again()
        self._sync_canvas()

    def terminate_game(self) -> None:
        self._require_session()[0].terminate_game()
        self._sync_canvas()

    def choose_word(self, word: str) -> None:
        session, transport = self._require_session()
        if session.authoritative:
            session.choose_word(session.local_id, word)
            self._sync_canvas()
        else:
            transport.send(Message(MessageType.WORD_CHOSEN, {"word": word}))

    def chat(self, text: str) -> None:
        """聊天；绘画阶段由房主按猜词处理"""
        session, transport = self._require_session()
        if session.authoritative:
            session.post_chat(session.local_id, text)
            self._sync_canvas()
        else:
            transport.send(Message(MessageType.CHAT, {"playerName": self.name, "message": text}))

    def guess(self, text: str) -> None:
        session, transport = self._require_session()
        if session.authoritative:
            session.submit_guess(session.local_id, text)
            self._sync_canvas()
        else:
            transport.send(Message(MessageType.GUESS, {"playerName": self.name, "message": text}))

    # ------------------------------------------------------------------
    # 事件处理
    # ------------------------------------------------------------------
    def _handle_event(self, event: TransportEvent) -> None:
        session, transport = self._require_session()
        if isinstance(event, PeerJoined):
            # 新玩家先收到完整快照，随后等待其 playerInfo
            transport.send_to(event.peer_id, Message(MessageType.GAME_STATE, {"state": session.snapshot()}))
        elif isinstance(event, PeerLeft):
            session.remove_player(event.peer_id)
        elif isinstance(event, ConnectionLost):
            self.lost_reason = event.reason
            try:
                self.observer.on_error(event.reason)
            except Exception:
                logger.exception("observer on_error 处理失败")
        elif isinstance(event, MessageReceived):
            self._handle_message(event.message)

    def _handle_message(self, message: Message) -> None:
        session, transport = self._require_session()
        if message.type is MessageType.DRAW:
            self._handle_draw(message)
            return
        result = session.handle_message(message)
        if session.authoritative and message.type is MessageType.PLAYER_INFO and result is False:
            logger.info(f"房间已满，断开 {message.sender_id}")
            transport.disconnect(message.sender_id)  # type: ignore[union-attr, arg-type]

    def _handle_draw(self, message: Message) -> None:
        session, transport = self._require_session()
        try:
            op = operation_from_dict(message.payload.get("operation"))
        except ProtocolError as exc:
            logger.debug(f"丢弃非法绘图操作: {exc}")
            return
        if session.authoritative:
            # 只转发当前绘者的操作，且不回发给绘者本人
            if not session.can_draw(message.sender_id):
                logger.debug(f"丢弃非绘者的绘图操作: {message.sender_id}")
                return
            if self._apply_remote(op):
                transport.broadcast(message, exclude_id=message.sender_id)
        elif not session.is_drawer():
            self._apply_remote(op)

    def _apply_remote(self, op: DrawOperation) -> bool:
        try:
            self.canvas.apply(op)
        except (ValueError, OverflowError) as exc:
            logger.warning(f"绘图操作无法应用到画布: {exc}")
            return False
        return True

    def _on_local_draw(self, op: DrawOperation) -> None:
        if self.session is None or self.transport is None:
            return
        message = Message(MessageType.DRAW, {"operation": op.to_dict()})
        if self.session.authoritative:
            self.transport.broadcast(message)  # type: ignore[union-attr]
        else:
            self.transport.send(message)  # type: ignore[union-attr]

    def _sync_canvas(self) -> None:
        """新回合（或回到大厅）时清空画布；只有绘画阶段的绘者可以绘图"""
        session = self.session
        if session is None:
            return
        turn = (session.phase, session.current_round, session.current_drawer_index)
        if turn != self._turn and session.phase in (Phase.WORD_SELECT, Phase.LOBBY):
            self.canvas.clear(broadcast=False)
        self._turn = turn
        self.canvas.set_enabled(session.can_draw())

    def _require_session(self) -> Tuple[GameSession, Any]:
        if self.session is None or self.transport is None:
            raise RuntimeError("call host() or join() first")
        return self.session, self.transport


__all__ = ["Participant"]
