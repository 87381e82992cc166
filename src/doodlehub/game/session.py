"""
会话状态机

同一个 GameSession 类同时服务房主与玩家两端，由 authoritative 区分：

- 房主（authoritative=True）：唯一运行状态机的一方。推进阶段、管理计时器、
  判定猜词并通过 outbox 广播结果；自己的界面通过同一套通知逻辑收到事件。
- 玩家（authoritative=False）：被动镜像。只通过 handle_message() 应用房主的
  广播，从不自行修改权威状态。

阶段流转：
    lobby -> wordSelect -> drawing -> roundEnd -> (wordSelect | gameEnd) -> lobby

每次阶段切换都会 sweep 计时器注册表，旧阶段的计时器不可能在新阶段触发。
谜底只发给当前绘者（yourWord），快照与广播中只出现遮罩后的词。
"""

from __future__ import annotations

import logging
import random
import time
from typing import Any, Callable, Dict, List, Optional, Set

from doodlehub.shared import constants as C
from doodlehub.shared.errors import GameStartError, NotAuthoritativeError, SettingsError
from doodlehub.shared.protocols import Message, MessageType

from .masking import hint_offsets, letter_indices, mask_word
from .models import Phase, Player, Settings
from .observer import SessionObserver
from .scoring import GuessKind, GuessResult, evaluate_guess
from .timers import TimerRegistry
from .words import WordBank

logger = logging.getLogger(__name__)

M = MessageType

# 收到这些消息意味着阶段发生变化
_PHASE_MESSAGES = {
    M.GAME_STATE,
    M.WORD_SELECT_PHASE,
    M.DRAWING_START,
    M.ROUND_END,
    M.GAME_END,
    M.PLAY_AGAIN,
    M.TERMINATE_GAME,
}

_IN_GAME = (Phase.WORD_SELECT, Phase.DRAWING, Phase.ROUND_END)


class NullOutbox:
    """玩家端镜像不对外发送任何消息"""

    def broadcast(self, message: Message, exclude_id: Optional[str] = None) -> None:
        pass

    def send_to(self, peer_id: str, message: Message) -> None:
        pass


class GameSession:
    """一个房间的完整游戏状态"""

    def __init__(
        self,
        local_id: str,
        authoritative: bool = False,
        outbox: Any = None,
        observer: Optional[SessionObserver] = None,
        word_bank: Optional[WordBank] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ):
        self.local_id = local_id
        self.authoritative = authoritative
        self.outbox = outbox or NullOutbox()
        self.observer = observer or SessionObserver()
        self.word_bank = word_bank
        if self.word_bank is None and authoritative:
            self.word_bank = WordBank.default()
        self.rng = rng or random.Random()
        self.settings = settings or Settings()

        self.players: Dict[str, Player] = {}
        self.phase = Phase.LOBBY
        self.current_round = 1
        self.drawing_order: List[str] = []
        self.current_drawer_index = 0
        self.current_word = ""
        self.masked_word = ""
        self.revealed: Set[int] = set()
        self.time_remaining = 0
        self.max_time = 0
        self.round_scores: Dict[str, int] = {}
        self.word_choices: List[str] = []
        self.hint_offsets: List[int] = []

        self.timers = TimerRegistry(clock, phase_getter=lambda: self.phase)

        # // 房主处理玩家上行消息
        self._host_handlers: Dict[MessageType, Callable[[Message], Any]] = {
            M.PLAYER_INFO: self._on_player_info,
            M.WORD_CHOSEN: lambda m: self.choose_word(m.sender_id, str(m.payload["word"])),
            M.GUESS: lambda m: self.submit_guess(m.sender_id, str(m.payload["message"])),
            M.CHAT: lambda m: self.post_chat(m.sender_id, str(m.payload["message"])),
        }
        # // 玩家端应用房主广播
        self._mirror_handlers: Dict[MessageType, Callable[[Dict[str, Any]], None]] = {
            M.GAME_STATE: lambda p: self.apply_snapshot(p["state"]),
            M.GAME_START: lambda p: self.apply_snapshot(p["state"]),
            M.PLAYERS_UPDATE: self._apply_players,
            M.SETTINGS_UPDATE: lambda p: setattr(self, "settings", Settings.from_dict(p["settings"])),
            M.WORD_SELECT_PHASE: self._apply_word_select,
            M.YOUR_WORD: lambda p: setattr(self, "current_word", str(p["word"]).lower()),
            M.DRAWING_START: self._apply_drawing_start,
            M.TIMER_UPDATE: self._apply_timer,
            M.HINT_REVEAL: lambda p: setattr(self, "masked_word", str(p["maskedWord"])),
            M.CORRECT_GUESS: self._apply_correct_guess,
            M.CLOSE_GUESS: lambda p: None,
            M.CHAT: lambda p: None,
            M.ROUND_END: self._apply_round_end,
            M.GAME_END: lambda p: self._set_phase(Phase.GAME_END),
            M.PLAY_AGAIN: lambda p: self._reset_state(),
            M.TERMINATE_GAME: lambda p: self._reset_state(),
            M.ERROR: lambda p: None,
        }

    # ------------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------------
    @property
    def drawer_id(self) -> Optional[str]:
        if not self.drawing_order or self.phase not in _IN_GAME:
            return None
        if not 0 <= self.current_drawer_index < len(self.drawing_order):
            return None
        return self.drawing_order[self.current_drawer_index]

    def is_drawer(self, player_id: Optional[str] = None) -> bool:
        player_id = self.local_id if player_id is None else player_id
        return player_id is not None and player_id == self.drawer_id

    def can_draw(self, player_id: Optional[str] = None) -> bool:
        """只有绘画阶段的当前绘者拥有绘图权"""
        return self.phase is Phase.DRAWING and self.is_drawer(player_id)

    def players_list(self) -> List[Dict[str, Any]]:
        return [p.to_dict() for p in self.players.values()]

    def word_display(self, player_id: Optional[str] = None) -> str:
        if self.phase is Phase.ROUND_END:
            return (self.current_word or self.masked_word).upper()
        is_drawer = self.is_drawer(player_id)
        if self.current_word and (self.authoritative or is_drawer):
            return mask_word(self.current_word, self.revealed, is_drawer)
        return self.masked_word

    def standings(self) -> List[Dict[str, Any]]:
        """按分数降序，同分按绘画顺序中的位置排列"""
        position = {pid: i for i, pid in enumerate(self.drawing_order)}
        joined = {pid: i for i, pid in enumerate(self.players)}
        ranked = sorted(
            self.players.values(),
            key=lambda p: (-p.score, position.get(p.id, len(position)), joined[p.id]),
        )
        return [dict(p.to_dict(), rank=i + 1) for i, p in enumerate(ranked)]

    def snapshot(self) -> Dict[str, Any]:
        """发给新加入玩家的完整状态（不含谜底）"""
        return {
            "phase": self.phase.value,
            "settings": self.settings.to_dict(),
            "players": self.players_list(),
            "round": self.current_round,
            "drawerIndex": self.current_drawer_index,
            "drawingOrder": list(self.drawing_order),
            "maskedWord": self.current_word.upper() if self.phase is Phase.ROUND_END
            else mask_word(self.current_word, self.revealed),
            "timeRemaining": self.time_remaining,
            "maxTime": self.max_time,
        }

    def apply_snapshot(self, state: Dict[str, Any]) -> None:
        self._set_phase(Phase(state["phase"]))
        self.settings = Settings.from_dict(state.get("settings") or {})
        self._apply_players(state)
        self.current_round = int(state.get("round", 1))
        self.current_drawer_index = int(state.get("drawerIndex", 0))
        self.drawing_order = list(state.get("drawingOrder") or [])
        self.masked_word = str(state.get("maskedWord") or "")
        self.time_remaining = int(state.get("timeRemaining", 0))
        self.max_time = int(state.get("maxTime", 0))
        self.current_word = ""
        self.revealed = set()

    # ------------------------------------------------------------------
    # 消息入口
    # ------------------------------------------------------------------
    def handle_message(self, message: Message) -> Any:
        """房主：处理玩家上行消息；玩家：把房主广播应用到本地镜像"""
        if self.authoritative:
            handler = self._host_handlers.get(message.type)
            if handler is None:
                logger.debug("房主忽略消息: type=%s, from=%s", message.type.value, message.sender_id)
                return None
            return handler(message)

        apply = self._mirror_handlers.get(message.type)
        if apply is None:
            logger.debug("镜像忽略消息: type=%s", message.type.value)
            return None
        try:
            apply(message.payload)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("丢弃无法应用的消息 %s: %s", message.type.value, exc)
            return None
        self._notify(message)
        return None

    # ------------------------------------------------------------------
    # 房主操作
    # ------------------------------------------------------------------
    def _on_player_info(self, message: Message) -> bool:
        sender = message.sender_id
        if sender is None:
            return False
        name = str(message.payload["name"]).strip() or sender
        if self.add_player(sender, name):
            return True
        self._deliver(sender, M.ERROR, {"reason": "room_full"})
        return False

    def add_player(self, player_id: str, name: str, is_host: bool = False) -> bool:
        """加入房间；房间已满时返回 False"""
        self._require_authority("add_player")
        if player_id in self.players:
            self.players[player_id].name = name
        elif len(self.players) >= self.settings.max_players:
            logger.info(f"房间已满，拒绝玩家: {name} ({player_id})")
            return False
        else:
            self.players[player_id] = Player(player_id, name, is_host=is_host)
            logger.info(f"玩家加入: {name} ({player_id})")
        self._publish(M.PLAYERS_UPDATE, {"players": self.players_list()})
        return True

    def remove_player(self, player_id: str) -> None:
        self._require_authority("remove_player")
        player = self.players.pop(player_id, None)
        if player is None:
            return
        logger.info(f"玩家离开: {player.name} ({player_id})")
        was_drawer = player_id == self.drawer_id
        self._publish(M.PLAYERS_UPDATE, {"players": self.players_list()})

        if self.phase not in _IN_GAME:
            return
        if len(self.players) < C.MIN_PLAYERS:
            logger.info("玩家不足，提前结束游戏")
            self._end_game()
        elif was_drawer and self.phase is Phase.DRAWING:
            self._end_turn()
        elif was_drawer and self.phase is Phase.WORD_SELECT:
            self._advance_turn()
        elif self.phase is Phase.DRAWING and self._all_guessed():
            self._end_turn()

    def update_settings(self, **changes: Any) -> Settings:
        """仅大厅阶段可修改；校验失败时抛出 SettingsError 且不改变状态"""
        self._require_authority("update_settings")
        if self.phase is not Phase.LOBBY:
            raise SettingsError("settings can only be changed in the lobby")
        self.settings = self.settings.updated(**changes)
        self._publish(M.SETTINGS_UPDATE, {"settings": self.settings.to_dict()})
        return self.settings

    def start_game(self) -> None:
        self._require_authority("start_game")
        if self.phase is not Phase.LOBBY:
            raise GameStartError("game already in progress")
        if len(self.players) < C.MIN_PLAYERS:
            raise GameStartError(f"need at least {C.MIN_PLAYERS} players to start")
        if self.settings.custom_words_only and len(self.settings.custom_words) < C.MIN_CUSTOM_WORDS:
            raise GameStartError(
                f"need at least {C.MIN_CUSTOM_WORDS} custom words when using only custom words"
            )

        self.timers.cancel_all()
        order = list(self.players)
        self.rng.shuffle(order)
        self.drawing_order = order
        self.current_round = 1
        self.current_drawer_index = 0
        for p in self.players.values():
            p.score = 0
            p.has_guessed = False
        logger.info(f"游戏开始，绘画顺序: {order}")
        self._publish(M.GAME_START, {"state": self.snapshot()})
        self._start_turn()

    def choose_word(self, player_id: Optional[str], word: str) -> bool:
        self._require_authority("choose_word")
        if self.phase is not Phase.WORD_SELECT or player_id != self.drawer_id:
            logger.debug(f"忽略选词: from={player_id}, phase={self.phase.value}")
            return False
        wanted = word.strip().lower()
        for choice in self.word_choices:
            if choice.lower() == wanted:
                self._begin_drawing(choice)
                return True
        logger.debug(f"忽略不在候选列表中的词: {word!r}")
        return False

    def submit_guess(self, player_id: Optional[str], text: str) -> Optional[GuessResult]:
        """判定猜词；阶段不对、绘者本人或已猜中的玩家直接丢弃并返回 None"""
        self._require_authority("submit_guess")
        player = self.players.get(player_id) if player_id else None
        if (
            self.phase is not Phase.DRAWING
            or player is None
            or player_id == self.drawer_id
            or player.has_guessed
            or not text.strip()
        ):
            logger.debug(f"丢弃猜词: from={player_id}, phase={self.phase.value}")
            return None

        # 以房主收到时的剩余时间计分，先到先得
        result = evaluate_guess(text, self.current_word, self.time_remaining, self.settings.draw_time)
        if result.correct:
            player.has_guessed = True
            player.score += result.score
            self.round_scores[player.id] = result.score
            drawer = self.players.get(self.drawer_id or "")
            if drawer is not None:
                drawer.score += C.DRAWER_BONUS
                self.round_scores[drawer.id] = self.round_scores.get(drawer.id, 0) + C.DRAWER_BONUS
            logger.info(f"{player.name} 猜中，得分 {result.score}")
            self._publish(
                M.CORRECT_GUESS,
                {"playerId": player.id, "playerName": player.name, "score": result.score},
            )
            self._publish(M.PLAYERS_UPDATE, {"players": self.players_list()})
            if self._all_guessed():
                self._end_turn()
        elif result.kind is GuessKind.CLOSE:
            self._publish(M.CLOSE_GUESS, {"playerName": player.name})
        else:
            self._publish(M.CHAT, {"playerName": player.name, "message": text})
        return result

    def post_chat(self, player_id: Optional[str], text: str) -> Optional[GuessResult]:
        """普通聊天；绘画阶段的聊天一律按猜词处理，绘者无法泄露谜底"""
        self._require_authority("post_chat")
        player = self.players.get(player_id) if player_id else None
        if player is None or not text.strip():
            return None
        if self.phase is Phase.DRAWING:
            return self.submit_guess(player_id, text)
        self._publish(M.CHAT, {"playerName": player.name, "message": text})
        return None

    def play_again(self) -> None:
        self._require_authority("play_again")
        self._reset_state()
        logger.info("重新开始，回到大厅")
        self._publish(M.PLAY_AGAIN, {})

    def terminate_game(self) -> None:
        self._require_authority("terminate_game")
        self._reset_state()
        logger.info("房主结束了游戏")
        self._publish(M.TERMINATE_GAME, {})

    # ------------------------------------------------------------------
    # 回合流程（房主）
    # ------------------------------------------------------------------
    def _turn_payload(self) -> Dict[str, Any]:
        return {
            "drawerId": self.drawer_id,
            "round": self.current_round,
            "drawerIndex": self.current_drawer_index,
            "drawingOrder": list(self.drawing_order),
        }

    def _start_turn(self) -> None:
        if self.drawing_order[self.current_drawer_index] not in self.players:
            self._advance_turn()
            return

        self._set_phase(Phase.WORD_SELECT)
        self.round_scores.clear()
        for p in self.players.values():
            p.has_guessed = False
        self.current_word = ""
        self.masked_word = ""
        self.revealed = set()
        self.time_remaining = self.max_time = C.WORD_SELECT_TIME
        self.word_choices = self.word_bank.candidates(self.settings, self.rng)

        drawer = self.drawer_id
        turn = self._turn_payload()
        self._publish(M.WORD_SELECT_PHASE, dict(turn, words=None), exclude_id=drawer)
        self._deliver(drawer, M.WORD_SELECT_PHASE, dict(turn, words=list(self.word_choices)))
        self.timers.schedule(
            Phase.WORD_SELECT, "word_select", C.TICK_INTERVAL, self._word_select_tick, C.TICK_INTERVAL
        )

    def _word_select_tick(self) -> None:
        self.time_remaining -= 1
        self._publish(
            M.TIMER_UPDATE,
            {"time": self.time_remaining, "maxTime": C.WORD_SELECT_TIME, "phase": self.phase.value},
        )
        if self.time_remaining <= 0:
            word = self.rng.choice(self.word_choices)
            logger.info(f"选词超时，自动选择: {word}")
            self._begin_drawing(word)

    def _begin_drawing(self, word: str) -> None:
        self.current_word = word.strip().lower()
        self.revealed = set()
        self.time_remaining = self.max_time = self.settings.draw_time
        self.hint_offsets = hint_offsets(self.settings.draw_time, self.settings.hint_count)
        self.word_choices = []
        self._set_phase(Phase.DRAWING)
        self.masked_word = mask_word(self.current_word, self.revealed)

        self._deliver(self.drawer_id, M.YOUR_WORD, {"word": self.current_word})
        self._publish(M.DRAWING_START, dict(self._turn_payload(), maskedWord=self.masked_word))
        self.timers.schedule(
            Phase.DRAWING, "draw_tick", C.TICK_INTERVAL, self._draw_tick, C.TICK_INTERVAL
        )

    def _draw_tick(self) -> None:
        self.time_remaining -= 1
        self._publish(
            M.TIMER_UPDATE,
            {"time": self.time_remaining, "maxTime": self.settings.draw_time, "phase": self.phase.value},
        )
        if self.time_remaining in self.hint_offsets:
            self._reveal_hint()
        if self.time_remaining <= 0 or self._all_guessed():
            self._end_turn()

    def _reveal_hint(self) -> None:
        hidden = [i for i in letter_indices(self.current_word) if i not in self.revealed]
        if not hidden:
            return
        self.revealed.add(self.rng.choice(hidden))
        self.masked_word = mask_word(self.current_word, self.revealed)
        self._publish(M.HINT_REVEAL, {"maskedWord": self.masked_word})

    def _all_guessed(self) -> bool:
        drawer = self.drawer_id
        return all(p.has_guessed for pid, p in self.players.items() if pid != drawer)

    def _end_turn(self) -> None:
        self._set_phase(Phase.ROUND_END)
        scores = [
            {
                "id": pid,
                "name": self.players[pid].name if pid in self.players else "Unknown",
                "score": score,
            }
            for pid, score in self.round_scores.items()
        ]
        logger.info(f"回合结束，谜底: {self.current_word}")
        self._publish(M.ROUND_END, {"word": self.current_word, "scores": scores})
        self.timers.schedule(Phase.ROUND_END, "round_end", C.ROUND_END_DELAY, self._advance_turn)

    def _advance_turn(self) -> None:
        # 跳过已离开的绘者
        while True:
            self.current_drawer_index += 1
            if self.current_drawer_index >= len(self.drawing_order):
                self.current_drawer_index = 0
                self.current_round += 1
                if self.current_round > self.settings.total_rounds:
                    self._end_game()
                    return
            if self.drawing_order[self.current_drawer_index] in self.players:
                break
        self._start_turn()

    def _end_game(self) -> None:
        self._set_phase(Phase.GAME_END)
        standings = self.standings()
        logger.info("游戏结束")
        self._publish(M.GAME_END, {"standings": standings})

    # ------------------------------------------------------------------
    # 镜像更新（玩家）
    # ------------------------------------------------------------------
    def _apply_players(self, payload: Dict[str, Any]) -> None:
        players = [Player.from_dict(d) for d in payload["players"]]
        self.players = {p.id: p for p in players}

    def _apply_turn(self, payload: Dict[str, Any]) -> None:
        self.current_round = int(payload["round"])
        self.current_drawer_index = int(payload["drawerIndex"])
        self.drawing_order = [str(pid) for pid in payload["drawingOrder"]]

    def _apply_word_select(self, payload: Dict[str, Any]) -> None:
        self._apply_turn(payload)
        self._set_phase(Phase.WORD_SELECT)
        self.word_choices = list(payload["words"] or [])
        self.current_word = ""
        self.masked_word = ""
        self.revealed = set()
        self.time_remaining = self.max_time = C.WORD_SELECT_TIME
        for p in self.players.values():
            p.has_guessed = False

    def _apply_drawing_start(self, payload: Dict[str, Any]) -> None:
        self._apply_turn(payload)
        self._set_phase(Phase.DRAWING)
        self.word_choices = []
        self.masked_word = str(payload["maskedWord"])
        self.time_remaining = self.max_time = self.settings.draw_time

    def _apply_timer(self, payload: Dict[str, Any]) -> None:
        self.time_remaining = int(payload["time"])
        self.max_time = int(payload["maxTime"])

    def _apply_correct_guess(self, payload: Dict[str, Any]) -> None:
        player = self.players.get(str(payload["playerId"]))
        if player is not None:
            player.has_guessed = True

    def _apply_round_end(self, payload: Dict[str, Any]) -> None:
        self._set_phase(Phase.ROUND_END)
        self.current_word = str(payload["word"])

    # ------------------------------------------------------------------
    # 内部工具
    # ------------------------------------------------------------------
    def _require_authority(self, action: str) -> None:
        if not self.authoritative:
            raise NotAuthoritativeError(f"{action} is host-only")

    def _set_phase(self, phase: Phase) -> None:
        previous = self.phase
        self.phase = phase
        swept = self.timers.sweep(phase)
        if previous is not phase:
            logger.info(f"阶段切换: {previous.value} -> {phase.value} (取消计时器 {swept} 个)")

    def _reset_state(self) -> None:
        self.timers.cancel_all()
        self._set_phase(Phase.LOBBY)
        self.current_round = 1
        self.current_drawer_index = 0
        self.drawing_order = []
        self.current_word = ""
        self.masked_word = ""
        self.revealed = set()
        self.time_remaining = 0
        self.max_time = 0
        self.round_scores.clear()
        self.word_choices = []
        self.hint_offsets = []
        for p in self.players.values():
            p.score = 0
            p.has_guessed = False

    def _publish(self, msg_type: MessageType, payload: Dict[str, Any], exclude_id: Optional[str] = None) -> None:
        """广播给所有玩家，并让本地界面收到同样的事件"""
        message = Message(msg_type, payload)
        self.outbox.broadcast(message, exclude_id)
        if exclude_id != self.local_id:
            self._notify(message)

    def _deliver(self, player_id: Optional[str], msg_type: MessageType, payload: Dict[str, Any]) -> None:
        """单播；目标是自己时直接通知本地界面"""
        if player_id is None:
            return
        message = Message(msg_type, payload)
        if player_id == self.local_id:
            self._notify(message)
        else:
            self.outbox.send_to(player_id, message)

    def _notify(self, message: Message) -> None:
        p = message.payload
        t = message.type
        if t in _PHASE_MESSAGES:
            self._emit("on_state_change", self.phase.value)
        if t in (M.GAME_STATE, M.GAME_START, M.PLAYERS_UPDATE):
            self._emit("on_player_update", self.players_list())
        elif t is M.SETTINGS_UPDATE:
            self._emit("on_settings_update", p["settings"])
        elif t is M.WORD_SELECT_PHASE:
            self._emit("on_word_select", p["words"], p["drawerId"])
        elif t is M.YOUR_WORD:
            self._emit("on_your_word", p["word"])
        elif t is M.TIMER_UPDATE:
            self._emit("on_timer_update", p["time"], p["maxTime"], p["phase"])
        elif t is M.HINT_REVEAL:
            self._emit("on_hint_reveal", p["maskedWord"])
        elif t is M.CHAT:
            self._emit("on_chat", p["playerName"], p["message"])
        elif t is M.CORRECT_GUESS:
            self._emit("on_correct_guess", p["playerId"], p["playerName"], p["score"])
        elif t is M.CLOSE_GUESS:
            self._emit("on_close_guess", p["playerName"])
        elif t is M.ROUND_END:
            self._emit("on_round_end", p["word"], p["scores"])
        elif t is M.GAME_END:
            self._emit("on_game_end", p["standings"])
        elif t is M.ERROR:
            self._emit("on_error", p["reason"])

    def _emit(self, event: str, *args: Any) -> None:
        # 界面层异常不影响状态机推进
        try:
            getattr(self.observer, event)(*args)
        except Exception:
            logger.exception("observer %s 处理失败", event)


__all__ = ["GameSession", "NullOutbox"]
