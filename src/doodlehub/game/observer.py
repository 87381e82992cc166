"""
观察者接口

渲染层通过继承 SessionObserver 订阅会话事件；核心只调用这些回调，
从不主动查询渲染层。所有方法默认为空实现，按需覆盖即可。
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class SessionObserver:
    def on_state_change(self, phase: str) -> None:
        pass

    def on_timer_update(self, time_left: int, max_time: int, phase: str) -> None:
        pass

    def on_word_select(self, words: Optional[List[str]], drawer_id: str) -> None:
        """words 仅对绘者非空，其他人收到 None（表示正在选词）"""

    def on_your_word(self, word: str) -> None:
        pass

    def on_hint_reveal(self, masked_word: str) -> None:
        pass

    def on_player_update(self, players: List[Dict[str, Any]]) -> None:
        pass

    def on_settings_update(self, settings: Dict[str, Any]) -> None:
        pass

    def on_chat(self, player_name: str, message: str) -> None:
        pass

    def on_correct_guess(self, player_id: str, player_name: str, score: int) -> None:
        pass

    def on_close_guess(self, player_name: str) -> None:
        pass

    def on_round_end(self, word: str, scores: List[Dict[str, Any]]) -> None:
        pass

    def on_game_end(self, standings: List[Dict[str, Any]]) -> None:
        pass

    def on_error(self, reason: str) -> None:
        pass


__all__ = ["SessionObserver"]
