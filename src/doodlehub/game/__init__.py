"""
游戏逻辑模块

实现游戏核心逻辑，包括回合控制、分数计算、状态管理等。

模块组成：
- models: 玩家/设置/阶段数据模型
- scoring: 猜词判定（精确/接近/未中）与计分
- masking: 谜底遮罩与提示时间点
- words: 词库加载
- timers: 按阶段登记、可清除的计时器
- session: 房主权威状态机与玩家镜像
"""

from .models import Phase, Player, Settings
from .observer import SessionObserver
from .scoring import GuessKind, GuessResult, evaluate_guess, similarity, time_bonus
from .masking import hint_offsets, mask_word
from .session import GameSession, NullOutbox
from .timers import TimerRegistry
from .words import WordBank

__all__ = [
    "Phase",
    "Player",
    "Settings",
    "SessionObserver",
    "GuessKind",
    "GuessResult",
    "evaluate_guess",
    "similarity",
    "time_bonus",
    "hint_offsets",
    "mask_word",
    "GameSession",
    "NullOutbox",
    "TimerRegistry",
    "WordBank",
]
