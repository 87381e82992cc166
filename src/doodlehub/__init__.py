"""
DoodleHub - 点对点你画我猜

A peer-hosted drawing and guessing game built with Python and Pygame.
一个房主、若干玩家的星型网络：房主运行权威的游戏状态机，玩家只负责输入与显示。
"""

__version__ = "0.1.0"
__author__ = "DoodleHub Team"
__license__ = "MIT"

# 导出主要组件
from . import game, shared

__all__ = ["game", "shared", "__version__"]
