"""
玩家端模块

包含玩家端传输层与控制台客户端入口。
"""

from .network import GuestTransport

__all__ = ["GuestTransport"]
