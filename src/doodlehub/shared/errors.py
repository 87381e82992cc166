"""
异常定义

传输层、协议层与游戏规则层共用的异常体系。
"""


class DoodleHubError(Exception):
    """所有异常的基类"""


# 传输层
class SessionCreationError(DoodleHubError):
    """多次尝试后仍无法注册房间号"""


class SessionNotFoundError(DoodleHubError):
    """房间不存在（不重试）"""


class ConnectionTimeoutError(DoodleHubError):
    """多次重试后仍无法连接房主"""


class PeerDisconnectedError(DoodleHubError):
    """与房主的连接已断开，需要重新加入"""


# 协议层
class ProtocolError(DoodleHubError):
    """无法识别或字段缺失的消息"""


# 游戏规则
class GameRuleError(DoodleHubError):
    """违反游戏规则的操作，状态保持不变"""


class GameStartError(GameRuleError):
    pass


class SettingsError(GameRuleError):
    pass


class NotAuthoritativeError(GameRuleError):
    """只有房主可以修改会话状态"""


__all__ = [
    "DoodleHubError",
    "SessionCreationError",
    "SessionNotFoundError",
    "ConnectionTimeoutError",
    "PeerDisconnectedError",
    "ProtocolError",
    "GameRuleError",
    "GameStartError",
    "SettingsError",
    "NotAuthoritativeError",
]
